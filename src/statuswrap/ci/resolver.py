"""Resolve a StatusContext from explicit values, build metadata and env."""

from __future__ import annotations

import logging
from collections.abc import Mapping

from statuswrap.ci.metadata import BuildMetadataLookup
from statuswrap.types.context import (
    DEFAULT_GITHUB_API_URL,
    DEFAULT_LABEL,
    UNABLE_TO_INFER_COMMIT,
    UNABLE_TO_INFER_DATA,
    PartialContext,
    StatusContext,
)
from statuswrap.types.errors import InferenceError, ResolutionError

logger = logging.getLogger(__name__)

# Standard "current commit" variable set by the Jenkins git plugin and others.
COMMIT_ENV_FALLBACK = "GIT_COMMIT"


def resolve_context(
    explicit: PartialContext,
    env: Mapping[str, str],
    metadata: BuildMetadataLookup,
) -> StatusContext:
    """Fill every gap in *explicit* and return a validated StatusContext.

    Explicit values always win. Inputs are never mutated, so calling this
    twice with the same inputs yields equal contexts.

    Raises ResolutionError when account, repo or sha cannot be determined.
    """
    try:
        account = explicit.account or metadata.infer_account()
        repo = explicit.repo or metadata.infer_repo()
    except InferenceError as exc:
        raise ResolutionError(UNABLE_TO_INFER_DATA) from exc

    sha = explicit.sha or _infer_sha(env, metadata)

    credentials_id = explicit.credentials_id
    if not credentials_id:
        credentials_id = metadata.infer_credentials_id() or ""

    context = StatusContext(
        account=account,
        repo=repo,
        sha=sha,
        credentials_id=credentials_id,
        api_url=explicit.api_url or DEFAULT_GITHUB_API_URL,
        description=explicit.description or "",
        target_url=explicit.target_url or metadata.infer_result_url(),
        label=explicit.label or DEFAULT_LABEL,
    )
    context.validate()
    logger.debug("Resolved status context %s", context)
    return context


def _infer_sha(env: Mapping[str, str], metadata: BuildMetadataLookup) -> str:
    try:
        sha = metadata.infer_commit_sha()
    except InferenceError as exc:
        fallback = env.get(COMMIT_ENV_FALLBACK)
        if fallback:
            logger.debug("Falling back to %s after: %s", COMMIT_ENV_FALLBACK, exc)
            return fallback
        raise ResolutionError(UNABLE_TO_INFER_COMMIT) from exc
    if sha:
        return sha
    if fallback := env.get(COMMIT_ENV_FALLBACK):
        return fallback
    raise ResolutionError(UNABLE_TO_INFER_COMMIT)
