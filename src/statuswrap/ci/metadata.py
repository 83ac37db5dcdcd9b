"""Build metadata inference from CI environment variables and git."""

from __future__ import annotations

import logging
import os
import re
import subprocess
from collections.abc import Callable, Mapping
from typing import Protocol, runtime_checkable

from statuswrap.ci.webhook import extract_pr_head_sha, parse_github_event
from statuswrap.core.credentials import GITHUB_TOKEN_ID
from statuswrap.types.errors import InferenceError

logger = logging.getLogger(__name__)

GitRunner = Callable[[list[str]], str | None]

# https://host/owner/repo(.git), ssh://git@host[:port]/owner/repo(.git), git@host:owner/repo(.git)
_URL_RE = re.compile(r"^[a-z][a-z0-9+.-]*://[^/]+/(?P<path>.+?)/?$", re.IGNORECASE)
_SCP_RE = re.compile(r"^(?:[^@/]+@)?[^:/]+:(?P<path>.+?)/?$")


@runtime_checkable
class BuildMetadataLookup(Protocol):
    """Host build system lookups; each may raise InferenceError independently."""

    def infer_account(self) -> str: ...

    def infer_repo(self) -> str: ...

    def infer_commit_sha(self) -> str: ...

    def infer_credentials_id(self) -> str | None: ...

    def infer_result_url(self) -> str: ...


def parse_origin_url(url: str) -> tuple[str, str]:
    """Split a git remote URL into (account, repo).

    Raises InferenceError when the URL does not name an owner and a repo.
    """
    url = url.strip()
    match = _URL_RE.match(url) or _SCP_RE.match(url)
    if not match:
        raise InferenceError(f"Unrecognised git remote URL: {url!r}")
    parts = [p for p in match.group("path").split("/") if p]
    if len(parts) < 2:
        raise InferenceError(f"Git remote URL has no owner/repo path: {url!r}")
    account, repo = parts[-2], parts[-1]
    repo = repo.removesuffix(".git")
    if not account or not repo:
        raise InferenceError(f"Git remote URL has no owner/repo path: {url!r}")
    return account, repo


def run_git(args: list[str], cwd: str | None = None) -> str | None:
    """Run a git command and return its stripped stdout, or None if it failed."""
    try:
        proc = subprocess.run(
            ["git", *args],
            cwd=cwd,
            capture_output=True,
            text=True,
            timeout=10,
        )
    except (OSError, subprocess.TimeoutExpired) as exc:
        logger.debug("git %s could not run: %s", " ".join(args), exc)
        return None
    if proc.returncode != 0:
        logger.debug("git %s exited %d: %s", " ".join(args), proc.returncode, proc.stderr.strip())
        return None
    return proc.stdout.strip() or None


class EnvBuildMetadata:
    """Infers build metadata the way GitHub Actions and Jenkins expose it."""

    def __init__(
        self,
        env: Mapping[str, str] | None = None,
        *,
        git: GitRunner | None = None,
        cwd: str | None = None,
    ) -> None:
        self._env = os.environ if env is None else env
        self._git: GitRunner = git or (lambda args: run_git(args, cwd=cwd))
        self._origin: tuple[str, str] | None = None

    def _owner_and_repo(self) -> tuple[str, str]:
        if self._origin is not None:
            return self._origin

        slug = self._env.get("GITHUB_REPOSITORY", "")
        if slug.count("/") == 1 and all(slug.split("/")):
            account, repo = slug.split("/")
            self._origin = (account, repo)
            return self._origin

        url = self._env.get("GIT_URL") or self._git(["remote", "get-url", "origin"])
        if not url:
            raise InferenceError("No GITHUB_REPOSITORY, GIT_URL or git origin remote available")
        self._origin = parse_origin_url(url)
        return self._origin

    def infer_account(self) -> str:
        return self._owner_and_repo()[0]

    def infer_repo(self) -> str:
        return self._owner_and_repo()[1]

    def infer_commit_sha(self) -> str:
        """Prefer the pull request head revision over a merge commit."""
        event_type, payload = parse_github_event(self._env)
        if sha := extract_pr_head_sha(payload):
            logger.debug("Using pull request head %s from %s event", sha, event_type.value)
            return sha
        if sha := self._env.get("ghprbActualCommit"):
            return sha
        if sha := self._env.get("GITHUB_SHA"):
            return sha
        if sha := self._git(["rev-parse", "HEAD"]):
            return sha
        raise InferenceError("No commit revision available from the build")

    def infer_credentials_id(self) -> str | None:
        if cred_id := self._env.get("STATUSWRAP_CREDENTIALS_ID"):
            return cred_id
        if self._env.get("GITHUB_TOKEN"):
            return GITHUB_TOKEN_ID
        return None

    def infer_result_url(self) -> str:
        if url := self._env.get("BUILD_URL"):
            return url
        server = self._env.get("GITHUB_SERVER_URL", "")
        slug = self._env.get("GITHUB_REPOSITORY", "")
        run_id = self._env.get("GITHUB_RUN_ID", "")
        if server and slug and run_id:
            return f"{server.rstrip('/')}/{slug}/actions/runs/{run_id}"
        return ""
