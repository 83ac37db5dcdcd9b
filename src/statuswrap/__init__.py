"""statuswrap — wrap build steps with GitHub commit statuses.

Usage:
    import statuswrap

    async def build(env):
        ...

    await statuswrap.run_wrapped(build, explicit=statuswrap.PartialContext(sha="abc123"))
"""

from statuswrap.ci.client import CommitHandle, GitHubStatusClient, RepositoryHandle, StatusClient
from statuswrap.ci.lifecycle import CancellationHandler, LifecycleController
from statuswrap.ci.metadata import BuildMetadataLookup, EnvBuildMetadata
from statuswrap.ci.overlay import EnvironmentOverlay, with_overrides
from statuswrap.ci.resolver import resolve_context
from statuswrap.ci.runner import run_wrapped
from statuswrap.types.context import CommitState, Outcome, PartialContext, StatusContext
from statuswrap.types.errors import (
    InferenceError,
    ResolutionError,
    SetupError,
    StatusUpdateError,
    StatusWrapError,
    WorkFailedError,
    WorkInterruptedError,
)

__version__ = "0.1.0"

__all__ = [
    # Core API
    "run_wrapped",
    "resolve_context",
    "with_overrides",
    "LifecycleController",
    "CancellationHandler",
    # Collaborators
    "BuildMetadataLookup",
    "EnvBuildMetadata",
    "GitHubStatusClient",
    "StatusClient",
    "RepositoryHandle",
    "CommitHandle",
    # Types
    "CommitState",
    "EnvironmentOverlay",
    "Outcome",
    "PartialContext",
    "StatusContext",
    # Errors
    "InferenceError",
    "ResolutionError",
    "SetupError",
    "StatusUpdateError",
    "StatusWrapError",
    "WorkFailedError",
    "WorkInterruptedError",
]
