"""Public types for statuswrap."""

from statuswrap.types.context import (
    DEFAULT_GITHUB_API_URL,
    DEFAULT_LABEL,
    CommitState,
    Outcome,
    PartialContext,
    StatusContext,
)
from statuswrap.types.errors import (
    InferenceError,
    ResolutionError,
    SetupError,
    StatusUpdateError,
    StatusWrapError,
    WorkFailedError,
    WorkInterruptedError,
)

__all__ = [
    "DEFAULT_GITHUB_API_URL",
    "DEFAULT_LABEL",
    "CommitState",
    "InferenceError",
    "Outcome",
    "PartialContext",
    "ResolutionError",
    "SetupError",
    "StatusContext",
    "StatusUpdateError",
    "StatusWrapError",
    "WorkFailedError",
    "WorkInterruptedError",
]
