"""Error taxonomy for the status wrapper."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from statuswrap.types.context import CommitState, Outcome


class StatusWrapError(Exception):
    """Base class for every error raised by statuswrap itself."""


class ResolutionError(StatusWrapError):
    """Required context (account, repo or sha) could not be determined.

    Raised before any network call is made, so retrying the whole
    invocation is always safe.
    """


class InferenceError(ResolutionError):
    """A single build-metadata lookup failed."""


class SetupError(StatusWrapError):
    """Repository or commit lookup failed; no status was ever sent."""


class StatusUpdateError(StatusWrapError):
    """A PENDING or terminal status call failed.

    ``outcome`` holds the enclosed work's outcome when the failed call was
    the terminal update, so a successful run whose SUCCESS status could not
    be recorded is still discoverable.
    """

    def __init__(
        self,
        message: str,
        *,
        state: CommitState,
        outcome: Outcome | None = None,
    ) -> None:
        super().__init__(message)
        self.state = state
        self.outcome = outcome


class WorkFailedError(StatusWrapError):
    """The enclosed work finished unsuccessfully."""

    def __init__(self, message: str, *, exit_code: int | None = None) -> None:
        super().__init__(message)
        self.exit_code = exit_code


class WorkInterruptedError(WorkFailedError):
    """The enclosed work was stopped from outside."""

    def __init__(self, cause: Any = None) -> None:
        reason = str(cause) if cause else "stop requested"
        super().__init__(f"Interrupted: {reason}")
        self.cause = cause
