"""Context and state types for one status-wrapped invocation."""

from __future__ import annotations

from dataclasses import dataclass, fields
from enum import Enum
from typing import Any

from statuswrap.types.errors import ResolutionError

DEFAULT_GITHUB_API_URL = "https://api.github.com"
DEFAULT_LABEL = "gitStatusWrapper"

UNABLE_TO_INFER_DATA = (
    "Unable to infer git data, please specify repo, credentialsId, account and sha values"
)
UNABLE_TO_INFER_COMMIT = "Could not infer exact commit to use, please specify one"


class CommitState(Enum):
    """GitHub commit status states."""

    PENDING = "pending"
    SUCCESS = "success"
    FAILURE = "failure"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self is not CommitState.PENDING


@dataclass(frozen=True, slots=True)
class PartialContext:
    """Explicitly configured values. ``None`` or ``""`` means "not given"."""

    credentials_id: str | None = None
    api_url: str | None = None
    account: str | None = None
    repo: str | None = None
    sha: str | None = None
    description: str | None = None
    target_url: str | None = None
    label: str | None = None

    def merged(self, fallback: PartialContext) -> PartialContext:
        """Return a copy where empty fields are taken from *fallback*."""
        values = {
            f.name: getattr(self, f.name) or getattr(fallback, f.name)
            for f in fields(self)
        }
        return PartialContext(**values)

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> PartialContext:
        """Build from a dict, ignoring unknown keys and stringifying values."""
        names = {f.name for f in fields(cls)}
        return cls(**{
            k: str(v) for k, v in data.items() if k in names and v is not None
        })


@dataclass(frozen=True, slots=True)
class StatusContext:
    """Fully resolved context. Immutable once built."""

    account: str
    repo: str
    sha: str
    credentials_id: str = ""
    api_url: str = DEFAULT_GITHUB_API_URL
    description: str = ""
    target_url: str = ""
    label: str = DEFAULT_LABEL

    @property
    def full_name(self) -> str:
        return f"{self.account}/{self.repo}"

    def validate(self) -> None:
        """Raise ResolutionError unless account, repo and sha are all set."""
        if not self.account or not self.repo:
            raise ResolutionError(UNABLE_TO_INFER_DATA)
        if not self.sha:
            raise ResolutionError(UNABLE_TO_INFER_COMMIT)


@dataclass(frozen=True, slots=True)
class Outcome:
    """Terminal result of the enclosed work: a value or an error."""

    value: Any = None
    error: BaseException | None = None

    @classmethod
    def success(cls, value: Any = None) -> Outcome:
        return cls(value=value)

    @classmethod
    def failure(cls, error: BaseException) -> Outcome:
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> Any:
        """Return the value, or raise the captured error."""
        if self.error is not None:
            raise self.error
        return self.value
