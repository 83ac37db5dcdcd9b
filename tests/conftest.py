"""Test fixtures including FakeStatusClient for deterministic lifecycle tests."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any

import pytest

from statuswrap.ci.client import CommitHandle, RepositoryHandle
from statuswrap.types.context import CommitState, StatusContext
from statuswrap.types.errors import InferenceError

BUILD_URL = "https://ci.example.com/job/widget/7/"


class FakeStatusClient:
    """A StatusClient that records every call instead of talking to GitHub.

    Usage:
        client = FakeStatusClient(fail_states={CommitState.SUCCESS: NetworkError("down")})
        ...
        assert client.states == [CommitState.PENDING, CommitState.SUCCESS]
    """

    def __init__(
        self,
        *,
        fail_on: dict[str, Exception] | None = None,
        fail_states: dict[CommitState, Exception] | None = None,
        delay_states: dict[CommitState, float] | None = None,
    ) -> None:
        self._fail_on = dict(fail_on or {})
        self._fail_states = dict(fail_states or {})
        self._delay_states = dict(delay_states or {})
        self.calls: list[tuple[Any, ...]] = []
        self.status_entered = asyncio.Event()

    async def resolve_repository(
        self,
        api_url: str,
        credentials_id: str,
        account: str,
        repo: str,
        proxy: str | None = None,
    ) -> RepositoryHandle:
        self.calls.append(("resolve_repository", account, repo))
        if exc := self._fail_on.get("resolve_repository"):
            raise exc
        return RepositoryHandle(
            account=account,
            repo=repo,
            api_url=api_url,
            credentials_id=credentials_id,
            full_name=f"{account}/{repo}",
        )

    async def resolve_commit(self, repository: RepositoryHandle, sha: str) -> CommitHandle:
        self.calls.append(("resolve_commit", repository.full_name, sha))
        if exc := self._fail_on.get("resolve_commit"):
            raise exc
        return CommitHandle(sha=sha)

    async def set_status(
        self,
        repository: RepositoryHandle,
        commit: CommitHandle,
        state: CommitState,
        target_url: str,
        description: str,
        label: str,
    ) -> None:
        self.calls.append(("set_status", state, target_url, label))
        self.status_entered.set()
        if delay := self._delay_states.get(state):
            await asyncio.sleep(delay)
        if exc := self._fail_states.get(state):
            raise exc

    @property
    def states(self) -> list[CommitState]:
        return [c[1] for c in self.calls if c[0] == "set_status"]


@dataclass
class FakeMetadata:
    """Scripted BuildMetadataLookup. ``None`` means the lookup fails."""

    account: str | None = None
    repo: str | None = None
    sha: str | None = None
    credentials_id: str | None = None
    result_url: str = BUILD_URL
    calls: list[str] = field(default_factory=list)

    def _value(self, name: str) -> str:
        self.calls.append(name)
        value = getattr(self, name)
        if value is None:
            raise InferenceError(f"cannot infer {name}")
        return value

    def infer_account(self) -> str:
        return self._value("account")

    def infer_repo(self) -> str:
        return self._value("repo")

    def infer_commit_sha(self) -> str:
        return self._value("sha")

    def infer_credentials_id(self) -> str | None:
        self.calls.append("credentials_id")
        return self.credentials_id

    def infer_result_url(self) -> str:
        self.calls.append("result_url")
        return self.result_url


@pytest.fixture
def status_context() -> StatusContext:
    return StatusContext(
        account="acme",
        repo="widget",
        sha="abc123",
        target_url=BUILD_URL,
    )


@pytest.fixture
def fake_client() -> FakeStatusClient:
    return FakeStatusClient()


@pytest.fixture
def fake_metadata() -> FakeMetadata:
    return FakeMetadata(account="acme", repo="widget", sha="abc123")
