"""StatusClient protocol and its GitHub implementation."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

import httpx

from statuswrap.ci.github import AuthError, GitHubClient, GitHubConfig
from statuswrap.core.credentials import CredentialStore
from statuswrap.types.context import CommitState

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RepositoryHandle:
    """A repository confirmed to exist for the given credentials."""

    account: str
    repo: str
    api_url: str
    credentials_id: str = ""
    full_name: str = ""
    client: GitHubClient | None = field(default=None, repr=False, compare=False)


@dataclass(frozen=True, slots=True)
class CommitHandle:
    """A commit confirmed to exist in its repository."""

    sha: str
    url: str = ""


@runtime_checkable
class StatusClient(Protocol):
    """What the lifecycle needs from a commit-status backend."""

    async def resolve_repository(
        self,
        api_url: str,
        credentials_id: str,
        account: str,
        repo: str,
        proxy: str | None = None,
    ) -> RepositoryHandle: ...

    async def resolve_commit(self, repository: RepositoryHandle, sha: str) -> CommitHandle: ...

    async def set_status(
        self,
        repository: RepositoryHandle,
        commit: CommitHandle,
        state: CommitState,
        target_url: str,
        description: str,
        label: str,
    ) -> None: ...


class GitHubStatusClient:
    """StatusClient backed by the GitHub REST API.

    Owns the GitHubClient instances it creates; use as an async context
    manager (or call ``aclose``) to release their connection pools.
    """

    def __init__(
        self,
        credentials: CredentialStore | None = None,
        *,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._credentials = credentials or CredentialStore()
        self._timeout = timeout
        self._transport = transport
        self._clients: list[GitHubClient] = []

    async def __aenter__(self) -> GitHubStatusClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        clients, self._clients = self._clients, []
        for client in clients:
            await client.aclose()

    async def connect(
        self, api_url: str, credentials_id: str, proxy: str | None = None,
    ) -> GitHubClient:
        """Open a pooled client for *api_url* authenticated with *credentials_id*."""
        token = ""
        if credentials_id:
            creds = self._credentials.lookup(credentials_id)
            if creds is None:
                raise AuthError(f"No credentials found for id '{credentials_id}'")
            token = creds.token
        config = GitHubConfig(token=token, api_url=api_url, proxy=proxy, timeout=self._timeout)
        client = GitHubClient(config, transport=self._transport)
        await client.__aenter__()
        self._clients.append(client)
        return client

    async def check_connection(
        self, api_url: str, credentials_id: str, proxy: str | None = None,
    ) -> str:
        """Validate credentials against *api_url*; returns the login used."""
        client = await self.connect(api_url, credentials_id, proxy)
        if not credentials_id:
            await client.get_rate_limit()
            return "anonymous"
        user = await client.get_authenticated_user()
        return user.get("login", "")

    async def resolve_repository(
        self,
        api_url: str,
        credentials_id: str,
        account: str,
        repo: str,
        proxy: str | None = None,
    ) -> RepositoryHandle:
        client = await self.connect(api_url, credentials_id, proxy)
        data = await client.get_repo(account, repo)
        logger.debug("Resolved repository %s/%s on %s", account, repo, api_url)
        return RepositoryHandle(
            account=account,
            repo=repo,
            api_url=api_url,
            credentials_id=credentials_id,
            full_name=data.get("full_name", f"{account}/{repo}"),
            client=client,
        )

    async def resolve_commit(self, repository: RepositoryHandle, sha: str) -> CommitHandle:
        client = self._client_for(repository)
        data = await client.get_commit(repository.account, repository.repo, sha)
        return CommitHandle(sha=data.get("sha", sha), url=data.get("html_url", ""))

    async def set_status(
        self,
        repository: RepositoryHandle,
        commit: CommitHandle,
        state: CommitState,
        target_url: str,
        description: str,
        label: str,
    ) -> None:
        client = self._client_for(repository)
        await client.create_commit_status(
            repository.account,
            repository.repo,
            commit.sha,
            state=state.value,
            context=label,
            target_url=target_url,
            description=description,
        )

    def _client_for(self, repository: RepositoryHandle) -> GitHubClient:
        if repository.client is None:
            raise ValueError(f"Repository handle {repository.full_name!r} has no client")
        return repository.client
