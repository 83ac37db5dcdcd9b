"""GitHubClient — httpx-based GitHub API client."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import httpx

from statuswrap.types.context import DEFAULT_GITHUB_API_URL


class GitHubAPIError(Exception):
    """A GitHub API call failed."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class NotFoundError(GitHubAPIError):
    """Repository or commit does not exist (or is invisible to the credentials)."""


class AuthError(GitHubAPIError):
    """Credentials missing, unknown or rejected."""


class NetworkError(GitHubAPIError):
    """Transport failure or unexpected HTTP status."""


@dataclass(frozen=True, slots=True)
class GitHubConfig:
    """GitHub connection configuration."""

    token: str = field(default="", repr=False)
    api_url: str = DEFAULT_GITHUB_API_URL
    proxy: str | None = None
    timeout: float = 30.0


def _raise_for_status(resp: httpx.Response) -> None:
    if resp.is_success:
        return
    message = f"GitHub API {resp.request.method} {resp.request.url} returned {resp.status_code}"
    try:
        detail = resp.json().get("message")
    except (ValueError, AttributeError):
        detail = None
    if detail:
        message = f"{message}: {detail}"
    if resp.status_code == 404:
        raise NotFoundError(message, status_code=404)
    if resp.status_code in (401, 403):
        raise AuthError(message, status_code=resp.status_code)
    raise NetworkError(message, status_code=resp.status_code)


def _json(resp: httpx.Response) -> dict[str, Any]:
    try:
        data = resp.json()
    except ValueError as exc:
        raise NetworkError(
            f"GitHub API {resp.request.method} {resp.request.url} returned a non-JSON body",
            status_code=resp.status_code,
        ) from exc
    if not isinstance(data, dict):
        raise NetworkError(
            f"GitHub API {resp.request.method} {resp.request.url} returned unexpected JSON",
            status_code=resp.status_code,
        )
    return data


class GitHubClient:
    """Lightweight GitHub API client using httpx.

    Use as an async context manager to reuse a single connection pool::

        async with GitHubClient(config) as client:
            repo = await client.get_repo("acme", "widget")
            commit = await client.get_commit("acme", "widget", "abc123")

    Individual methods also work outside the context manager (they create
    a short-lived client per call).
    """

    def __init__(
        self,
        config: GitHubConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config
        self._headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if config.token:
            self._headers["Authorization"] = f"Bearer {config.token}"
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    def _new_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            headers=self._headers,
            timeout=self._config.timeout,
            proxy=self._config.proxy,
            transport=self._transport,
        )

    async def __aenter__(self) -> GitHubClient:
        self._client = self._new_client()
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _request(
        self, method: str, path: str, *, json: dict[str, Any] | None = None,
    ) -> httpx.Response:
        url = f"{self._config.api_url.rstrip('/')}{path}"
        try:
            if self._client is not None:
                resp = await self._client.request(method, url, json=json)
            else:
                async with self._new_client() as c:
                    resp = await c.request(method, url, json=json)
        except httpx.HTTPError as exc:
            raise NetworkError(f"GitHub API {method} {url} failed: {exc}") from exc
        _raise_for_status(resp)
        return resp

    # -- Public API -------------------------------------------------------

    async def get_repo(self, owner: str, repo: str) -> dict[str, Any]:
        """Get a repository."""
        resp = await self._request("GET", f"/repos/{owner}/{repo}")
        return _json(resp)

    async def get_commit(self, owner: str, repo: str, sha: str) -> dict[str, Any]:
        """Get a commit. Short SHAs are expanded by GitHub."""
        resp = await self._request("GET", f"/repos/{owner}/{repo}/commits/{sha}")
        return _json(resp)

    async def create_commit_status(
        self,
        owner: str,
        repo: str,
        sha: str,
        *,
        state: str,
        context: str,
        target_url: str = "",
        description: str = "",
    ) -> None:
        """Create a commit status. The response body is not needed."""
        data: dict[str, Any] = {"state": state, "context": context}
        if target_url:
            data["target_url"] = target_url
        if description:
            data["description"] = description
        await self._request("POST", f"/repos/{owner}/{repo}/statuses/{sha}", json=data)

    async def get_authenticated_user(self) -> dict[str, Any]:
        """Get the user owning the token."""
        resp = await self._request("GET", "/user")
        return _json(resp)

    async def get_rate_limit(self) -> dict[str, Any]:
        """Get the rate limit status (works anonymously)."""
        resp = await self._request("GET", "/rate_limit")
        return _json(resp)
