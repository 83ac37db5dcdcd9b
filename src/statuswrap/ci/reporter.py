"""StatusReporter — commit status lifecycle for one invocation."""

from __future__ import annotations

import logging
from collections.abc import Callable

from statuswrap.ci.client import CommitHandle, RepositoryHandle, StatusClient
from statuswrap.ci.github import GitHubAPIError
from statuswrap.observability.tracing import span
from statuswrap.types.context import CommitState, Outcome, StatusContext
from statuswrap.types.errors import StatusUpdateError

logger = logging.getLogger(__name__)

StatusListener = Callable[[CommitState, StatusContext, str], None]


class StatusReporter:
    """Sends PENDING once, then exactly one terminal state.

    Transitions only move forward; a second PENDING, a terminal state
    before PENDING or a second terminal state raise RuntimeError without
    touching the network.
    """

    def __init__(
        self,
        client: StatusClient,
        context: StatusContext,
        repository: RepositoryHandle,
        commit: CommitHandle,
        *,
        listener: StatusListener | None = None,
    ) -> None:
        self._client = client
        self._context = context
        self._repository = repository
        self._commit = commit
        self._listener = listener
        self._sent: list[CommitState] = []

    @property
    def sent(self) -> tuple[CommitState, ...]:
        """States attempted so far, in order."""
        return tuple(self._sent)

    async def start(self) -> None:
        """Mark the commit PENDING."""
        if self._sent:
            raise RuntimeError(f"PENDING already sent (states so far: {self._sent})")
        await self._send(CommitState.PENDING)

    async def complete(self, state: CommitState, *, outcome: Outcome | None = None) -> None:
        """Send the terminal *state*."""
        if not state.is_terminal:
            raise ValueError(f"{state.name} is not a terminal state")
        if self._sent != [CommitState.PENDING]:
            raise RuntimeError(f"Cannot send {state.name} after {self._sent}")
        await self._send(state, outcome=outcome)

    async def _send(self, state: CommitState, *, outcome: Outcome | None = None) -> None:
        # Recorded before the call so a failed attempt still counts.
        self._sent.append(state)
        ctx = self._context
        logger.info(
            "Setting %s status for %s on commit %s", state.name, ctx.label, self._commit.sha,
        )
        if self._listener is not None:
            self._listener(state, ctx, self._commit.sha)

        with span("statuswrap.set_status", {
            "statuswrap.state": state.value,
            "statuswrap.repository": ctx.full_name,
            "statuswrap.sha": self._commit.sha,
        }):
            try:
                await self._client.set_status(
                    self._repository,
                    self._commit,
                    state,
                    ctx.target_url,
                    ctx.description,
                    ctx.label,
                )
            except GitHubAPIError as exc:
                raise StatusUpdateError(
                    f"Failed to set {state.name} status on {ctx.full_name}@{self._commit.sha}: {exc}",
                    state=state,
                    outcome=outcome,
                ) from exc
