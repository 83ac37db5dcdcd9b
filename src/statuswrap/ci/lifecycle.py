"""LifecycleController — wraps enclosed work with commit statuses.

One invocation goes through these steps in order:

1. resolve the repository and commit handles (``SetupError`` on failure)
2. set PENDING (``StatusUpdateError`` on failure; the work never starts)
3. run the work under an environment overlay and a cancellation scope
4. set SUCCESS or FAILURE exactly once, then hand back the work's result
   or re-raise its error

A stop request is forwarded into the running work. The work's resulting
failure goes through the normal FAILURE path; a stop that arrives before
the work started cancels the in-flight network call instead, and no
terminal status is sent.
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Awaitable, Callable, Mapping
from typing import Any, TypeVar

from statuswrap.ci.client import StatusClient
from statuswrap.ci.github import GitHubAPIError
from statuswrap.ci.overlay import EnvironmentOverlay, context_overrides, with_overrides
from statuswrap.ci.reporter import StatusListener, StatusReporter
from statuswrap.observability.tracing import span
from statuswrap.types.context import CommitState, Outcome, StatusContext
from statuswrap.types.errors import SetupError, StatusUpdateError, WorkInterruptedError

logger = logging.getLogger(__name__)

T = TypeVar("T")

Work = Callable[[EnvironmentOverlay], Awaitable[T]]

DEFAULT_STOP_TIMEOUT = 10.0


class CancellationHandler:
    """Forwards an external stop into whatever the lifecycle is awaiting.

    While the work runs, the work task is cancelled. Before or after it,
    the owning lifecycle task is cancelled so it never sits on a network
    call once a stop was requested. No status is ever sent from here.
    """

    def __init__(self) -> None:
        self._owner: asyncio.Task[Any] | None = None
        self._work: asyncio.Task[Any] | None = None
        self._requested = False
        self._cause: BaseException | str | None = None

    @property
    def stop_requested(self) -> bool:
        return self._requested

    def bind(self, owner: asyncio.Task[Any] | None) -> None:
        self._owner = owner

    def stop(self, cause: BaseException | str | None = None) -> None:
        """Request a stop; safe to call from a signal handler on the loop thread."""
        self._requested = True
        if cause is not None:
            self._cause = cause
        msg = str(cause) if cause is not None else None
        if self._work is not None and not self._work.done():
            logger.info("Stopping enclosed work: %s", msg or "stop requested")
            self._work.cancel(msg)
        elif self._owner is not None and not self._owner.done():
            logger.info("Stopping status lifecycle: %s", msg or "stop requested")
            self._owner.cancel(msg)

    def raise_if_stopped(self) -> None:
        if self._requested:
            raise asyncio.CancelledError(str(self._cause) if self._cause else None)

    async def run_work(self, work: Work[T], env: EnvironmentOverlay) -> Outcome:
        """Run *work* as its own task and capture how it ended."""
        try:
            self._work = asyncio.ensure_future(work(env))
        except Exception as exc:
            return Outcome.failure(exc)
        try:
            value = await self._work
        except asyncio.CancelledError:
            current = asyncio.current_task()
            # Our own stop cancelled the work; the lifecycle task itself is fine.
            if self._requested and (current is None or not current.cancelling()):
                return Outcome.failure(WorkInterruptedError(self._cause))
            raise
        except Exception as exc:
            return Outcome.failure(exc)
        finally:
            self._work = None
        return Outcome.success(value)


class LifecycleController:
    """Drives one commit through PENDING then SUCCESS or FAILURE around *work*."""

    def __init__(
        self,
        context: StatusContext,
        client: StatusClient,
        *,
        base_env: Mapping[str, str] | None = None,
        proxy: str | None = None,
        on_status: StatusListener | None = None,
        stop_timeout: float = DEFAULT_STOP_TIMEOUT,
    ) -> None:
        self._context = context
        self._client = client
        self._base_env = os.environ if base_env is None else base_env
        self._proxy = proxy
        self._on_status = on_status
        self._stop_timeout = stop_timeout
        self._cancellation = CancellationHandler()
        self._reporter: StatusReporter | None = None
        self._started = False

    @property
    def context(self) -> StatusContext:
        return self._context

    @property
    def cancellation(self) -> CancellationHandler:
        return self._cancellation

    @property
    def sent_states(self) -> tuple[CommitState, ...]:
        return self._reporter.sent if self._reporter else ()

    def stop(self, cause: BaseException | str | None = None) -> None:
        self._cancellation.stop(cause)

    async def run(self, work: Work[T]) -> T:
        """Run *work* wrapped in commit statuses and return its result.

        Raises:
            ResolutionError: account, repo or sha missing (nothing sent).
            SetupError: repository or commit lookup failed (nothing sent).
            StatusUpdateError: a status call failed. After a successful work
                run, ``.outcome`` holds its result.
            ExceptionGroup: the work failed and so did the FAILURE update.
            Exception: whatever the work raised, after FAILURE was recorded.
        """
        if self._started:
            raise RuntimeError("LifecycleController.run() can only be called once")
        self._started = True
        self._cancellation.bind(asyncio.current_task())

        ctx = self._context
        with span("statuswrap.lifecycle", {
            "statuswrap.repository": ctx.full_name,
            "statuswrap.sha": ctx.sha,
            "statuswrap.label": ctx.label,
        }):
            ctx.validate()
            self._cancellation.raise_if_stopped()

            reporter = await self._setup()
            await reporter.start()

            env = with_overrides(self._base_env, context_overrides(ctx, self._base_env))
            outcome = await self._cancellation.run_work(work, env)

            await self._finish(reporter, outcome)
            return outcome.unwrap()

    async def _setup(self) -> StatusReporter:
        ctx = self._context
        try:
            repository = await self._client.resolve_repository(
                ctx.api_url, ctx.credentials_id, ctx.account, ctx.repo, self._proxy,
            )
            commit = await self._client.resolve_commit(repository, ctx.sha)
        except GitHubAPIError as exc:
            raise SetupError(f"Cannot resolve {ctx.full_name}@{ctx.sha}: {exc}") from exc

        self._reporter = StatusReporter(
            self._client, ctx, repository, commit, listener=self._on_status,
        )
        return self._reporter

    async def _finish(self, reporter: StatusReporter, outcome: Outcome) -> None:
        state = CommitState.SUCCESS if outcome.ok else CommitState.FAILURE
        try:
            await self._complete(reporter, state, outcome)
        except StatusUpdateError as exc:
            if outcome.ok:
                raise
            logger.error("Could not record FAILURE status: %s", exc)
            raise ExceptionGroup(
                "Enclosed work failed and its FAILURE status could not be set",
                [outcome.error, exc],
            ) from None

    async def _complete(self, reporter: StatusReporter, state: CommitState, outcome: Outcome) -> None:
        if not self._cancellation.stop_requested:
            await reporter.complete(state, outcome=outcome)
            return
        # A stop was requested: don't wait on the network indefinitely.
        try:
            async with asyncio.timeout(self._stop_timeout):
                await reporter.complete(state, outcome=outcome)
        except TimeoutError as exc:
            raise StatusUpdateError(
                f"Timed out after {self._stop_timeout}s setting {state.name} status after stop",
                state=state,
                outcome=outcome,
            ) from exc
