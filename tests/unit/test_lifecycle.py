"""Tests for the status lifecycle controller and cancellation."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from statuswrap.ci.github import NetworkError, NotFoundError
from statuswrap.ci.lifecycle import LifecycleController
from statuswrap.ci.runner import run_wrapped
from statuswrap.types.context import CommitState, PartialContext, StatusContext
from statuswrap.types.errors import (
    ResolutionError,
    SetupError,
    StatusUpdateError,
    WorkInterruptedError,
)
from tests.conftest import BUILD_URL, FakeMetadata, FakeStatusClient

PENDING = CommitState.PENDING
SUCCESS = CommitState.SUCCESS
FAILURE = CommitState.FAILURE


async def _ok(env):
    return "built"


async def _boom(env):
    raise ValueError("tests failed")


# ---------------------------------------------------------------------------
# Happy and failing work
# ---------------------------------------------------------------------------


class TestLifecycleOutcomes:
    @pytest.mark.asyncio
    async def test_success_sends_pending_then_success(self, status_context, fake_client) -> None:
        controller = LifecycleController(status_context, fake_client, base_env={})
        result = await controller.run(_ok)

        assert result == "built"
        assert fake_client.states == [PENDING, SUCCESS]
        assert controller.sent_states == (PENDING, SUCCESS)

    @pytest.mark.asyncio
    async def test_failure_sends_pending_then_failure_and_reraises(
        self, status_context, fake_client,
    ) -> None:
        controller = LifecycleController(status_context, fake_client, base_env={})
        with pytest.raises(ValueError, match="tests failed"):
            await controller.run(_boom)

        assert fake_client.states == [PENDING, FAILURE]

    @pytest.mark.asyncio
    async def test_work_raising_when_called_still_records_failure(
        self, status_context, fake_client,
    ) -> None:
        async def build(target):
            return target

        controller = LifecycleController(status_context, fake_client, base_env={})
        with pytest.raises(KeyError, match="MISSING"):
            await controller.run(lambda env: build(env["MISSING"]))

        assert fake_client.states == [PENDING, FAILURE]

    @pytest.mark.asyncio
    async def test_non_awaitable_work_records_failure(self, status_context, fake_client) -> None:
        controller = LifecycleController(status_context, fake_client, base_env={})
        with pytest.raises(TypeError):
            await controller.run(lambda env: "not a coroutine")

        assert fake_client.states == [PENDING, FAILURE]

    @pytest.mark.asyncio
    async def test_resolution_happens_before_pending(self, status_context, fake_client) -> None:
        controller = LifecycleController(status_context, fake_client, base_env={})
        await controller.run(_ok)

        names = [c[0] for c in fake_client.calls]
        assert names == ["resolve_repository", "resolve_commit", "set_status", "set_status"]

    @pytest.mark.asyncio
    async def test_pending_acknowledged_before_work_starts(self, status_context) -> None:
        client = FakeStatusClient(delay_states={PENDING: 0.05})
        seen_states: list[list[CommitState]] = []

        async def work(env):
            seen_states.append(list(client.states))
            return None

        await LifecycleController(status_context, client, base_env={}).run(work)
        assert seen_states == [[PENDING]]

    @pytest.mark.asyncio
    async def test_status_listener_sees_every_update(self, status_context, fake_client) -> None:
        seen: list[tuple[CommitState, str]] = []
        controller = LifecycleController(
            status_context, fake_client, base_env={},
            on_status=lambda state, ctx, sha: seen.append((state, sha)),
        )
        await controller.run(_ok)
        assert seen == [(PENDING, "abc123"), (SUCCESS, "abc123")]

    @pytest.mark.asyncio
    async def test_run_only_once(self, status_context, fake_client) -> None:
        controller = LifecycleController(status_context, fake_client, base_env={})
        await controller.run(_ok)
        with pytest.raises(RuntimeError):
            await controller.run(_ok)
        assert fake_client.states == [PENDING, SUCCESS]


# ---------------------------------------------------------------------------
# Setup and status-update failures
# ---------------------------------------------------------------------------


class TestLifecycleErrors:
    @pytest.mark.asyncio
    async def test_invalid_context_makes_no_calls(self, fake_client) -> None:
        ctx = StatusContext(account="acme", repo="widget", sha="")
        controller = LifecycleController(ctx, fake_client, base_env={})
        with pytest.raises(ResolutionError):
            await controller.run(_ok)
        assert fake_client.calls == []

    @pytest.mark.asyncio
    async def test_repository_not_found_is_setup_error(self, status_context) -> None:
        client = FakeStatusClient(fail_on={"resolve_repository": NotFoundError("nope", status_code=404)})
        ran = False

        async def work(env):
            nonlocal ran
            ran = True

        with pytest.raises(SetupError) as info:
            await LifecycleController(status_context, client, base_env={}).run(work)

        assert isinstance(info.value.__cause__, NotFoundError)
        assert client.states == []
        assert not ran

    @pytest.mark.asyncio
    async def test_commit_not_found_is_setup_error(self, status_context) -> None:
        client = FakeStatusClient(fail_on={"resolve_commit": NotFoundError("no commit", status_code=404)})
        with pytest.raises(SetupError):
            await LifecycleController(status_context, client, base_env={}).run(_ok)
        assert client.states == []

    @pytest.mark.asyncio
    async def test_pending_failure_never_starts_work(self, status_context) -> None:
        client = FakeStatusClient(fail_states={PENDING: NetworkError("down")})
        ran = False

        async def work(env):
            nonlocal ran
            ran = True

        with pytest.raises(StatusUpdateError) as info:
            await LifecycleController(status_context, client, base_env={}).run(work)

        assert info.value.state is PENDING
        assert client.states == [PENDING]
        assert not ran

    @pytest.mark.asyncio
    async def test_success_update_failure_surfaces_with_outcome(self, status_context) -> None:
        client = FakeStatusClient(fail_states={SUCCESS: NetworkError("down")})
        with pytest.raises(StatusUpdateError) as info:
            await LifecycleController(status_context, client, base_env={}).run(_ok)

        err = info.value
        assert err.state is SUCCESS
        assert err.outcome is not None and err.outcome.ok
        assert err.outcome.value == "built"
        assert isinstance(err.__cause__, NetworkError)
        assert client.states == [PENDING, SUCCESS]

    @pytest.mark.asyncio
    async def test_failure_update_failure_keeps_both_errors(self, status_context) -> None:
        client = FakeStatusClient(fail_states={FAILURE: NetworkError("down")})
        with pytest.raises(ExceptionGroup) as info:
            await LifecycleController(status_context, client, base_env={}).run(_boom)

        kinds = {type(e) for e in info.value.exceptions}
        assert kinds == {ValueError, StatusUpdateError}
        assert client.states == [PENDING, FAILURE]


# ---------------------------------------------------------------------------
# Environment overlay seen by the work
# ---------------------------------------------------------------------------


class TestWorkEnvironment:
    @pytest.mark.asyncio
    async def test_work_sees_context_and_base(self, status_context, fake_client) -> None:
        base = {"PATH": "/usr/bin", "STATUSWRAP_SHA": "stale"}
        seen = {}

        async def work(env):
            seen.update(env)

        await LifecycleController(status_context, fake_client, base_env=base).run(work)

        assert seen["STATUSWRAP_SHA"] == "abc123"
        assert seen["STATUSWRAP_ACCOUNT"] == "acme"
        assert seen["STATUSWRAP_TARGET_URL"] == BUILD_URL
        assert seen["GIT_COMMIT"] == "abc123"
        assert seen["PATH"] == "/usr/bin"
        assert base == {"PATH": "/usr/bin", "STATUSWRAP_SHA": "stale"}

    @pytest.mark.asyncio
    async def test_existing_git_commit_is_kept(self, status_context, fake_client) -> None:
        seen = {}

        async def work(env):
            seen.update(env)

        base = {"GIT_COMMIT": "fff999"}
        await LifecycleController(status_context, fake_client, base_env=base).run(work)
        assert seen["GIT_COMMIT"] == "fff999"

    @pytest.mark.asyncio
    async def test_sibling_invocations_do_not_interfere(self, fake_client) -> None:
        base = {"SHARED": "1"}
        seen: dict[str, str] = {}

        async def work(env):
            await asyncio.sleep(0)
            seen[env["STATUSWRAP_CONTEXT"]] = env["STATUSWRAP_SHA"]

        a = LifecycleController(
            StatusContext(account="acme", repo="widget", sha="aaa", label="lint"),
            FakeStatusClient(), base_env=base,
        )
        b = LifecycleController(
            StatusContext(account="acme", repo="widget", sha="bbb", label="test"),
            FakeStatusClient(), base_env=base,
        )
        await asyncio.gather(a.run(work), b.run(work))

        assert seen == {"lint": "aaa", "test": "bbb"}
        assert base == {"SHARED": "1"}


# ---------------------------------------------------------------------------
# Cancellation
# ---------------------------------------------------------------------------


class TestCancellation:
    @pytest.mark.asyncio
    async def test_stop_during_work_records_failure(self, status_context, fake_client) -> None:
        controller = LifecycleController(status_context, fake_client, base_env={})
        started = asyncio.Event()

        async def work(env):
            started.set()
            await asyncio.sleep(30)

        task = asyncio.create_task(controller.run(work))
        await started.wait()
        controller.stop("aborted by user")

        with pytest.raises(WorkInterruptedError) as info:
            await asyncio.wait_for(task, timeout=5)

        assert info.value.cause == "aborted by user"
        assert fake_client.states == [PENDING, FAILURE]

    @pytest.mark.asyncio
    async def test_work_handling_its_own_stop_goes_through_failure(
        self, status_context, fake_client,
    ) -> None:
        controller = LifecycleController(status_context, fake_client, base_env={})
        started = asyncio.Event()

        async def work(env):
            started.set()
            try:
                await asyncio.sleep(30)
            except asyncio.CancelledError:
                raise RuntimeError("killed")

        task = asyncio.create_task(controller.run(work))
        await started.wait()
        controller.stop()

        with pytest.raises(RuntimeError, match="killed"):
            await asyncio.wait_for(task, timeout=5)
        assert fake_client.states == [PENDING, FAILURE]

    @pytest.mark.asyncio
    async def test_stop_during_pending_sends_no_terminal_status(self, status_context) -> None:
        client = FakeStatusClient(delay_states={PENDING: 30})
        controller = LifecycleController(status_context, client, base_env={})
        ran = False

        async def work(env):
            nonlocal ran
            ran = True

        task = asyncio.create_task(controller.run(work))
        await client.status_entered.wait()
        controller.stop("aborted")

        with pytest.raises(asyncio.CancelledError):
            await asyncio.wait_for(task, timeout=5)
        assert client.states == [PENDING]
        assert not ran

    @pytest.mark.asyncio
    async def test_stop_before_run_makes_no_calls(self, status_context, fake_client) -> None:
        controller = LifecycleController(status_context, fake_client, base_env={})
        controller.stop("too early")
        with pytest.raises(asyncio.CancelledError):
            await controller.run(_ok)
        assert fake_client.calls == []

    @pytest.mark.asyncio
    async def test_terminal_status_bounded_after_stop(self, status_context) -> None:
        client = FakeStatusClient(delay_states={FAILURE: 30})
        controller = LifecycleController(status_context, client, base_env={}, stop_timeout=0.05)
        started = asyncio.Event()

        async def work(env):
            started.set()
            await asyncio.sleep(30)

        task = asyncio.create_task(controller.run(work))
        await started.wait()
        controller.stop("aborted")

        with pytest.raises(ExceptionGroup) as info:
            await asyncio.wait_for(task, timeout=5)
        kinds = {type(e) for e in info.value.exceptions}
        assert kinds == {WorkInterruptedError, StatusUpdateError}
        assert client.states == [PENDING, FAILURE]

    @pytest.mark.asyncio
    async def test_outer_cancellation_propagates_without_status(
        self, status_context, fake_client,
    ) -> None:
        controller = LifecycleController(status_context, fake_client, base_env={})
        started = asyncio.Event()

        async def work(env):
            started.set()
            await asyncio.sleep(30)

        task = asyncio.create_task(controller.run(work))
        await started.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert fake_client.states == [PENDING]


# ---------------------------------------------------------------------------
# End-to-end through run_wrapped
# ---------------------------------------------------------------------------


class TestRunWrapped:
    @pytest.mark.asyncio
    async def test_explicit_context_end_to_end(self, tmp_path: Path, monkeypatch) -> None:
        monkeypatch.chdir(tmp_path)
        client = FakeStatusClient()
        explicit = PartialContext(
            account="acme", repo="widget", sha="abc123", credentials_id="", target_url="",
        )

        result = await run_wrapped(
            _ok, explicit=explicit, env={}, metadata=FakeMetadata(), client=client,
        )

        assert result == "built"
        assert client.calls == [
            ("resolve_repository", "acme", "widget"),
            ("resolve_commit", "acme/widget", "abc123"),
            ("set_status", PENDING, BUILD_URL, "gitStatusWrapper"),
            ("set_status", SUCCESS, BUILD_URL, "gitStatusWrapper"),
        ]

    @pytest.mark.asyncio
    async def test_missing_sha_fails_before_any_call(self, tmp_path: Path, monkeypatch) -> None:
        monkeypatch.chdir(tmp_path)
        client = FakeStatusClient()
        explicit = PartialContext(account="acme", repo="widget")

        with pytest.raises(ResolutionError, match="Could not infer exact commit"):
            await run_wrapped(
                _ok, explicit=explicit, env={}, metadata=FakeMetadata(), client=client,
            )
        assert client.calls == []

    @pytest.mark.asyncio
    async def test_env_and_config_file_fill_gaps(self, tmp_path: Path, monkeypatch) -> None:
        monkeypatch.chdir(tmp_path)
        (tmp_path / ".statuswrap").mkdir()
        (tmp_path / ".statuswrap" / "config.yml").write_text("context: lint\naccount: from-file\n")
        client = FakeStatusClient()
        env = {"STATUSWRAP_ACCOUNT": "from-env", "STATUSWRAP_REPO": "widget", "GIT_COMMIT": "c0ffee"}

        await run_wrapped(_ok, env=env, metadata=FakeMetadata(), client=client)

        assert client.calls[0] == ("resolve_repository", "from-env", "widget")
        assert client.calls[1] == ("resolve_commit", "from-env/widget", "c0ffee")
        assert client.calls[2][3] == "lint"
