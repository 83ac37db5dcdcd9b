"""CommandWork — a shell command as the enclosed unit of work."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping

from statuswrap.types.errors import WorkFailedError

logger = logging.getLogger(__name__)


class CommandWork:
    """Runs *command* through the shell with the overlay as its environment.

    Output is inherited from the parent process so build logs stream as
    usual. A non-zero exit raises WorkFailedError. When cancelled, the
    process is terminated (then killed after *kill_after* seconds) before
    the cancellation propagates.
    """

    def __init__(self, command: str, *, cwd: str | None = None, kill_after: float = 10.0) -> None:
        if not command.strip():
            raise ValueError("CommandWork requires a non-empty command")
        self._command = command
        self._cwd = cwd
        self._kill_after = kill_after

    async def __call__(self, env: Mapping[str, str]) -> int:
        logger.debug("Running enclosed command: %s", self._command)
        try:
            proc = await asyncio.create_subprocess_shell(
                self._command,
                cwd=self._cwd,
                env=dict(env),
            )
        except OSError as exc:
            raise WorkFailedError(f"Failed to start command: {exc}") from exc

        try:
            exit_code = await proc.wait()
        except asyncio.CancelledError:
            await self._terminate(proc)
            raise

        if exit_code != 0:
            raise WorkFailedError(
                f"Command exited with code {exit_code}: {self._command}",
                exit_code=exit_code,
            )
        return exit_code

    async def _terminate(self, proc: asyncio.subprocess.Process) -> None:
        if proc.returncode is not None:
            return
        try:
            proc.terminate()
        except ProcessLookupError:
            return
        try:
            await asyncio.wait_for(proc.wait(), timeout=self._kill_after)
        except TimeoutError:
            try:
                proc.kill()
                await proc.wait()
            except ProcessLookupError:
                pass
