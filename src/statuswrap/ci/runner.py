"""Runner entry point: config, resolution, client and lifecycle wired together."""

from __future__ import annotations

import asyncio
import logging
import os
import signal
from collections.abc import Mapping
from typing import TypeVar

from statuswrap.ci.client import GitHubStatusClient, StatusClient
from statuswrap.ci.config import WrapperConfig, load_wrapper_config
from statuswrap.ci.lifecycle import LifecycleController, Work
from statuswrap.ci.metadata import BuildMetadataLookup, EnvBuildMetadata
from statuswrap.ci.reporter import StatusListener
from statuswrap.ci.resolver import resolve_context
from statuswrap.core.config import load_env_config, resolve_proxy
from statuswrap.types.context import PartialContext, StatusContext

logger = logging.getLogger(__name__)

T = TypeVar("T")

_STOP_SIGNALS = (signal.SIGINT, signal.SIGTERM)


def build_explicit_context(
    explicit: PartialContext | None = None,
    *,
    env: Mapping[str, str] | None = None,
    config: WrapperConfig | None = None,
) -> PartialContext:
    """Layer CLI values over STATUSWRAP_* variables over the project config file."""
    env = os.environ if env is None else env
    explicit = explicit or PartialContext()
    from_env = PartialContext.from_mapping(load_env_config(env))
    from_file = (config or load_wrapper_config()).context
    return explicit.merged(from_env).merged(from_file)


async def run_wrapped(
    work: Work[T],
    *,
    explicit: PartialContext | None = None,
    cwd: str | None = None,
    env: Mapping[str, str] | None = None,
    metadata: BuildMetadataLookup | None = None,
    client: StatusClient | None = None,
    on_status: StatusListener | None = None,
    handle_signals: bool = False,
) -> T:
    """Resolve the status context, then run *work* inside the status lifecycle.

    Resolution happens before any client is created, so a ResolutionError
    never costs a network call.
    """
    env = os.environ if env is None else env
    wrapper_config = load_wrapper_config(cwd)
    context = resolve_context(
        build_explicit_context(explicit, env=env, config=wrapper_config),
        env,
        metadata or EnvBuildMetadata(env, cwd=cwd),
    )
    logger.info("Wrapping work with %r status on %s@%s", context.label, context.full_name, context.sha)

    if client is not None:
        return await _run_lifecycle(
            context, client, work,
            env=env, on_status=on_status, handle_signals=handle_signals,
            stop_timeout=wrapper_config.stop_timeout,
        )

    async with GitHubStatusClient(timeout=wrapper_config.timeout) as gh_client:
        return await _run_lifecycle(
            context, gh_client, work,
            env=env, on_status=on_status, handle_signals=handle_signals,
            stop_timeout=wrapper_config.stop_timeout,
        )


async def _run_lifecycle(
    context: StatusContext,
    client: StatusClient,
    work: Work[T],
    *,
    env: Mapping[str, str],
    on_status: StatusListener | None,
    handle_signals: bool,
    stop_timeout: float,
) -> T:
    controller = LifecycleController(
        context,
        client,
        base_env=env,
        proxy=resolve_proxy(context.api_url, env),
        on_status=on_status,
        stop_timeout=stop_timeout,
    )
    installed = _install_signal_handlers(controller) if handle_signals else []
    try:
        return await controller.run(work)
    finally:
        loop = asyncio.get_running_loop()
        for sig in installed:
            loop.remove_signal_handler(sig)


def _install_signal_handlers(controller: LifecycleController) -> list[signal.Signals]:
    loop = asyncio.get_running_loop()
    installed: list[signal.Signals] = []
    for sig in _STOP_SIGNALS:
        try:
            loop.add_signal_handler(sig, controller.stop, f"received {sig.name}")
        except (NotImplementedError, RuntimeError):
            # Windows event loops or a non-main thread
            logger.debug("Cannot install handler for %s", sig.name)
            continue
        installed.append(sig)
    return installed
