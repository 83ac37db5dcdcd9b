"""CLI entry point for statuswrap."""

from __future__ import annotations

import asyncio
import shlex
from pathlib import Path

import click

from statuswrap.cli.output import (
    configure_logging,
    print_credentials,
    print_error,
    print_status,
)
from statuswrap.types.context import DEFAULT_GITHUB_API_URL, PartialContext
from statuswrap.types.errors import (
    ResolutionError,
    SetupError,
    StatusUpdateError,
    WorkFailedError,
    WorkInterruptedError,
)

EXIT_RESOLUTION = 2
EXIT_STATUS_UPDATE = 3
EXIT_INTERRUPTED = 130


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
def cli(verbose: bool) -> None:
    """statuswrap -- wrap build steps with GitHub commit statuses.

    \b
    Usage:
      statuswrap run -- make test
      statuswrap run --context lint --sha abc123 -- ./lint.sh
      statuswrap test-connection --credentials-id github-token
      statuswrap credentials list
      statuswrap init
    """
    configure_logging(verbose)


@cli.command("run", context_settings={"ignore_unknown_options": True})
@click.option("--context", "label", default=None, help="Status label (default: gitStatusWrapper)")
@click.option("--git-api-url", default=None, help="GitHub API URL (for GitHub Enterprise)")
@click.option("--credentials-id", default=None, help="Id of the credentials to use")
@click.option("--account", default=None, help="Account owning the repository")
@click.option("--repo", default=None, help="Repository name")
@click.option("--sha", default=None, help="Commit to notify")
@click.option("--description", default=None, help="Short status description")
@click.option("--target-url", default=None, help="URL linked from the status")
@click.option("--cwd", default=None, help="Working directory for the command")
@click.argument("command", nargs=-1, required=True, type=click.UNPROCESSED)
def run_cmd(
    label: str | None,
    git_api_url: str | None,
    credentials_id: str | None,
    account: str | None,
    repo: str | None,
    sha: str | None,
    description: str | None,
    target_url: str | None,
    cwd: str | None,
    command: tuple[str, ...],
) -> None:
    """Run COMMAND, marking the commit PENDING, then SUCCESS or FAILURE."""
    from statuswrap.ci.command import CommandWork
    from statuswrap.ci.runner import run_wrapped

    shell_command = command[0] if len(command) == 1 else shlex.join(command)
    explicit = PartialContext(
        credentials_id=credentials_id,
        api_url=git_api_url,
        account=account,
        repo=repo,
        sha=sha,
        description=description,
        target_url=target_url,
        label=label,
    )

    try:
        asyncio.run(run_wrapped(
            CommandWork(shell_command, cwd=cwd),
            explicit=explicit,
            cwd=cwd,
            on_status=print_status,
            handle_signals=True,
        ))
    except (ResolutionError, SetupError) as exc:
        print_error(str(exc))
        raise SystemExit(EXIT_RESOLUTION) from exc
    except StatusUpdateError as exc:
        print_error(str(exc))
        raise SystemExit(EXIT_STATUS_UPDATE) from exc
    except WorkInterruptedError as exc:
        print_error(str(exc))
        raise SystemExit(EXIT_INTERRUPTED) from exc
    except WorkFailedError as exc:
        print_error(str(exc))
        raise SystemExit(exc.exit_code or 1) from exc
    except ExceptionGroup as group:
        for exc in group.exceptions:
            print_error(str(exc))
        raise SystemExit(_exit_code_for(group)) from group
    except (KeyboardInterrupt, asyncio.CancelledError) as exc:
        print_error("Interrupted before a final status was recorded")
        raise SystemExit(EXIT_INTERRUPTED) from exc


def _exit_code_for(group: ExceptionGroup) -> int:
    for exc in group.exceptions:
        if isinstance(exc, WorkInterruptedError):
            return EXIT_INTERRUPTED
        if isinstance(exc, WorkFailedError) and exc.exit_code:
            return exc.exit_code
    return 1


@cli.command("test-connection")
@click.option("--credentials-id", default="", help="Id of the credentials to test")
@click.option("--git-api-url", default=DEFAULT_GITHUB_API_URL, help="GitHub API URL")
def test_connection(credentials_id: str, git_api_url: str) -> None:
    """Check that the credentials can reach the GitHub API."""
    from statuswrap.ci.client import GitHubStatusClient
    from statuswrap.ci.github import GitHubAPIError
    from statuswrap.core.config import resolve_proxy

    api_url = git_api_url or DEFAULT_GITHUB_API_URL

    async def _check() -> str:
        async with GitHubStatusClient() as client:
            return await client.check_connection(api_url, credentials_id, resolve_proxy(api_url))

    try:
        login = asyncio.run(_check())
    except GitHubAPIError as exc:
        print_error(str(exc))
        raise SystemExit(1) from exc
    click.echo(f"Success ({login})")


@cli.group("credentials")
def credentials_cmd() -> None:
    """Inspect configured credentials."""
    pass


@credentials_cmd.command("list")
def credentials_list() -> None:
    """List known credential ids (secrets are never shown)."""
    from statuswrap.core.credentials import CredentialStore

    print_credentials(CredentialStore().list_ids())


@cli.command("init")
def init_cmd() -> None:
    """Create a .statuswrap/config.yml template."""
    from statuswrap.ci.config import CONFIG_RELPATH, generate_config_template

    config_path = Path.cwd() / CONFIG_RELPATH
    config_path.parent.mkdir(parents=True, exist_ok=True)

    if config_path.exists():
        click.echo(f"Config already exists at {config_path}")
        return

    config_path.write_text(generate_config_template())
    click.echo(f"Created config at {config_path}")
