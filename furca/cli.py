"""Command-line interface for Furca.

Usage:
    furca sync [--dry-run] [--json] [--max-retries N] [--retry-delay S]
    furca ci-check [--fail-on-outdated] [--json]
    furca version

Flags override values loaded from ``~/.furca``, ``.env`` and the environment
(see :mod:`furca.config`).
"""

from __future__ import annotations

import asyncio
import os
import sys
import typing as typ

from cyclopts import App, Parameter

from furca import __version__
from furca.config import FurcaConfig
from furca.github.client import connect
from furca.github.errors import (
    GitHubAuthError,
    GitHubConfigError,
    RepositoryListError,
)
from furca.logging import (
    configure_logging,
    get_logger,
    log_exception,
    log_info,
    log_warning,
)
from furca.sync.discovery import discover_forks
from furca.sync.models import RunMode
from furca.sync.orchestrator import ForkSyncOrchestrator
from furca.sync.render import (
    encode_summary,
    render_check_outcome,
    render_check_summary,
    render_outcome,
    render_run_summary,
)

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from furca.sync.models import CheckSummary, RunSummary, SyncOutcome

logger = get_logger(__name__)

app = App(
    name="furca",
    help="Furca - keep your GitHub forks effortlessly fresh.",
    version=__version__,
)

_MISSING_TOKEN_HELP = """
ERROR: GitHub token not found

To use Furca, you need to provide a GitHub personal access token with 'repo' scope.

You can set it in one of these ways:
  1. Create a .env file in the current directory with:
     GITHUB_TOKEN=your_github_token_here
  2. Set an environment variable:
     export GITHUB_TOKEN=your_github_token_here

To create a token, visit: https://github.com/settings/tokens"""

_FATAL_ERRORS = (GitHubAuthError, RepositoryListError)


def _load_config(**overrides: object) -> FurcaConfig | None:
    """Load configuration, apply flag overrides and configure logging."""
    try:
        config = FurcaConfig.from_env().with_overrides(**overrides)
        config.orchestrator_config()
    except ValueError as exc:
        print(f"Error: invalid configuration: {exc}", file=sys.stderr)
        return None

    normalized, invalid = configure_logging(config.log_level)
    if invalid:
        log_warning(
            logger,
            "Invalid LOG_LEVEL %r, falling back to %s",
            config.log_level,
            normalized,
        )
    for path in config.env_files:
        log_info(logger, "Using config file: %s", path)
    return config


def _require_token(config: FurcaConfig) -> bool:
    try:
        config.require_token()
    except GitHubConfigError:
        print(_MISSING_TOKEN_HELP, file=sys.stderr)
        return False
    return True


def _report_fatal(exc: Exception) -> int:
    log_exception(logger, f"Fatal error: {exc}", exc)
    print(f"Error: {exc}", file=sys.stderr)
    return 1


async def _run_sync(
    config: FurcaConfig,
    mode: RunMode,
    on_outcome: cabc.Callable[[SyncOutcome], None] | None,
) -> RunSummary:
    async with await connect(config.github_config()) as client:
        forks = await discover_forks(client)
        orchestrator = ForkSyncOrchestrator(client, config.orchestrator_config())
        return await orchestrator.run(forks, mode, on_outcome=on_outcome)


async def _run_check(
    config: FurcaConfig,
    on_outcome: cabc.Callable[[SyncOutcome], None] | None,
) -> CheckSummary:
    async with await connect(config.github_config()) as client:
        forks = await discover_forks(client)
        orchestrator = ForkSyncOrchestrator(client, config.orchestrator_config())
        return await orchestrator.check(forks, on_outcome=on_outcome)


@app.command(name="sync")
def sync_command(  # noqa: PLR0913
    *,
    dry_run: bool | None = None,
    json_output: typ.Annotated[bool | None, Parameter(name="--json")] = None,
    max_retries: int | None = None,
    retry_delay: int | None = None,
    max_concurrency: int | None = None,
    abort_on_error: bool | None = None,
) -> int:
    """Synchronise your forked repositories with their upstream sources.

    Parameters
    ----------
    dry_run
        Preview which repositories would be synced without making changes.
    json_output
        Output results in JSON format.
    max_retries
        Maximum number of retry attempts for API operations.
    retry_delay
        Delay in seconds between retry attempts.
    max_concurrency
        Process at most this many forks at once (default: all at once).
    abort_on_error
        Stop starting new remote steps once any fork fails.

    """
    config = _load_config(
        dry_run=dry_run,
        json_output=json_output,
        max_retries=max_retries,
        retry_delay_s=retry_delay,
        max_concurrency=max_concurrency,
        abort_on_error=abort_on_error,
    )
    if config is None:
        return 1
    if not _require_token(config):
        return 1

    mode = RunMode.DRY_RUN if config.dry_run else RunMode.NORMAL

    def _print_outcome(outcome: SyncOutcome) -> None:
        print(render_outcome(outcome, dry_run=config.dry_run))

    try:
        summary = asyncio.run(
            _run_sync(config, mode, None if config.json_output else _print_outcome)
        )
    except _FATAL_ERRORS as exc:
        return _report_fatal(exc)

    if config.json_output:
        print(encode_summary(summary))
    elif summary.total_repos:
        print(render_run_summary(summary))
    return 0


@app.command(name="ci-check")
def ci_check_command(
    *,
    fail_on_outdated: bool | None = None,
    json_output: typ.Annotated[bool | None, Parameter(name="--json")] = None,
) -> int:
    """Check whether any fork is behind upstream without syncing it.

    Designed for CI pipelines, e.g. ``furca ci-check --fail-on-outdated``.

    Parameters
    ----------
    fail_on_outdated
        Exit with a non-zero status code if any repository is behind upstream.
    json_output
        Output results in JSON format.

    """
    config = _load_config(fail_on_outdated=fail_on_outdated, json_output=json_output)
    if config is None:
        return 1
    if not _require_token(config):
        return 1

    def _print_outcome(outcome: SyncOutcome) -> None:
        print(render_check_outcome(outcome))

    try:
        summary = asyncio.run(
            _run_check(config, None if config.json_output else _print_outcome)
        )
    except _FATAL_ERRORS as exc:
        return _report_fatal(exc)

    if config.json_output:
        print(encode_summary(summary))
    elif summary.total_repos:
        print(
            render_check_summary(summary, fail_on_outdated=config.fail_on_outdated)
        )

    if config.fail_on_outdated and summary.outdated_status:
        return 1
    return 0


@app.command(name="version")
def version_command() -> int:
    """Print the version, commit and build date."""
    print(f"Furca version {__version__}")
    print(f"Commit: {os.environ.get('FURCA_COMMIT', 'none')}")
    print(f"Built: {os.environ.get('FURCA_BUILD_DATE', 'unknown')}")
    return 0


def main(argv: list[str] | None = None) -> int:
    """Run the CLI and return its exit code."""
    result = app(argv)
    return result if isinstance(result, int) else 0


if __name__ == "__main__":
    raise SystemExit(main())
