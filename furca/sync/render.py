"""Console and JSON rendering of outcomes and summaries."""

from __future__ import annotations

import typing as typ

import msgspec

from .models import CheckSummary, Errored, RunSummary, Synced, UpToDate, WouldSync

if typ.TYPE_CHECKING:
    from .models import SyncOutcome

DRY_RUN_MARKER = "[dry-run]"
OK_MARKER = "[ok]"
SYNC_MARKER = "[sync]"
BEHIND_MARKER = "[behind]"
ERROR_MARKER = "[error]"


def render_outcome(outcome: SyncOutcome, *, dry_run: bool = False) -> str:
    """Return the progress line printed by ``sync`` for one outcome."""
    match outcome:
        case UpToDate(name=name):
            line = f"{OK_MARKER} {name} is up to date with upstream"
        case WouldSync(name=name, behind_by=behind_by):
            line = f"{SYNC_MARKER} Would sync {name} (behind by {behind_by} commits)"
        case Synced(name=name, behind_by=behind_by):
            line = (
                f"{SYNC_MARKER} Successfully synced {name} with upstream "
                f"(was behind by {behind_by} commits)"
            )
        case Errored(name=name, message=message):
            return f"{ERROR_MARKER} Error processing {name}: {message}"
    return f"{DRY_RUN_MARKER} {line}" if dry_run else line


def render_check_outcome(outcome: SyncOutcome) -> str:
    """Return the progress line printed by ``ci-check`` for one outcome."""
    match outcome:
        case UpToDate(name=name):
            return f"{OK_MARKER} {name} is up to date with upstream"
        case WouldSync(name=name, behind_by=behind_by) | Synced(
            name=name, behind_by=behind_by
        ):
            return f"{BEHIND_MARKER} {name} is behind upstream by {behind_by} commits"
        case Errored(name=name, message=message):
            return f"{ERROR_MARKER} Error checking {name}: {message}"


def render_run_summary(summary: RunSummary) -> str:
    """Return the closing summary block for ``sync``."""
    synced_label = (
        "Would sync repositories" if summary.dry_run else "Synced repositories"
    )
    lines = [
        "",
        "Summary:",
        f"{SYNC_MARKER} {synced_label}: {summary.total_synced}",
        f"{OK_MARKER} Up-to-date repositories: {summary.total_up_to_date}",
        f"{ERROR_MARKER} Errors encountered: {summary.total_errors}",
    ]
    if summary.total_errors:
        lines.extend(["", "See logs for details."])
    return "\n".join(lines)


def render_check_summary(summary: CheckSummary, *, fail_on_outdated: bool) -> str:
    """Return the closing summary block for ``ci-check``."""
    lines = [
        "",
        "Summary:",
        f"{BEHIND_MARKER} Repositories behind upstream: {summary.total_behind}",
        f"{OK_MARKER} Repositories up to date: {summary.total_up_to_date}",
        f"{ERROR_MARKER} Errors encountered: {summary.total_errors}",
        f"Total repositories checked: {summary.total_repos}",
    ]
    if summary.outdated_status:
        lines.extend(["", "Some repositories are behind their upstream sources"])
        if fail_on_outdated:
            lines.append(
                "Exiting with non-zero status code due to --fail-on-outdated flag"
            )
    return "\n".join(lines)


def encode_summary(summary: RunSummary | CheckSummary) -> str:
    """Serialise a summary as indented JSON with a stable field order."""
    return msgspec.json.format(msgspec.json.encode(summary), indent=2).decode("utf-8")
