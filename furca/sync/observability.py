"""Structured log events for fork synchronisation runs.

Events are single ``[event.type] key=value ...`` lines emitted through the
femtologging helpers so log aggregators can parse them.
"""

from __future__ import annotations

import enum
import typing as typ
from http import HTTPStatus

from furca.common.time import rfc3339
from furca.github.errors import (
    GitHubAPIError,
    GitHubAuthError,
    GitHubConfigError,
    GitHubResponseShapeError,
)
from furca.logging import (
    get_logger,
    log_debug,
    log_error,
    log_info,
    log_warning,
)

if typ.TYPE_CHECKING:
    import datetime as dt

    from furca.github.models import Repository
    from furca.logging import SupportsLog

    from .models import AuditRecord, CheckSummary, RunMode, RunSummary

_HTTP_SERVER_ERROR_THRESHOLD = 500


class SyncEventType(enum.StrEnum):
    """Structured log event types."""

    RUN_STARTED = "sync.run.started"
    RUN_COMPLETED = "sync.run.completed"
    CHECK_COMPLETED = "sync.check.completed"
    FORK_FAILED = "sync.fork.failed"
    FORK_ABORTED = "sync.fork.aborted"
    RETRY_SCHEDULED = "sync.retry.scheduled"
    AUDIT = "sync.audit"
    AUDIT_SNAPSHOT_FAILED = "sync.audit.snapshot_failed"


class ErrorCategory(enum.StrEnum):
    """Coarse failure classes used in fork failure events."""

    TRANSIENT = "transient"
    CLIENT_ERROR = "client_error"
    CONFLICT = "conflict"
    SCHEMA_DRIFT = "schema_drift"
    CONFIGURATION = "configuration"
    UNKNOWN = "unknown"


def _causes(exc: BaseException) -> typ.Iterator[BaseException]:
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        current = current.__cause__


def _categorize_api_error(exc: GitHubAPIError) -> ErrorCategory:
    if isinstance(exc, GitHubAuthError):
        return ErrorCategory.CONFIGURATION
    if exc.status_code is None:
        return ErrorCategory.TRANSIENT
    if exc.status_code == HTTPStatus.CONFLICT:
        return ErrorCategory.CONFLICT
    if exc.status_code >= _HTTP_SERVER_ERROR_THRESHOLD:
        return ErrorCategory.TRANSIENT
    return ErrorCategory.CLIENT_ERROR


def categorize_error(exc: BaseException) -> ErrorCategory:
    """Classify a failure by the first recognised exception in its cause chain.

    GitHub errors without a status code are network failures or timeouts and
    count as transient.
    """
    for candidate in _causes(exc):
        if isinstance(candidate, GitHubAPIError):
            return _categorize_api_error(candidate)
        if isinstance(candidate, GitHubResponseShapeError):
            return ErrorCategory.SCHEMA_DRIFT
        if isinstance(candidate, GitHubConfigError):
            return ErrorCategory.CONFIGURATION
    return ErrorCategory.UNKNOWN


class SyncEventLogger:
    """Emit structured sync events to a femtologging logger."""

    def __init__(self, logger: SupportsLog | None = None) -> None:
        """Use ``logger``, or the ``furca.sync`` logger when omitted."""
        self._logger = logger if logger is not None else get_logger("furca.sync")

    def run_started(self, mode: RunMode, fork_count: int) -> None:
        """Log the start of an orchestration pass."""
        log_info(
            self._logger,
            "[%s] mode=%s forks=%d",
            SyncEventType.RUN_STARTED,
            mode,
            fork_count,
        )

    def run_completed(self, summary: RunSummary, duration: dt.timedelta) -> None:
        """Log sync totals once the result channel is drained."""
        log_info(
            self._logger,
            "[%s] dry_run=%s duration_seconds=%.3f synced=%d up_to_date=%d "
            "errors=%d total=%d",
            SyncEventType.RUN_COMPLETED,
            summary.dry_run,
            duration.total_seconds(),
            summary.total_synced,
            summary.total_up_to_date,
            summary.total_errors,
            summary.total_repos,
        )

    def check_completed(self, summary: CheckSummary, duration: dt.timedelta) -> None:
        """Log check-only totals once the result channel is drained."""
        log_info(
            self._logger,
            "[%s] duration_seconds=%.3f behind=%d up_to_date=%d errors=%d total=%d",
            SyncEventType.CHECK_COMPLETED,
            duration.total_seconds(),
            summary.total_behind,
            summary.total_up_to_date,
            summary.total_errors,
            summary.total_repos,
        )

    def fork_failed(self, repo: Repository, stage: str, error: BaseException) -> None:
        """Log a fork whose detect or sync stage failed after retries."""
        log_error(
            self._logger,
            "[%s] repo=%s stage=%s error_type=%s error_category=%s error_message=%s",
            SyncEventType.FORK_FAILED,
            repo.full_name,
            stage,
            type(error).__name__,
            categorize_error(error),
            str(error),
        )

    def fork_aborted(self, repo: Repository, cause: str | None) -> None:
        """Log a fork skipped because an earlier fork aborted the run."""
        log_warning(
            self._logger,
            "[%s] repo=%s aborted_by=%s",
            SyncEventType.FORK_ABORTED,
            repo.full_name,
            cause or "unknown",
        )

    def retry_scheduled(  # noqa: PLR0913
        self,
        repo: Repository,
        stage: str,
        max_retries: int,
        attempt: int,
        error: Exception,
    ) -> None:
        """Log a retry about to be attempted."""
        log_debug(
            self._logger,
            "[%s] repo=%s stage=%s retry=%d/%d error_message=%s",
            SyncEventType.RETRY_SCHEDULED,
            repo.full_name,
            stage,
            attempt,
            max_retries,
            str(error),
        )

    def audit(self, record: AuditRecord) -> None:
        """Log the audit line for a completed merge-upstream."""
        log_info(
            self._logger,
            "[%s] repo=%s synced_at=%s branch=%s before=%s after=%s merge_type=%s",
            SyncEventType.AUDIT,
            record.full_name,
            rfc3339(record.synced_at),
            record.branch,
            record.before,
            record.after if record.after is not None else "unknown",
            record.merge_type or "unknown",
        )

    def audit_snapshot_failed(self, repo: Repository, error: BaseException) -> None:
        """Log a failed post-sync lookup; the sync itself still succeeded."""
        log_warning(
            self._logger,
            "[%s] repo=%s error_message=%s",
            SyncEventType.AUDIT_SNAPSHOT_FAILED,
            repo.full_name,
            str(error),
        )
