"""Fork synchronisation engine.

Public API
----------
discover_forks
    List forks with resolvable upstream parents.
check_behind
    Determine how far a fork lags behind its upstream.
sync_with_upstream
    Merge upstream into a fork and emit an audit event.
with_retries / RetryPolicy
    Fixed-count, fixed-delay retry wrapper.
ForkSyncOrchestrator / OrchestratorConfig
    Concurrent fan-out over a batch of forks with summary aggregation.
"""

from __future__ import annotations

from .discovery import discover_forks
from .drift import check_behind
from .errors import (
    AuditSnapshotError,
    DriftCheckError,
    SyncExecutionError,
    SyncPipelineError,
)
from .executor import sync_with_upstream
from .models import (
    BRANCH_CANDIDATES,
    AuditRecord,
    CheckSummary,
    DriftResult,
    Errored,
    RunMode,
    RunSummary,
    SummaryAggregator,
    Synced,
    SyncOutcome,
    UpToDate,
    WouldSync,
)
from .observability import ErrorCategory, SyncEventLogger, categorize_error
from .orchestrator import ForkSyncOrchestrator, OrchestratorConfig
from .retry import RetryPolicy, with_retries

__all__ = [
    "BRANCH_CANDIDATES",
    "AuditRecord",
    "AuditSnapshotError",
    "CheckSummary",
    "DriftCheckError",
    "DriftResult",
    "ErrorCategory",
    "Errored",
    "ForkSyncOrchestrator",
    "OrchestratorConfig",
    "RetryPolicy",
    "RunMode",
    "RunSummary",
    "SummaryAggregator",
    "SyncEventLogger",
    "SyncExecutionError",
    "SyncOutcome",
    "SyncPipelineError",
    "Synced",
    "UpToDate",
    "WouldSync",
    "categorize_error",
    "check_behind",
    "discover_forks",
    "sync_with_upstream",
    "with_retries",
]
