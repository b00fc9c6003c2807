"""Merge-upstream execution with before/after audit snapshots."""

from __future__ import annotations

import typing as typ

from furca.common.time import utcnow
from furca.logging import get_logger, log_debug

from .errors import AuditSnapshotError, SyncExecutionError
from .models import BRANCH_CANDIDATES, AuditRecord
from .observability import SyncEventLogger

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    import datetime as dt

    from furca.github.client import ForkGateway
    from furca.github.models import MergeResult, Repository

logger = get_logger(__name__)


async def _merge_with_fallback(gateway: ForkGateway, repo: Repository) -> MergeResult:
    primary, fallback = BRANCH_CANDIDATES
    try:
        return await gateway.merge_upstream(repo.owner, repo.name, primary)
    except Exception as exc:  # noqa: BLE001 - any failure selects the fallback branch
        log_debug(
            logger,
            "merge-upstream for %s on %s failed (%s); trying %s",
            repo.full_name,
            primary,
            exc,
            fallback,
        )
        try:
            return await gateway.merge_upstream(repo.owner, repo.name, fallback)
        except Exception as fallback_exc:
            raise SyncExecutionError.branches_exhausted(
                repo.full_name, BRANCH_CANDIDATES, fallback_exc
            ) from fallback_exc


async def sync_with_upstream(
    gateway: ForkGateway,
    repo: Repository,
    *,
    events: SyncEventLogger | None = None,
    clock: cabc.Callable[[], dt.datetime] = utcnow,
) -> AuditRecord:
    """Merge upstream into the fork and emit an audit event.

    The post-sync lookup is best effort: when it fails the warning is logged,
    ``AuditRecord.after`` is ``None`` and the sync still counts as successful.

    Raises
    ------
    SyncExecutionError
        If the pre-sync lookup fails or merge-upstream fails on both
        ``main`` and ``master``. Merge conflicts are failures too.

    """
    sink = events or SyncEventLogger()
    try:
        before = await gateway.get_repository_info(repo.owner, repo.name)
    except Exception as exc:
        raise SyncExecutionError.snapshot_failed(repo.full_name, exc) from exc

    merge = await _merge_with_fallback(gateway, repo)

    after: str | None = None
    try:
        after = (await gateway.get_repository_info(repo.owner, repo.name)).default_branch
    except Exception as exc:  # noqa: BLE001 - the audit snapshot never fails a sync
        sink.audit_snapshot_failed(
            repo, AuditSnapshotError.after_snapshot_failed(repo.full_name, exc)
        )

    record = AuditRecord(
        full_name=repo.full_name,
        synced_at=clock(),
        branch=merge.branch,
        before=before.default_branch,
        after=after,
        merge_type=merge.merge_type,
    )
    sink.audit(record)
    return record
