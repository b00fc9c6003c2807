"""Errors raised by the fork synchronisation pipeline."""

from __future__ import annotations


class SyncPipelineError(Exception):
    """Base class for per-fork pipeline failures.

    These never abort a run; the orchestrator turns them into an ``Errored``
    outcome for the affected fork.
    """


class DriftCheckError(SyncPipelineError):
    """Raised when neither candidate branch could be compared."""

    @classmethod
    def branches_exhausted(
        cls, full_name: str, branches: tuple[str, ...], exc: BaseException
    ) -> DriftCheckError:
        """Return an error describing the last compare failure."""
        tried = "/".join(branches)
        return cls(f"{full_name}: compare failed for {tried}: {exc}")


class SyncExecutionError(SyncPipelineError):
    """Raised when merging upstream into a fork fails."""

    @classmethod
    def snapshot_failed(cls, full_name: str, exc: BaseException) -> SyncExecutionError:
        """Return an error for a failed pre-sync repository lookup."""
        return cls(f"{full_name}: failed to get repository info: {exc}")

    @classmethod
    def branches_exhausted(
        cls, full_name: str, branches: tuple[str, ...], exc: BaseException
    ) -> SyncExecutionError:
        """Return an error describing the last merge-upstream failure."""
        tried = "/".join(branches)
        return cls(f"{full_name}: merge-upstream failed for {tried}: {exc}")


class AuditSnapshotError(SyncPipelineError):
    """Raised, and only logged, when the post-sync lookup fails."""

    @classmethod
    def after_snapshot_failed(
        cls, full_name: str, exc: BaseException
    ) -> AuditSnapshotError:
        """Return an error for a failed post-sync repository lookup."""
        return cls(f"failed to get updated repository info for {full_name}: {exc}")
