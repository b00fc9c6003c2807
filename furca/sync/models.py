"""Data structures produced by the fork synchronisation pipeline.

Outcomes are msgspec tagged structs so that a per-fork result serialises with
a ``status`` discriminator; summaries are msgspec structs whose field order is
the externally visible JSON contract.
"""

from __future__ import annotations

import dataclasses
import enum
import typing as typ

import msgspec

from furca.common.time import rfc3339, utcnow

if typ.TYPE_CHECKING:
    import datetime as dt

BRANCH_CANDIDATES: typ.Final[tuple[str, str]] = ("main", "master")


class RunMode(enum.StrEnum):
    """How the orchestrator treats forks that are behind."""

    NORMAL = "normal"
    DRY_RUN = "dry_run"


@dataclasses.dataclass(frozen=True, slots=True)
class DriftResult:
    """Result of a single behind-check.

    Ahead counts are deliberately not carried; only being behind matters.
    """

    behind_by: int

    def __post_init__(self) -> None:
        """Reject negative commit counts."""
        if self.behind_by < 0:
            msg = f"behind_by must be non-negative, got {self.behind_by}"
            raise ValueError(msg)

    @property
    def is_behind(self) -> bool:
        """Return True when upstream has commits the fork lacks."""
        return self.behind_by > 0


@dataclasses.dataclass(frozen=True, slots=True)
class AuditRecord:
    """Before/after markers captured around a merge-upstream call.

    The markers are default-branch names, not commit SHAs; the repository
    endpoint used here does not expose a head SHA.
    """

    full_name: str
    synced_at: dt.datetime
    branch: str
    before: str
    after: str | None
    merge_type: str = ""


class UpToDate(msgspec.Struct, frozen=True, tag_field="status", tag="up_to_date"):
    """The fork has every upstream commit."""

    name: str


class WouldSync(msgspec.Struct, frozen=True, tag_field="status", tag="would_sync"):
    """Dry run: the fork is behind and would have been synced."""

    name: str
    behind_by: int


class Synced(msgspec.Struct, frozen=True, tag_field="status", tag="synced"):
    """The fork was behind and merge-upstream succeeded."""

    name: str
    behind_by: int


class Errored(msgspec.Struct, frozen=True, tag_field="status", tag="error"):
    """Detection or synchronisation failed after all retries."""

    name: str
    message: str


type SyncOutcome = UpToDate | WouldSync | Synced | Errored


class RunSummary(msgspec.Struct, kw_only=True, frozen=True):
    """Aggregate result of a ``sync`` run.

    Attributes
    ----------
    synced
        Forks synced, or forks that would be synced in a dry run.
    up_to_date
        Forks that were already current.
    errors
        Failure message keyed by fork slug.
    timestamp
        RFC 3339 time at which aggregation completed.
    dry_run
        Whether merge-upstream was skipped.

    """

    synced: list[str]
    up_to_date: list[str]
    errors: dict[str, str]
    timestamp: str
    dry_run: bool
    total_synced: int
    total_up_to_date: int
    total_errors: int
    total_repos: int


class CheckSummary(msgspec.Struct, kw_only=True, frozen=True):
    """Aggregate result of a ``ci-check`` run."""

    behind_repos: list[str]
    up_to_date_repos: list[str]
    errors: dict[str, str]
    timestamp: str
    total_behind: int
    total_up_to_date: int
    total_errors: int
    total_repos: int
    outdated_status: bool


@dataclasses.dataclass(slots=True)
class SummaryAggregator:
    """Partition outcomes as they arrive from the result channel.

    ``WouldSync`` lands in the same partition as ``Synced``. Each partition
    keeps arrival order.
    """

    behind: list[str] = dataclasses.field(default_factory=list)
    up_to_date: list[str] = dataclasses.field(default_factory=list)
    errors: dict[str, str] = dataclasses.field(default_factory=dict)

    def add(self, outcome: SyncOutcome) -> None:
        """Route one outcome into its partition."""
        match outcome:
            case UpToDate(name=name):
                self.up_to_date.append(name)
            case WouldSync(name=name) | Synced(name=name):
                self.behind.append(name)
            case Errored(name=name, message=message):
                self.errors[name] = message

    @property
    def total(self) -> int:
        """Return the number of outcomes recorded so far."""
        return len(self.behind) + len(self.up_to_date) + len(self.errors)

    def to_run_summary(
        self, *, dry_run: bool, finished_at: dt.datetime | None = None
    ) -> RunSummary:
        """Finalise a ``sync`` summary once the channel is drained."""
        return RunSummary(
            synced=list(self.behind),
            up_to_date=list(self.up_to_date),
            errors=dict(self.errors),
            timestamp=rfc3339(finished_at or utcnow()),
            dry_run=dry_run,
            total_synced=len(self.behind),
            total_up_to_date=len(self.up_to_date),
            total_errors=len(self.errors),
            total_repos=self.total,
        )

    def to_check_summary(self, *, finished_at: dt.datetime | None = None) -> CheckSummary:
        """Finalise a ``ci-check`` summary once the channel is drained."""
        return CheckSummary(
            behind_repos=list(self.behind),
            up_to_date_repos=list(self.up_to_date),
            errors=dict(self.errors),
            timestamp=rfc3339(finished_at or utcnow()),
            total_behind=len(self.behind),
            total_up_to_date=len(self.up_to_date),
            total_errors=len(self.errors),
            total_repos=self.total,
            outdated_status=bool(self.behind),
        )
