"""Concurrent fan-out of the detect/sync pipeline over a batch of forks.

One task is spawned per fork. Every task writes exactly one outcome to a
shared ``asyncio.Queue``; a supervisor task waits for all of them and then
closes the channel with a sentinel, after which aggregation finalises the
summary. Outcomes arrive in completion order.
"""

from __future__ import annotations

import asyncio
import contextlib
import dataclasses
import functools
import typing as typ

from furca.common.time import utcnow

from .drift import check_behind
from .executor import sync_with_upstream
from .models import (
    CheckSummary,
    Errored,
    RunMode,
    RunSummary,
    SummaryAggregator,
    Synced,
    UpToDate,
    WouldSync,
)
from .observability import SyncEventLogger
from .retry import RetryPolicy, with_retries

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from furca.github.client import ForkGateway
    from furca.github.models import Repository

    from .models import AuditRecord, DriftResult, SyncOutcome

    type OutcomeCallback = cabc.Callable[[SyncOutcome], None]
    type Sleep = cabc.Callable[[float], cabc.Awaitable[object]]


@dataclasses.dataclass(frozen=True, slots=True)
class OrchestratorConfig:
    """Runtime knobs for an orchestration pass.

    Attributes
    ----------
    retry
        Policy applied separately to drift detection and to sync.
    max_concurrency
        ``None`` spawns every fork at once. An integer caps the number of
        forks in flight; this lowers throughput and is opt-in.
    abort_on_error
        When set, the first failed fork stops siblings from starting further
        remote steps; they report an ``Errored`` outcome instead.

    """

    retry: RetryPolicy = dataclasses.field(default_factory=RetryPolicy)
    max_concurrency: int | None = None
    abort_on_error: bool = False

    def __post_init__(self) -> None:
        """Reject non-positive concurrency caps."""
        if self.max_concurrency is not None and self.max_concurrency < 1:
            msg = f"max_concurrency must be positive, got {self.max_concurrency}"
            raise ValueError(msg)


class _ChannelClosed:
    """Sentinel type marking the end of the result channel."""


_CLOSED = _ChannelClosed()


@dataclasses.dataclass(slots=True)
class _RunContext:
    mode: RunMode
    channel: asyncio.Queue[SyncOutcome | _ChannelClosed]
    abort: asyncio.Event
    limiter: asyncio.Semaphore | None
    aborted_by: str | None = None

    def slot(self) -> contextlib.AbstractAsyncContextManager[object]:
        return self.limiter if self.limiter is not None else contextlib.nullcontext()


class ForkSyncOrchestrator:
    """Detect drift for, and optionally sync, every fork in a batch."""

    def __init__(
        self,
        gateway: ForkGateway,
        config: OrchestratorConfig | None = None,
        *,
        events: SyncEventLogger | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        """Share ``gateway`` read-only across all fork tasks."""
        self._gateway = gateway
        self._config = config or OrchestratorConfig()
        self._events = events or SyncEventLogger()
        self._sleep = sleep

    async def run(
        self,
        forks: cabc.Sequence[Repository],
        mode: RunMode = RunMode.NORMAL,
        *,
        on_outcome: OutcomeCallback | None = None,
    ) -> RunSummary:
        """Process ``forks`` and return the aggregated sync summary.

        ``WouldSync`` outcomes are counted with the synced forks.
        """
        started = utcnow()
        self._events.run_started(mode, len(forks))
        aggregator = await self._drain(forks, mode, on_outcome)
        finished = utcnow()
        summary = aggregator.to_run_summary(
            dry_run=mode is RunMode.DRY_RUN, finished_at=finished
        )
        self._events.run_completed(summary, finished - started)
        return summary

    async def check(
        self,
        forks: cabc.Sequence[Repository],
        *,
        on_outcome: OutcomeCallback | None = None,
    ) -> CheckSummary:
        """Detect drift only; merge-upstream is never called."""
        started = utcnow()
        self._events.run_started(RunMode.DRY_RUN, len(forks))
        aggregator = await self._drain(forks, RunMode.DRY_RUN, on_outcome)
        finished = utcnow()
        summary = aggregator.to_check_summary(finished_at=finished)
        self._events.check_completed(summary, finished - started)
        return summary

    async def stream(
        self,
        forks: cabc.Sequence[Repository],
        mode: RunMode = RunMode.NORMAL,
    ) -> cabc.AsyncIterator[SyncOutcome]:
        """Yield one outcome per fork in completion order.

        Closing the iterator early cancels any tasks still in flight.
        """
        context = _RunContext(
            mode=mode,
            channel=asyncio.Queue(),
            abort=asyncio.Event(),
            limiter=(
                asyncio.Semaphore(self._config.max_concurrency)
                if self._config.max_concurrency is not None
                else None
            ),
        )
        workers = [
            asyncio.create_task(
                self._process_fork(fork, context), name=f"furca:{fork.full_name}"
            )
            for fork in forks
        ]
        supervisor = asyncio.create_task(
            self._close_when_done(workers, context.channel), name="furca:supervisor"
        )
        try:
            while True:
                item = await context.channel.get()
                if isinstance(item, _ChannelClosed):
                    break
                yield item
        finally:
            if not supervisor.done():
                for worker in workers:
                    worker.cancel()
                supervisor.cancel()
            await asyncio.gather(supervisor, return_exceptions=True)

    async def _drain(
        self,
        forks: cabc.Sequence[Repository],
        mode: RunMode,
        on_outcome: OutcomeCallback | None,
    ) -> SummaryAggregator:
        aggregator = SummaryAggregator()
        async for outcome in self.stream(forks, mode):
            aggregator.add(outcome)
            if on_outcome is not None:
                on_outcome(outcome)
        return aggregator

    @staticmethod
    async def _close_when_done(
        workers: list[asyncio.Task[None]],
        channel: asyncio.Queue[SyncOutcome | _ChannelClosed],
    ) -> None:
        try:
            await asyncio.gather(*workers, return_exceptions=True)
        finally:
            channel.put_nowait(_CLOSED)

    async def _process_fork(self, fork: Repository, context: _RunContext) -> None:
        try:
            async with context.slot():
                outcome = await self._evaluate(fork, context)
        except Exception as exc:  # noqa: BLE001 - every fork must yield one outcome
            outcome = self._fail(
                fork, context, "unexpected", f"unexpected error: {exc}", exc
            )
        context.channel.put_nowait(outcome)

    async def _evaluate(self, fork: Repository, context: _RunContext) -> SyncOutcome:
        if context.abort.is_set():
            return self._aborted(fork, context)

        try:
            drift = await self._detect(fork)
        except Exception as exc:  # noqa: BLE001 - isolated to this fork's outcome
            return self._fail(
                fork, context, "detect", f"failed to compare commits: {exc}", exc
            )

        if not drift.is_behind:
            return UpToDate(name=fork.full_name)
        if context.mode is RunMode.DRY_RUN:
            return WouldSync(name=fork.full_name, behind_by=drift.behind_by)
        if context.abort.is_set():
            return self._aborted(fork, context)

        try:
            await self._sync(fork)
        except Exception as exc:  # noqa: BLE001 - isolated to this fork's outcome
            return self._fail(
                fork, context, "sync", f"failed to sync repository: {exc}", exc
            )
        return Synced(name=fork.full_name, behind_by=drift.behind_by)

    async def _detect(self, fork: Repository) -> DriftResult:
        return await with_retries(
            lambda: check_behind(self._gateway, fork),
            self._config.retry,
            sleep=self._sleep,
            on_retry=functools.partial(
                self._events.retry_scheduled,
                fork,
                "detect",
                self._config.retry.max_retries,
            ),
        )

    async def _sync(self, fork: Repository) -> AuditRecord:
        return await with_retries(
            lambda: sync_with_upstream(self._gateway, fork, events=self._events),
            self._config.retry,
            sleep=self._sleep,
            on_retry=functools.partial(
                self._events.retry_scheduled,
                fork,
                "sync",
                self._config.retry.max_retries,
            ),
        )

    def _fail(
        self,
        fork: Repository,
        context: _RunContext,
        stage: str,
        message: str,
        exc: BaseException,
    ) -> Errored:
        self._events.fork_failed(fork, stage, exc)
        if self._config.abort_on_error and not context.abort.is_set():
            context.aborted_by = fork.full_name
            context.abort.set()
        return Errored(name=fork.full_name, message=message)

    def _aborted(self, fork: Repository, context: _RunContext) -> Errored:
        self._events.fork_aborted(fork, context.aborted_by)
        return Errored(
            name=fork.full_name,
            message=f"aborted after failure of {context.aborted_by or 'another fork'}",
        )
