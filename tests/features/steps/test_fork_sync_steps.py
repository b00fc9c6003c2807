"""Behavioural tests for end-to-end fork synchronisation."""

from __future__ import annotations

import asyncio
import typing as typ

import pytest
from pytest_bdd import given, parsers, scenario, then, when

from furca.sync import (
    CheckSummary,
    ForkSyncOrchestrator,
    OrchestratorConfig,
    RetryPolicy,
    RunMode,
    RunSummary,
    SyncEventLogger,
    discover_forks,
)
from tests.unit.sync_test_helpers import FakeForkGateway, FakeLogger, make_fork


def run_async[T](coro: typ.Coroutine[typ.Any, typ.Any, T]) -> T:
    """Run async coroutines in sync BDD step functions."""
    return asyncio.run(coro)


class ForkSyncContext(typ.TypedDict, total=False):
    """Shared state used by fork sync BDD steps."""

    gateway: FakeForkGateway
    summary: RunSummary
    check: CheckSummary


@scenario(
    "../fork_sync.feature",
    "A mixed batch of forks is synced with per-fork isolation",
)
def test_mixed_batch_is_synced() -> None:
    """Behavioural test: outcomes partition the batch and errors stay local."""


@scenario("../fork_sync.feature", "A dry run previews syncs without changing anything")
def test_dry_run_previews_syncs() -> None:
    """Behavioural test: dry runs never call merge-upstream."""


@scenario("../fork_sync.feature", "A CI check flags outdated forks")
def test_ci_check_flags_outdated_forks() -> None:
    """Behavioural test: check-only runs report drift."""


@pytest.fixture
def fork_sync_context() -> ForkSyncContext:
    """Provide fresh state for each scenario."""
    return {}


def _parse_table(datatable: list[list[str]]) -> FakeForkGateway:
    gateway = FakeForkGateway()
    for slug, behind in datatable[1:]:
        owner, name = slug.split("/", 1)
        gateway.forks.append(make_fork(owner, name))
        if behind == "error":
            gateway.compare_failures[slug] = {"main", "master"}
        else:
            gateway.behind_by[slug] = int(behind)
    return gateway


@given("the authenticated user owns these forks")
def user_owns_forks(
    fork_sync_context: ForkSyncContext, datatable: list[list[str]]
) -> None:
    """Configure a fake gateway from the fork table."""
    fork_sync_context["gateway"] = _parse_table(datatable)


def _orchestrator(gateway: FakeForkGateway) -> ForkSyncOrchestrator:
    return ForkSyncOrchestrator(
        gateway,
        OrchestratorConfig(retry=RetryPolicy(max_retries=1, delay_s=0)),
        events=SyncEventLogger(FakeLogger()),
    )


def _sync(context: ForkSyncContext, mode: RunMode) -> None:
    gateway = context["gateway"]

    async def _run() -> RunSummary:
        forks = await discover_forks(gateway)
        return await _orchestrator(gateway).run(forks, mode)

    context["summary"] = run_async(_run())


@when("the forks are synchronised")
def forks_are_synchronised(fork_sync_context: ForkSyncContext) -> None:
    """Run a normal sync over the discovered forks."""
    _sync(fork_sync_context, RunMode.NORMAL)


@when("the forks are synchronised in dry-run mode")
def forks_are_synchronised_dry_run(fork_sync_context: ForkSyncContext) -> None:
    """Run a dry-run sync over the discovered forks."""
    _sync(fork_sync_context, RunMode.DRY_RUN)


@when("the forks are checked")
def forks_are_checked(fork_sync_context: ForkSyncContext) -> None:
    """Run a check-only pass over the discovered forks."""
    gateway = fork_sync_context["gateway"]

    async def _run() -> CheckSummary:
        forks = await discover_forks(gateway)
        return await _orchestrator(gateway).check(forks)

    fork_sync_context["check"] = run_async(_run())


@then(parsers.parse("{count:d} forks are reported as synced"))
def forks_reported_synced(fork_sync_context: ForkSyncContext, count: int) -> None:
    """Assert the synced partition size."""
    summary = fork_sync_context["summary"]
    assert summary.total_synced == count, f"Expected {count} synced forks."
    assert len(summary.synced) == count


@then(parsers.parse("{count:d} forks are reported as up to date"))
def forks_reported_up_to_date(fork_sync_context: ForkSyncContext, count: int) -> None:
    """Assert the up-to-date partition size."""
    summary = fork_sync_context["summary"]
    assert summary.total_up_to_date == count, f"Expected {count} up-to-date forks."


@then(parsers.parse('the error for "{slug}" mentions "{text}"'))
def error_mentions(fork_sync_context: ForkSyncContext, slug: str, text: str) -> None:
    """Assert the recorded error message for a fork."""
    errors = fork_sync_context["summary"].errors
    assert list(errors) == [slug], f"Expected only {slug} to fail."
    assert text in errors[slug], f"Expected {text!r} in {errors[slug]!r}."


@then(parsers.parse("the summary totals {count:d} repositories"))
def summary_totals(fork_sync_context: ForkSyncContext, count: int) -> None:
    """Assert the partitions add up to the batch size."""
    summary = fork_sync_context["summary"]
    assert summary.total_repos == count
    assert (
        summary.total_synced + summary.total_up_to_date + summary.total_errors == count
    ), "Expected every fork in exactly one partition."


@then(parsers.parse('merge-upstream was requested for "{first}" and "{second}" only'))
def merge_requested_for(
    fork_sync_context: ForkSyncContext, first: str, second: str
) -> None:
    """Assert which forks were merged."""
    merged = {slug for slug, _ in fork_sync_context["gateway"].merge_calls}
    assert merged == {first, second}


@then("merge-upstream was never requested")
def merge_never_requested(fork_sync_context: ForkSyncContext) -> None:
    """Assert the run was read-only."""
    assert fork_sync_context["gateway"].merge_calls == []


@then(parsers.parse('the check reports "{slug}" as behind'))
def check_reports_behind(fork_sync_context: ForkSyncContext, slug: str) -> None:
    """Assert the behind partition of a check."""
    assert fork_sync_context["check"].behind_repos == [slug]


@then("the check is marked as outdated")
def check_marked_outdated(fork_sync_context: ForkSyncContext) -> None:
    """Assert the outdated flag."""
    assert fork_sync_context["check"].outdated_status is True
