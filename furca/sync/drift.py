"""Drift detection: how far a fork lags behind its upstream."""

from __future__ import annotations

import typing as typ

from furca.common.slug import ref_spec
from furca.logging import get_logger, log_debug

from .errors import DriftCheckError
from .models import BRANCH_CANDIDATES, DriftResult

if typ.TYPE_CHECKING:
    from furca.github.client import ForkGateway
    from furca.github.models import Comparison, Repository

logger = get_logger(__name__)


async def _compare_on(
    gateway: ForkGateway, repo: Repository, branch: str
) -> Comparison:
    return await gateway.compare_refs(
        repo.owner,
        repo.name,
        ref_spec(repo.parent_owner, branch),
        branch,
    )


async def check_behind(gateway: ForkGateway, repo: Repository) -> DriftResult:
    """Compare the fork with its parent on ``main``, then ``master``.

    The branch names are guessed rather than read from the repository's
    default branch; any failure on ``main`` triggers the ``master`` attempt.

    Raises
    ------
    DriftCheckError
        If both comparisons fail; wraps the ``master`` failure.

    """
    primary, fallback = BRANCH_CANDIDATES
    try:
        comparison = await _compare_on(gateway, repo, primary)
    except Exception as exc:  # noqa: BLE001 - any failure selects the fallback branch
        log_debug(
            logger,
            "Comparing %s on %s failed (%s); trying %s",
            repo.full_name,
            primary,
            exc,
            fallback,
        )
        try:
            comparison = await _compare_on(gateway, repo, fallback)
        except Exception as fallback_exc:
            raise DriftCheckError.branches_exhausted(
                repo.full_name, BRANCH_CANDIDATES, fallback_exc
            ) from fallback_exc

    return DriftResult(behind_by=comparison.behind_by)
