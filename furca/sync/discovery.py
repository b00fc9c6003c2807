"""Fork discovery over the repository gateway."""

from __future__ import annotations

import typing as typ

from furca.logging import get_logger, log_info

if typ.TYPE_CHECKING:
    from furca.github.client import ForkGateway
    from furca.github.models import Repository

logger = get_logger(__name__)


async def discover_forks(gateway: ForkGateway) -> list[Repository]:
    """Return the forks that can be checked against an upstream.

    An empty list is a normal result. Per-fork detail failures are skipped by
    the gateway; only a failed listing propagates (``RepositoryListError``).
    """
    log_info(logger, "Fetching forked repositories...")
    forks = list(await gateway.list_forks())
    if not forks:
        log_info(logger, "No forked repositories found with parent information.")
    else:
        log_info(
            logger,
            "Found %d forked repositories with parent information",
            len(forks),
        )
    return forks
