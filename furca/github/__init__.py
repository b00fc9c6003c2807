"""GitHub REST gateway: authentication, fork listing, compare and merge."""

from __future__ import annotations

from .client import ForkGateway, GitHubRestClient, GitHubRestConfig, connect
from .errors import (
    CompareError,
    GitHubAPIError,
    GitHubAuthError,
    GitHubConfigError,
    GitHubResponseShapeError,
    MergeError,
    MissingParentError,
    RepositoryDetailError,
    RepositoryListError,
    RepositoryLookupError,
)
from .models import (
    Comparison,
    GitHubIdentity,
    MergeResult,
    Repository,
    RepositoryDetail,
)

__all__ = [
    "CompareError",
    "Comparison",
    "ForkGateway",
    "GitHubAPIError",
    "GitHubAuthError",
    "GitHubConfigError",
    "GitHubIdentity",
    "GitHubResponseShapeError",
    "GitHubRestClient",
    "GitHubRestConfig",
    "MergeError",
    "MergeResult",
    "MissingParentError",
    "Repository",
    "RepositoryDetail",
    "RepositoryDetailError",
    "RepositoryListError",
    "RepositoryLookupError",
    "connect",
]
