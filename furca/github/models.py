"""Typed models for the GitHub REST gateway.

Domain models are frozen dataclasses handed to the sync engine. The
``*Payload`` structs mirror the subset of each REST response Furca reads and
are decoded with msgspec; unknown fields are ignored.
"""

from __future__ import annotations

import dataclasses

import msgspec

from furca.common.slug import repo_slug


@dataclasses.dataclass(frozen=True, slots=True)
class Repository:
    """A fork whose upstream parent has been resolved.

    Instances are only built for repositories confirmed to be forks with
    parent metadata; discovery drops everything else.
    """

    owner: str
    name: str
    full_name: str
    parent_owner: str
    parent_name: str

    @property
    def parent_full_name(self) -> str:
        """Return the upstream ``owner/name`` slug."""
        return repo_slug(self.parent_owner, self.parent_name)


@dataclasses.dataclass(frozen=True, slots=True)
class GitHubIdentity:
    """The user that owns the configured token."""

    login: str


@dataclasses.dataclass(frozen=True, slots=True)
class Comparison:
    """Ahead/behind counts reported by the compare endpoint."""

    ahead_by: int
    behind_by: int


@dataclasses.dataclass(frozen=True, slots=True)
class RepositoryDetail:
    """Repository metadata returned by ``GET /repos/{owner}/{name}``."""

    owner: str
    name: str
    full_name: str
    fork: bool
    default_branch: str
    parent_owner: str | None = None
    parent_name: str | None = None


class OwnerPayload(msgspec.Struct):
    """Owner sub-object of repository payloads."""

    login: str


class ParentPayload(msgspec.Struct):
    """Parent sub-object of a fork's detail payload."""

    name: str
    owner: OwnerPayload


class RepositorySummaryPayload(msgspec.Struct):
    """Entry in the ``GET /user/repos`` listing."""

    name: str
    owner: OwnerPayload
    full_name: str = ""
    fork: bool = False


class RepositoryDetailPayload(msgspec.Struct):
    """Body of ``GET /repos/{owner}/{name}``."""

    name: str
    owner: OwnerPayload
    full_name: str = ""
    fork: bool = False
    default_branch: str = ""
    parent: ParentPayload | None = None

    def to_detail(self) -> RepositoryDetail:
        """Convert the wire payload into a :class:`RepositoryDetail`."""
        return RepositoryDetail(
            owner=self.owner.login,
            name=self.name,
            full_name=self.full_name or repo_slug(self.owner.login, self.name),
            fork=self.fork,
            default_branch=self.default_branch,
            parent_owner=self.parent.owner.login if self.parent else None,
            parent_name=self.parent.name if self.parent else None,
        )


class ComparisonPayload(msgspec.Struct):
    """Body of the compare endpoint; commit lists are not decoded."""

    ahead_by: int
    behind_by: int


class UserPayload(msgspec.Struct):
    """Body of ``GET /user``."""

    login: str


class MergeUpstreamPayload(msgspec.Struct):
    """Body returned by a successful merge-upstream call."""

    message: str = ""
    merge_type: str = ""


@dataclasses.dataclass(frozen=True, slots=True)
class MergeResult:
    """Outcome of a successful merge-upstream call."""

    branch: str
    merge_type: str
    message: str
