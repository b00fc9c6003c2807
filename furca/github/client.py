"""GitHub REST gateway used by fork discovery and synchronisation."""

from __future__ import annotations

import dataclasses
import typing as typ
from http import HTTPStatus

import httpx
import msgspec

from furca.common.slug import repo_slug
from furca.logging import get_logger, log_debug, log_info, log_warning

from .errors import (
    CompareError,
    GitHubAPIError,
    GitHubAuthError,
    GitHubResponseShapeError,
    MergeError,
    MissingParentError,
    RepositoryDetailError,
    RepositoryListError,
    RepositoryLookupError,
)
from .models import (
    Comparison,
    ComparisonPayload,
    GitHubIdentity,
    MergeResult,
    MergeUpstreamPayload,
    Repository,
    RepositoryDetail,
    RepositoryDetailPayload,
    RepositorySummaryPayload,
    UserPayload,
)

if typ.TYPE_CHECKING:
    import collections.abc as cabc

logger = get_logger(__name__)

DEFAULT_API_URL = "https://api.github.com"
_HTTP_ERROR_STATUS_THRESHOLD = 400
_LIST_AFFILIATION = "owner,collaborator,organization_member"


@dataclasses.dataclass(frozen=True, slots=True)
class GitHubRestConfig:
    """Configuration for the GitHub REST API client."""

    token: str
    api_url: str = DEFAULT_API_URL
    timeout_s: float = 30.0
    user_agent: str = "furca/0.1"
    api_version: str = "2022-11-28"
    page_size: int = 100


class ForkGateway(typ.Protocol):
    """Remote operations the sync engine needs from the hosting service."""

    async def list_forks(self) -> list[Repository]:
        """Return forks of the authenticated user with resolved parents."""
        ...

    async def compare_refs(
        self, owner: str, name: str, base: str, head: str
    ) -> Comparison:
        """Compare ``base`` against ``head`` within ``owner/name``."""
        ...

    async def merge_upstream(self, owner: str, name: str, branch: str) -> MergeResult:
        """Merge the upstream branch into the fork's ``branch``."""
        ...

    async def get_repository_info(self, owner: str, name: str) -> RepositoryDetail:
        """Fetch current metadata for ``owner/name``."""
        ...


class GitHubRestClient:
    """GitHub REST implementation of :class:`ForkGateway`.

    A single client, and the ``httpx.AsyncClient`` under it, is shared
    read-only by every concurrent fork task during a run.
    """

    def __init__(
        self,
        config: GitHubRestConfig,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialise the client; pass ``http_client`` to supply a transport."""
        self._config = config
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=config.timeout_s)
        self._identity: GitHubIdentity | None = None

    async def __aenter__(self) -> typ.Self:
        """Return the client for use in ``async with``."""
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        """Close owned HTTP resources."""
        await self.aclose()

    async def aclose(self) -> None:
        """Close any owned HTTP resources."""
        if self._owns_client:
            await self._client.aclose()

    @property
    def identity(self) -> GitHubIdentity | None:
        """Return the authenticated identity, once resolved."""
        return self._identity

    async def authenticate(self) -> GitHubIdentity:
        """Validate the token by resolving the user that owns it.

        Raises
        ------
        GitHubAuthError
            If the token is empty, contains whitespace, or GitHub rejects it.

        """
        token = self._config.token
        if not token.strip():
            raise GitHubAuthError.empty_token()
        if any(char.isspace() for char in token):
            raise GitHubAuthError.malformed_token()

        try:
            response = await self._request("GET", "/user")
            user = self._decode(response, UserPayload, "/user")
        except (GitHubAPIError, GitHubResponseShapeError) as exc:
            raise GitHubAuthError.rejected(exc) from exc

        self._identity = GitHubIdentity(login=user.login)
        log_info(logger, "Authenticated with GitHub as %s", user.login)
        return self._identity

    async def list_forks(self) -> list[Repository]:
        """Return every fork of the user that has resolvable parent metadata.

        Forks whose detail fetch fails, or which carry no parent, are logged
        and skipped.

        Raises
        ------
        RepositoryListError
            If any page of the repository listing fails.

        """
        try:
            summaries = [
                summary
                async for page in self._iter_repository_pages()
                for summary in page
            ]
        except (GitHubAPIError, GitHubResponseShapeError) as exc:
            raise RepositoryListError.wrap("failed to list repositories", exc) from exc

        log_info(logger, "Found %d total repositories", len(summaries))

        forks: list[Repository] = []
        fork_count = 0
        for summary in summaries:
            if not summary.fork:
                continue
            fork_count += 1
            slug = summary.full_name or repo_slug(summary.owner.login, summary.name)
            log_debug(logger, "Processing fork #%d: %s", fork_count, slug)
            try:
                forks.append(await self._resolve_fork(summary.owner.login, summary.name))
            except (RepositoryDetailError, MissingParentError) as exc:
                log_warning(logger, "Skipping fork %s: %s", slug, exc)

        log_info(logger, "Identified %d forks with parent information", len(forks))
        return forks

    async def compare_refs(
        self, owner: str, name: str, base: str, head: str
    ) -> Comparison:
        """Compare two ref specs, e.g. ``upstream:main`` against ``main``.

        Raises
        ------
        CompareError
            If the comparison request fails.

        """
        path = f"/repos/{owner}/{name}/compare/{base}...{head}"
        try:
            response = await self._request("GET", path)
            payload = self._decode(response, ComparisonPayload, path)
        except (GitHubAPIError, GitHubResponseShapeError) as exc:
            raise CompareError.wrap(
                f"failed to compare {base}...{head} in {repo_slug(owner, name)}", exc
            ) from exc
        return Comparison(ahead_by=payload.ahead_by, behind_by=payload.behind_by)

    async def merge_upstream(self, owner: str, name: str, branch: str) -> MergeResult:
        """Merge upstream changes into ``branch`` of the fork.

        Raises
        ------
        MergeError
            For any non-success response; 409 conflicts are flagged via
            :attr:`MergeError.is_conflict`.

        """
        slug = repo_slug(owner, name)
        path = f"/repos/{owner}/{name}/merge-upstream"
        try:
            response = await self._request("POST", path, json={"branch": branch})
            payload = self._decode(response, MergeUpstreamPayload, path)
        except GitHubAPIError as exc:
            if exc.status_code == HTTPStatus.CONFLICT:
                raise MergeError.conflict(slug, branch) from exc
            raise MergeError.wrap(
                f"failed to merge upstream into {slug}@{branch}", exc
            ) from exc
        except GitHubResponseShapeError as exc:
            raise MergeError.wrap(
                f"failed to merge upstream into {slug}@{branch}", exc
            ) from exc

        log_debug(
            logger,
            "merge-upstream %s@%s: merge_type=%s",
            slug,
            branch,
            payload.merge_type or "unknown",
        )
        return MergeResult(
            branch=branch, merge_type=payload.merge_type, message=payload.message
        )

    async def get_repository_info(self, owner: str, name: str) -> RepositoryDetail:
        """Fetch repository metadata such as the default branch name.

        Raises
        ------
        RepositoryLookupError
            If the repository cannot be fetched.

        """
        return await self._fetch_detail(owner, name, RepositoryLookupError)

    async def _resolve_fork(self, owner: str, name: str) -> Repository:
        detail = await self._fetch_detail(owner, name, RepositoryDetailError)
        if detail.parent_owner is None or detail.parent_name is None:
            raise MissingParentError(detail.full_name)
        log_debug(
            logger,
            "Added fork: %s (parent: %s)",
            detail.full_name,
            repo_slug(detail.parent_owner, detail.parent_name),
        )
        return Repository(
            owner=detail.owner,
            name=detail.name,
            full_name=detail.full_name,
            parent_owner=detail.parent_owner,
            parent_name=detail.parent_name,
        )

    async def _fetch_detail(
        self,
        owner: str,
        name: str,
        error_type: type[GitHubAPIError],
    ) -> RepositoryDetail:
        path = f"/repos/{owner}/{name}"
        try:
            response = await self._request("GET", path)
            payload = self._decode(response, RepositoryDetailPayload, path)
        except (GitHubAPIError, GitHubResponseShapeError) as exc:
            raise error_type.wrap(
                f"failed to get repository info for {repo_slug(owner, name)}", exc
            ) from exc
        return payload.to_detail()

    async def _iter_repository_pages(
        self,
    ) -> cabc.AsyncIterator[list[RepositorySummaryPayload]]:
        """Yield listing pages, following ``Link: rel="next"`` headers."""
        path = "/user/repos"
        url: str | None = self._url(path)
        params: dict[str, str | int] | None = {
            "per_page": self._config.page_size,
            "visibility": "all",
            "affiliation": _LIST_AFFILIATION,
        }
        while url is not None:
            response = await self._send("GET", url, path, params=params)
            yield self._decode(response, list[RepositorySummaryPayload], path)
            next_link = response.links.get("next")
            url = next_link.get("url") if next_link else None
            params = None

    def _url(self, path: str) -> str:
        return f"{self._config.api_url.rstrip('/')}{path}"

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._config.token}",
            "Accept": "application/vnd.github+json",
            "User-Agent": self._config.user_agent,
            "X-GitHub-Api-Version": self._config.api_version,
        }

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, typ.Any] | None = None,
    ) -> httpx.Response:
        return await self._send(method, self._url(path), path, json=json)

    async def _send(
        self,
        method: str,
        url: str,
        path: str,
        *,
        params: dict[str, str | int] | None = None,
        json: dict[str, typ.Any] | None = None,
    ) -> httpx.Response:
        """Send a request and raise :class:`GitHubAPIError` on failure."""
        try:
            response = await self._client.request(
                method, url, params=params, json=json, headers=self._headers()
            )
        except httpx.TimeoutException as exc:
            raise GitHubAPIError.timeout(method, path) from exc
        except (httpx.RequestError, httpx.InvalidURL) as exc:
            raise GitHubAPIError.network_error(method, path, str(exc)) from exc

        if response.status_code >= _HTTP_ERROR_STATUS_THRESHOLD:
            raise GitHubAPIError.http_error(method, path, response.status_code)
        return response

    @staticmethod
    def _decode[T](
        response: httpx.Response, payload_type: type[T], path: str
    ) -> T:
        try:
            return msgspec.json.decode(response.content, type=payload_type)
        except msgspec.DecodeError as exc:
            raise GitHubResponseShapeError.invalid(path, str(exc)) from exc


async def connect(
    config: GitHubRestConfig,
    *,
    http_client: httpx.AsyncClient | None = None,
) -> GitHubRestClient:
    """Build a client and authenticate it before any fork is processed.

    Raises
    ------
    GitHubAuthError
        If the credential is empty, malformed or rejected.

    """
    client = GitHubRestClient(config, http_client=http_client)
    try:
        await client.authenticate()
    except BaseException:
        await client.aclose()
        raise
    return client
