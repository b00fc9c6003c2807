"""Errors raised by the GitHub REST gateway."""

from __future__ import annotations

from http import HTTPStatus


def _describe_status(status_code: int) -> str:
    try:
        phrase = HTTPStatus(status_code).phrase
    except ValueError:
        return str(status_code)
    return f"{status_code} {phrase}"


class GitHubAPIError(RuntimeError):
    """Raised when GitHub returns an error response or cannot be reached."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        """Initialise with a message and optional HTTP status code."""
        self.status_code = status_code
        super().__init__(message)

    @classmethod
    def http_error(cls, method: str, path: str, status_code: int) -> GitHubAPIError:
        """Return an error for a non-2xx HTTP response."""
        return cls(
            f"GitHub API {method} {path} returned {_describe_status(status_code)}",
            status_code=status_code,
        )

    @classmethod
    def timeout(cls, method: str, path: str) -> GitHubAPIError:
        """Return an error for a request that timed out."""
        return cls(f"GitHub API {method} {path} timed out")

    @classmethod
    def network_error(cls, method: str, path: str, detail: str) -> GitHubAPIError:
        """Return an error for DNS, connection or TLS failures."""
        return cls(f"GitHub API {method} {path} network error: {detail}")

    @classmethod
    def wrap(cls, prefix: str, exc: BaseException) -> GitHubAPIError:
        """Return ``cls`` describing ``exc``, keeping its status code."""
        status_code = exc.status_code if isinstance(exc, GitHubAPIError) else None
        return cls(f"{prefix}: {exc}", status_code=status_code)


class GitHubResponseShapeError(RuntimeError):
    """Raised when a GitHub response body does not match the expected shape."""

    @classmethod
    def invalid(cls, path: str, detail: str) -> GitHubResponseShapeError:
        """Return an error for a body that failed to decode."""
        return cls(f"GitHub API response for {path} is malformed: {detail}")


class GitHubConfigError(RuntimeError):
    """Raised when GitHub client configuration is invalid."""

    @classmethod
    def missing_token(cls) -> GitHubConfigError:
        """Return an error when no GitHub token is configured."""
        return cls("GITHUB_TOKEN is required for the GitHub API")


class GitHubAuthError(GitHubAPIError):
    """Raised when the credential is empty, malformed or rejected."""

    @classmethod
    def empty_token(cls) -> GitHubAuthError:
        """Return an error for a blank token."""
        return cls("GitHub token must be non-empty")

    @classmethod
    def malformed_token(cls) -> GitHubAuthError:
        """Return an error for a token containing whitespace."""
        return cls("GitHub token must not contain whitespace")

    @classmethod
    def rejected(cls, exc: BaseException) -> GitHubAuthError:
        """Return an error when GitHub refuses to resolve the token owner."""
        return cls.wrap("failed to get authenticated user", exc)


class RepositoryListError(GitHubAPIError):
    """Raised when listing repositories for the authenticated user fails."""


class RepositoryDetailError(GitHubAPIError):
    """Raised when a fork's detail fetch fails during discovery."""


class MissingParentError(RuntimeError):
    """Raised when a repository flagged as a fork carries no parent."""

    def __init__(self, full_name: str) -> None:
        """Initialise with the slug of the orphaned fork."""
        self.full_name = full_name
        super().__init__(f"Fork {full_name} has no parent information")


class CompareError(GitHubAPIError):
    """Raised when comparing two refs fails."""


class MergeError(GitHubAPIError):
    """Raised when the merge-upstream mutation does not succeed."""

    @property
    def is_conflict(self) -> bool:
        """Return True when GitHub reported a merge conflict."""
        return self.status_code == HTTPStatus.CONFLICT

    @classmethod
    def conflict(cls, full_name: str, branch: str) -> MergeError:
        """Return an error for a 409 response."""
        return cls(
            f"merge-upstream for {full_name}@{branch} hit a merge conflict",
            status_code=HTTPStatus.CONFLICT,
        )


class RepositoryLookupError(GitHubAPIError):
    """Raised when fetching repository metadata fails."""
