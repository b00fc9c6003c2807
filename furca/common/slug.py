"""Repository slug utilities.

Slugs are GitHub ``owner/name`` identifiers. Furca keys its summaries by slug
so that two forks sharing a repository name under different owners never
collide.
"""

from __future__ import annotations


def repo_slug(owner: str, name: str) -> str:
    """Build an ``owner/name`` slug.

    Examples
    --------
    >>> repo_slug("octocat", "hello-world")
    'octocat/hello-world'

    """
    return f"{owner}/{name}"


def ref_spec(owner: str, branch: str) -> str:
    """Build a cross-repository ref spec used by the compare endpoint.

    Examples
    --------
    >>> ref_spec("upstream-org", "main")
    'upstream-org:main'

    """
    return f"{owner}:{branch}"
