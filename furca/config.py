"""Run configuration for Furca.

Values are read, in increasing order of precedence, from the ``~/.furca`` env
file, a ``.env`` file in the working directory, and the process environment.
CLI flags are applied on top with :meth:`FurcaConfig.with_overrides`.

Recognised keys
---------------
- ``GITHUB_TOKEN``: personal access token with ``repo`` scope (required for
  ``sync`` and ``ci-check``)
- ``GITHUB_API_URL``: REST API root (default ``https://api.github.com``)
- ``LOG_LEVEL``: femtologging level (default ``INFO``)
- ``DRY_RUN`` / ``JSON_OUTPUT`` / ``CI_FAIL_ON_OUTDATED`` / ``ABORT_ON_ERROR``:
  booleans
- ``MAX_RETRIES``: retries per remote step (default 2)
- ``RETRY_DELAY``: seconds between retries (default 3)
- ``MAX_CONCURRENCY``: optional cap on forks processed at once (default:
  unbounded)

Usage
-----
>>> config = FurcaConfig.from_env(env_files=(), environ={"MAX_RETRIES": "4"})
>>> config.max_retries
4

"""

from __future__ import annotations

import dataclasses as dc
import os
import typing as typ
from pathlib import Path

from dotenv import dotenv_values

from furca.github.client import DEFAULT_API_URL, GitHubRestConfig
from furca.github.errors import GitHubConfigError
from furca.sync.orchestrator import OrchestratorConfig
from furca.sync.retry import RetryPolicy

if typ.TYPE_CHECKING:
    import collections.abc as cabc

_DEFAULT_MAX_RETRIES = 2
_DEFAULT_RETRY_DELAY_S = 3
_TRUE_VALUES = frozenset({"1", "true", "t", "yes", "y", "on"})
_FALSE_VALUES = frozenset({"0", "false", "f", "no", "n", "off"})


def default_env_files() -> tuple[Path, ...]:
    """Return the env files consulted when none are given explicitly."""
    return (Path.home() / ".furca", Path.cwd() / ".env")


def existing_env_files(
    env_files: cabc.Iterable[Path] | None = None,
) -> tuple[Path, ...]:
    """Return the env files, in precedence order, that exist on disk."""
    candidates = default_env_files() if env_files is None else env_files
    return tuple(path for path in candidates if path.is_file())


def load_settings(
    env_files: cabc.Iterable[Path] | None = None,
    environ: cabc.Mapping[str, str] | None = None,
) -> dict[str, str]:
    """Merge env files and the environment into one mapping.

    Later env files override earlier ones; ``environ`` (default
    ``os.environ``) overrides every file. Missing files are skipped.
    """
    merged: dict[str, str] = {}
    for path in existing_env_files(env_files):
        file_values = dotenv_values(path)
        merged.update(
            {key: value for key, value in file_values.items() if value is not None}
        )
    merged.update(os.environ if environ is None else environ)
    return merged


def _raw(values: cabc.Mapping[str, str], key: str) -> str | None:
    raw = values.get(key)
    if raw is None or not raw.strip():
        return None
    return raw.strip()


def _parse_bool(values: cabc.Mapping[str, str], key: str, *, default: bool) -> bool:
    raw = _raw(values, key)
    if raw is None:
        return default
    lowered = raw.lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    msg = f"{key} must be a boolean, got: {raw!r}"
    raise ValueError(msg)


def _parse_int(values: cabc.Mapping[str, str], key: str) -> int | None:
    raw = _raw(values, key)
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError as exc:
        msg = f"{key} must be an integer, got: {raw!r}"
        raise ValueError(msg) from exc


def _parse_non_negative_int(
    values: cabc.Mapping[str, str], key: str, *, default: int
) -> int:
    value = _parse_int(values, key)
    if value is None:
        return default
    if value < 0:
        msg = f"{key} must be non-negative, got: {value}"
        raise ValueError(msg)
    return value


def _parse_positive_int(values: cabc.Mapping[str, str], key: str) -> int | None:
    value = _parse_int(values, key)
    if value is not None and value < 1:
        msg = f"{key} must be positive, got: {value}"
        raise ValueError(msg)
    return value


@dc.dataclass(frozen=True, slots=True)
class FurcaConfig:
    """Settings shared by the ``sync`` and ``ci-check`` commands."""

    token: str = ""
    api_url: str = DEFAULT_API_URL
    log_level: str = "INFO"
    dry_run: bool = False
    json_output: bool = False
    max_retries: int = _DEFAULT_MAX_RETRIES
    retry_delay_s: int = _DEFAULT_RETRY_DELAY_S
    fail_on_outdated: bool = False
    max_concurrency: int | None = None
    abort_on_error: bool = False
    env_files: tuple[Path, ...] = ()

    @classmethod
    def from_mapping(cls, values: cabc.Mapping[str, str]) -> FurcaConfig:
        """Build configuration from already-merged settings.

        Raises
        ------
        ValueError
            If a boolean or integer key holds an unparsable value.

        """
        return cls(
            token=(values.get("GITHUB_TOKEN") or "").strip(),
            api_url=_raw(values, "GITHUB_API_URL") or DEFAULT_API_URL,
            log_level=_raw(values, "LOG_LEVEL") or "INFO",
            dry_run=_parse_bool(values, "DRY_RUN", default=False),
            json_output=_parse_bool(values, "JSON_OUTPUT", default=False),
            max_retries=_parse_non_negative_int(
                values, "MAX_RETRIES", default=_DEFAULT_MAX_RETRIES
            ),
            retry_delay_s=_parse_non_negative_int(
                values, "RETRY_DELAY", default=_DEFAULT_RETRY_DELAY_S
            ),
            fail_on_outdated=_parse_bool(values, "CI_FAIL_ON_OUTDATED", default=False),
            max_concurrency=_parse_positive_int(values, "MAX_CONCURRENCY"),
            abort_on_error=_parse_bool(values, "ABORT_ON_ERROR", default=False),
        )

    @classmethod
    def from_env(
        cls,
        *,
        env_files: cabc.Iterable[Path] | None = None,
        environ: cabc.Mapping[str, str] | None = None,
    ) -> FurcaConfig:
        """Load env files and the environment, then build configuration.

        The env files that were actually read are kept in ``env_files`` so the
        caller can report them once logging is configured.
        """
        found = existing_env_files(env_files)
        config = cls.from_mapping(load_settings(found, environ))
        return dc.replace(config, env_files=found)

    def with_overrides(self, **overrides: object) -> FurcaConfig:
        """Return a copy with every non-``None`` override applied."""
        changes = {key: value for key, value in overrides.items() if value is not None}
        return dc.replace(self, **changes)

    def require_token(self) -> str:
        """Return the token or raise before any gateway call is made."""
        if not self.token:
            raise GitHubConfigError.missing_token()
        return self.token

    def github_config(self) -> GitHubRestConfig:
        """Return REST client configuration for this run."""
        return GitHubRestConfig(token=self.require_token(), api_url=self.api_url)

    def retry_policy(self) -> RetryPolicy:
        """Return the retry policy for detect and sync steps."""
        return RetryPolicy(
            max_retries=self.max_retries, delay_s=float(self.retry_delay_s)
        )

    def orchestrator_config(self) -> OrchestratorConfig:
        """Return orchestrator settings for this run."""
        return OrchestratorConfig(
            retry=self.retry_policy(),
            max_concurrency=self.max_concurrency,
            abort_on_error=self.abort_on_error,
        )
