"""Unit tests for the furca command-line interface."""

from __future__ import annotations

import json
import typing as typ

import pytest

from furca import __version__, cli
from furca.github import GitHubAPIError, GitHubAuthError, RepositoryListError
from tests.unit.sync_test_helpers import FakeForkGateway, FakeLogger, make_fork

if typ.TYPE_CHECKING:
    from pathlib import Path

    from furca.github import GitHubRestConfig

_ENV_KEYS = (
    "GITHUB_TOKEN",
    "GITHUB_API_URL",
    "LOG_LEVEL",
    "DRY_RUN",
    "JSON_OUTPUT",
    "MAX_RETRIES",
    "RETRY_DELAY",
    "CI_FAIL_ON_OUTDATED",
    "MAX_CONCURRENCY",
    "ABORT_ON_ERROR",
    "FURCA_COMMIT",
    "FURCA_BUILD_DATE",
)


@pytest.fixture(autouse=True)
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Hide real env files and variables, and keep logging unconfigured."""
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(
        cli, "configure_logging", lambda level, **_: (str(level).upper(), False)
    )


def _use_gateway(
    monkeypatch: pytest.MonkeyPatch, gateway: FakeForkGateway
) -> list[GitHubRestConfig]:
    configs: list[GitHubRestConfig] = []

    async def _fake_connect(
        config: GitHubRestConfig, *, http_client: object | None = None
    ) -> FakeForkGateway:
        del http_client
        configs.append(config)
        return gateway

    monkeypatch.setattr(cli, "connect", _fake_connect)
    return configs


def _mixed_gateway() -> FakeForkGateway:
    return FakeForkGateway(
        forks=[
            make_fork("me", "fresh"),
            make_fork("me", "stale"),
            make_fork("me", "broken"),
        ],
        behind_by={"me/stale": 3},
        compare_failures={"me/broken": {"main", "master"}},
    )


def _with_token(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GITHUB_TOKEN", "ghp_example")
    monkeypatch.setenv("MAX_RETRIES", "0")


def test_version_command_prints_build_metadata(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    """version prints the package version plus commit and build date."""
    monkeypatch.setenv("FURCA_COMMIT", "abc123")

    assert cli.main(["version"]) == 0

    assert capsys.readouterr().out.splitlines() == [
        f"Furca version {__version__}",
        "Commit: abc123",
        "Built: unknown",
    ]


@pytest.mark.parametrize("command", ["sync", "ci-check"])
def test_missing_token_prints_guidance(
    command: str,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    """Without a token no gateway is built and the exit code is 1."""
    configs = _use_gateway(monkeypatch, FakeForkGateway())

    assert cli.main([command]) == 1

    assert "GitHub token not found" in capsys.readouterr().err
    assert configs == [], "Expected no gateway connection without a token."


def test_sync_prints_progress_and_summary(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    """A sync run prints one line per fork and exits 0 despite fork errors."""
    _with_token(monkeypatch)
    gateway = _mixed_gateway()
    configs = _use_gateway(monkeypatch, gateway)

    assert cli.main(["sync"]) == 0

    out = capsys.readouterr().out
    assert "[ok] me/fresh is up to date with upstream" in out
    assert "Successfully synced me/stale with upstream (was behind by 3 commits)" in out
    assert "[error] Error processing me/broken: failed to compare commits:" in out
    assert "Summary:" in out
    assert gateway.merge_calls == [("me/stale", "main")]
    assert gateway.closed, "Expected the gateway to be closed after the run."
    assert configs[0].token == "ghp_example"


def test_sync_dry_run_json_output(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    """--dry-run --json prints only the JSON summary and merges nothing."""
    _with_token(monkeypatch)
    gateway = _mixed_gateway()
    _use_gateway(monkeypatch, gateway)

    assert cli.main(["sync", "--dry-run", "--json"]) == 0

    payload = json.loads(capsys.readouterr().out)
    assert payload["dry_run"] is True
    assert payload["synced"] == ["me/stale"]
    assert payload["up_to_date"] == ["me/fresh"]
    assert list(payload["errors"]) == ["me/broken"]
    assert payload["total_repos"] == 3
    assert gateway.merge_calls == []


def test_sync_flags_override_environment(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    """DRY_RUN from the environment applies unless a flag overrides it."""
    _with_token(monkeypatch)
    monkeypatch.setenv("DRY_RUN", "true")
    gateway = _mixed_gateway()
    _use_gateway(monkeypatch, gateway)

    assert cli.main(["sync", "--no-dry-run", "--max-concurrency", "1"]) == 0

    assert "[dry-run]" not in capsys.readouterr().out
    assert gateway.merge_calls == [("me/stale", "main")]


def test_sync_with_no_forks(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    """No forks prints nothing in text mode and an empty summary in JSON."""
    _with_token(monkeypatch)
    _use_gateway(monkeypatch, FakeForkGateway())

    assert cli.main(["sync"]) == 0
    assert capsys.readouterr().out == ""

    assert cli.main(["sync", "--json"]) == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["total_repos"] == 0
    assert payload["synced"] == []


@pytest.mark.parametrize(
    "error",
    [
        GitHubAuthError.rejected(GitHubAPIError.http_error("GET", "/user", 401)),
        RepositoryListError("failed to list repositories: boom", status_code=500),
    ],
)
def test_fatal_errors_exit_one(
    error: Exception,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    """Authentication and listing failures abort the run with exit code 1."""
    _with_token(monkeypatch)
    if isinstance(error, GitHubAuthError):

        async def _failing_connect(
            config: GitHubRestConfig, *, http_client: object | None = None
        ) -> FakeForkGateway:
            raise error

        monkeypatch.setattr(cli, "connect", _failing_connect)
    else:
        _use_gateway(monkeypatch, FakeForkGateway(list_error=error))

    assert cli.main(["sync"]) == 1

    assert "Error: " in capsys.readouterr().err


def test_fatal_error_is_logged_with_exception(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    """Fatal errors are logged at ERROR with the exception attached."""
    _with_token(monkeypatch)
    error = RepositoryListError("failed to list repositories: boom", status_code=500)
    _use_gateway(monkeypatch, FakeForkGateway(list_error=error))
    logger = FakeLogger()
    monkeypatch.setattr(cli, "logger", logger)

    assert cli.main(["sync"]) == 1

    capsys.readouterr()
    assert logger.calls == [
        ("ERROR", "Fatal error: failed to list repositories: boom", error, False)
    ]


def test_invalid_configuration_exits_one(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    """Unparsable settings are reported before any network activity."""
    _with_token(monkeypatch)
    monkeypatch.setenv("MAX_RETRIES", "lots")

    assert cli.main(["sync"]) == 1

    assert "MAX_RETRIES must be an integer" in capsys.readouterr().err


def test_env_file_in_working_directory_is_read(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    """A .env file in the working directory supplies the token."""
    (tmp_path / ".env").write_text("GITHUB_TOKEN=from_file\nMAX_RETRIES=0\n")
    configs = _use_gateway(monkeypatch, FakeForkGateway())

    assert cli.main(["ci-check"]) == 0

    capsys.readouterr()
    assert configs[0].token == "from_file"


def test_config_files_are_reported_after_logging_is_configured(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    """Each env file read is logged at INFO once logging is set up."""
    logger = FakeLogger()
    calls_at_configure: list[int] = []

    def _configure(level: str, **_: object) -> tuple[str, bool]:
        calls_at_configure.append(len(logger.calls))
        return (str(level).upper(), False)

    monkeypatch.setattr(cli, "logger", logger)
    monkeypatch.setattr(cli, "configure_logging", _configure)
    (tmp_path / ".furca").write_text("MAX_RETRIES=0\n")
    (tmp_path / ".env").write_text("GITHUB_TOKEN=from_file\n")
    _use_gateway(monkeypatch, FakeForkGateway())

    assert cli.main(["ci-check"]) == 0

    capsys.readouterr()
    assert calls_at_configure == [0], "Expected nothing logged before configuring."
    assert logger.messages("INFO") == [
        f"Using config file: {tmp_path / '.furca'}",
        f"Using config file: {tmp_path / '.env'}",
    ]


@pytest.mark.parametrize(
    ("args", "expected_code"),
    [
        (["ci-check"], 0),
        (["ci-check", "--fail-on-outdated"], 1),
    ],
)
def test_ci_check_exit_code_follows_fail_flag(
    args: list[str],
    expected_code: int,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    """ci-check fails only when asked to and some fork is behind."""
    _with_token(monkeypatch)
    gateway = _mixed_gateway()
    _use_gateway(monkeypatch, gateway)

    assert cli.main(args) == expected_code

    out = capsys.readouterr().out
    assert "[behind] me/stale is behind upstream by 3 commits" in out
    assert "Total repositories checked: 3" in out
    assert gateway.merge_calls == [], "Expected ci-check to stay read-only."


def test_ci_check_errors_alone_do_not_fail(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    """Errored forks do not trip --fail-on-outdated."""
    _with_token(monkeypatch)
    _use_gateway(
        monkeypatch,
        FakeForkGateway(
            forks=[make_fork("me", "broken")],
            compare_failures={"me/broken": {"main", "master"}},
        ),
    )

    assert cli.main(["ci-check", "--fail-on-outdated", "--json"]) == 0

    payload = json.loads(capsys.readouterr().out)
    assert payload["outdated_status"] is False
    assert payload["total_errors"] == 1


class TestCliStructure:
    """Tests for CLI structure and subcommands."""

    def test_app_has_name_and_version(self) -> None:
        """The app is named furca and reports the package version."""
        # Cyclopts returns name as a tuple
        assert cli.app.name == ("furca",)
        assert cli.app.version == __version__

    @pytest.mark.parametrize("command", ["sync", "ci-check", "version"])
    def test_app_has_command(self, command: str) -> None:
        """Each documented subcommand is registered."""
        command_names = [cmd.name for cmd in cli.app._commands.values()]  # noqa: SLF001
        assert (command,) in command_names
