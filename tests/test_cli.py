"""Tests for the command-line entry point."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from threads_shell import _cli
from threads_shell._cli import build_parser, config_from_args, main
from threads_shell._config import ClientConfig

if TYPE_CHECKING:
    from pathlib import Path

    from threads_shell._shell import Session


@pytest.fixture
def sessions(monkeypatch: pytest.MonkeyPatch) -> list[Session]:
    """Replace the interactive console with one that records the session it was given."""
    seen: list[Session] = []

    def _interact(session: Session, banner: str | None = None) -> None:
        seen.append(session)

    monkeypatch.setattr(_cli, "interact", _interact)
    return seen


class TestConfigFromArgs:
    def test_defaults(self) -> None:
        config = config_from_args(build_parser().parse_args([]))
        assert config.client is None
        assert config.store is None
        assert config.timeout == 30.0

    def test_flags(self) -> None:
        args = build_parser().parse_args(
            ["--client", "s3", "--bucket", "threads", "--key", "k", "--secret", "s", "--region", "eu-west-1"]
        )
        config = config_from_args(args)
        assert config.client == ClientConfig(
            type="s3", options={"bucket": "threads", "key": "k", "secret": "s", "region_name": "eu-west-1"}
        )

    def test_flags_override_file(self, tmp_path: Path) -> None:
        path = tmp_path / "shell.toml"
        path.write_text('timeout = 5\n\n[client]\ntype = "local"\n\n[client.options]\nroot = "/data"\n')
        args = build_parser().parse_args(["--config", str(path), "--root", "/other", "--timeout", "1.5"])
        config = config_from_args(args)
        assert config.timeout == 1.5
        assert config.client == ClientConfig(type="local", options={"root": "/other"})

    def test_other_client_type_drops_file_options(self, tmp_path: Path) -> None:
        path = tmp_path / "shell.toml"
        path.write_text('[client]\ntype = "local"\n\n[client.options]\nroot = "/data"\n')
        config = config_from_args(build_parser().parse_args(["--config", str(path), "--client", "memory"]))
        assert config.client == ClientConfig(type="memory")

    def test_db_flags(self) -> None:
        args = build_parser().parse_args(["--client", "memory", "--db-name", "people", "--db-id", "abc"])
        config = config_from_args(args)
        assert config.store == "people"
        assert config.store_id == "abc"


class TestMain:
    def test_without_client(self, sessions: list[Session]) -> None:
        assert main([]) == 0
        assert len(sessions) == 1
        assert sessions[0].client is None

    def test_with_client_and_database(self, sessions: list[Session], capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["--client", "memory", "--db-name", "people"]) == 0
        session = sessions[0]
        assert session.store() is None  # closed on exit
        out = capsys.readouterr().out
        assert "Connected to memory://" in out
        assert "Using people" in out

    def test_invalid_flags_exit_2(self, sessions: list[Session]) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["--client", "memory", "--db-id", "abc"])
        assert exc_info.value.code == 2
        assert sessions == []

    def test_non_numeric_timeout_in_config_exits_2(
        self, sessions: list[Session], tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        path = tmp_path / "shell.toml"
        path.write_text('timeout = "fast"\n')
        with pytest.raises(SystemExit) as exc_info:
            main(["--config", str(path)])
        assert exc_info.value.code == 2
        assert sessions == []
        assert "timeout must be a number, got 'fast'" in capsys.readouterr().err

    def test_unusable_client_returns_1(self, sessions: list[Session], capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["--client", "s3"]) == 1
        assert sessions == []
        assert "Hit a snag" in capsys.readouterr().out

    def test_resume_missing_store_keeps_shell_open(
        self, sessions: list[Session], capsys: pytest.CaptureFixture[str]
    ) -> None:
        assert main(["--client", "memory", "--db-name", "people", "--db-id", "missing"]) == 0
        assert len(sessions) == 1
        assert "Store not found" in capsys.readouterr().out
