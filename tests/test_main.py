"""Tests for the command line entry point (terminal session stubbed out)."""

import sys
from pathlib import Path

import pytest

from tensor_explorer import main as cli
from tensor_explorer.core.exceptions import ResolutionError


@pytest.fixture
def sessions(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> list:
    """Record run_session calls instead of opening a terminal."""
    calls = []
    monkeypatch.setattr(cli, "run_session", lambda catalog, config: calls.append((catalog, config)))
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))
    return calls


class TestParseArgs:
    """Test argument parsing."""

    def test_defaults(self) -> None:
        """Test defaults leave config values untouched."""
        args = cli.parse_args(["a.safetensors", "dir"])
        assert args.paths == ["a.safetensors", "dir"]
        assert args.recursive is None
        assert not args.skip_errors
        assert args.config is None

    def test_flags(self) -> None:
        """Test every flag is parsed."""
        args = cli.parse_args(["-r", "--skip-errors", "--no-metadata", "--log-level", "debug", "x"])
        assert args.recursive is True
        assert args.skip_errors
        assert args.no_metadata
        assert args.log_level == "debug"

    def test_bad_log_level_is_usage_error(self) -> None:
        """Test an invalid choice exits with code 2."""
        with pytest.raises(SystemExit) as exc_info:
            cli.parse_args(["--log-level", "loud"])
        assert exc_info.value.code == 2


class TestMain:
    """Test the main flow."""

    def test_normal_run(self, sessions, write_safetensors) -> None:
        """Test a file opens a session with its catalog."""
        path = write_safetensors("m.safetensors", {"block.0.weight": ("F32", [2])})
        assert cli.main([str(path)]) == 0

        ((catalog, config),) = sessions
        assert catalog.tensor_count == 1
        assert config.recursive is False

    def test_overrides_applied(self, sessions, write_gguf, tmp_path: Path) -> None:
        """Test command line flags override config."""
        write_gguf("sub/m.gguf", [("w", (4,), 0)], [("k", 8, "v")])
        assert cli.main(["-r", "--no-metadata", str(tmp_path)]) == 0

        ((catalog, config),) = sessions
        assert config.recursive is True
        assert config.show_metadata is False
        assert catalog.metadata is None

    def test_config_file_respected(self, sessions, write_safetensors, tmp_path: Path) -> None:
        """Test the config file sets defaults."""
        write_safetensors("nested/m.safetensors", {"w": ("F32", [1])})
        (tmp_path / "tensor-explorer.yaml").write_text("recursive: true\n")
        assert cli.main([str(tmp_path)]) == 0
        assert sessions[0][1].recursive is True

    def test_no_sources_raises(self, sessions, tmp_path: Path) -> None:
        """Test nothing matched raises before a session starts."""
        with pytest.raises(ResolutionError):
            cli.main([str(tmp_path / "*.gguf")])
        assert sessions == []


class TestRun:
    """Test exit codes of the console entry point."""

    def _run(self, monkeypatch: pytest.MonkeyPatch, argv: list[str]) -> int:
        monkeypatch.setattr(sys, "argv", ["tensor-explorer", *argv])
        with pytest.raises(SystemExit) as exc_info:
            cli.run()
        return exc_info.value.code

    def test_success(self, sessions, write_safetensors, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test a normal run exits 0."""
        path = write_safetensors("m.safetensors", {"w": ("F32", [1])})
        assert self._run(monkeypatch, [str(path)]) == 0

    def test_no_files_exits_nonzero(self, sessions, tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys) -> None:
        """Test an empty match exits 1 with a message."""
        assert self._run(monkeypatch, [str(tmp_path / "missing.gguf")]) == 1
        assert "No SafeTensors or GGUF files found" in capsys.readouterr().err

    def test_no_arguments(self, sessions, monkeypatch: pytest.MonkeyPatch, capsys) -> None:
        """Test no arguments exits 1 with usage help."""
        assert self._run(monkeypatch, []) == 1
        assert "Please specify" in capsys.readouterr().err

    def test_parse_error_exits_one(self, sessions, tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys) -> None:
        """Test a malformed file exits 1 naming the file."""
        bad = tmp_path / "bad.gguf"
        bad.write_bytes(b"nope")
        assert self._run(monkeypatch, [str(bad)]) == 1
        assert "bad.gguf" in capsys.readouterr().err

    def test_name_conflict_exits_one(self, sessions, write_safetensors, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test a tensor/group clash across files exits 1."""
        a = write_safetensors("a.safetensors", {"x.y": ("F32", [1])})
        b = write_safetensors("b.safetensors", {"x.y.z": ("F32", [1])})
        assert self._run(monkeypatch, [str(a), str(b)]) == 1

    def test_keyboard_interrupt(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test Ctrl-C exits 130."""
        def interrupted(argv=None):
            raise KeyboardInterrupt

        monkeypatch.setattr(cli, "main", interrupted)
        assert self._run(monkeypatch, []) == 130
