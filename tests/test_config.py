"""
Unit tests for configuration and the command-line entry point.

Tests:
- Defaults, YAML loading and environment overrides
- Invalid configuration rejection
- CLI argument handling
"""

from pathlib import Path

import pytest

from powledger.config import LedgerConfig
from powledger.exceptions import ConfigError
from powledger.main import build_parser, load_config, main


REPO_DEFAULTS = Path(__file__).resolve().parent.parent / "config" / "default.yaml"


class TestLedgerConfig:
    """Tests for the settings model."""

    def test_defaults(self):
        config = LedgerConfig()
        assert config.difficulty == 10
        assert config.flush_interval == 5.0
        assert config.storage_path == Path("./blocks")
        assert config.workers is None
        assert config.flush_retries == 3
        assert config.flush_backoff == 0.5
        assert not config.drain_pending
        assert not config.strict_links
        assert config.log_level == "INFO"

    def test_sample_file_matches_defaults(self):
        assert LedgerConfig.from_yaml(REPO_DEFAULTS) == LedgerConfig()

    def test_from_yaml(self, tmp_path):
        path = tmp_path / "node.yaml"
        path.write_text("difficulty: 12\nstorage_path: /var/lib/blocks\nlog_level: debug\n")
        config = LedgerConfig.from_yaml(path)
        assert config.difficulty == 12
        assert config.storage_path == Path("/var/lib/blocks")
        assert config.log_level == "DEBUG"

    def test_empty_file_uses_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert LedgerConfig.from_yaml(path).difficulty == 10

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("POWLEDGER_DIFFICULTY", "14")
        monkeypatch.setenv("POWLEDGER_DRAIN_PENDING", "true")
        config = LedgerConfig()
        assert config.difficulty == 14
        assert config.drain_pending

    def test_file_values_win_over_environment(self, tmp_path, monkeypatch):
        """Keys in the file beat POWLEDGER_*; missing keys come from the environment."""
        monkeypatch.setenv("POWLEDGER_DIFFICULTY", "12")
        monkeypatch.setenv("POWLEDGER_WORKERS", "3")
        path = tmp_path / "node.yaml"
        path.write_text("difficulty: 9\n")
        config = LedgerConfig.from_yaml(path)
        assert config.difficulty == 9
        assert config.workers == 3

    def test_sample_file_documents_precedence(self):
        text = REPO_DEFAULTS.read_text()
        assert "take priority over the environment" in text

    def test_overrides_win_over_file(self, tmp_path):
        path = tmp_path / "node.yaml"
        path.write_text("difficulty: 12\nworkers: 4\n")
        config = LedgerConfig.load(path, overrides={'difficulty': 6, 'workers': None})
        assert config.difficulty == 6
        assert config.workers == 4

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            LedgerConfig.from_yaml(tmp_path / "missing.yaml")

    def test_bad_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("difficulty: [unclosed\n")
        with pytest.raises(ConfigError):
            LedgerConfig.from_yaml(path)

    def test_non_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- 1\n- 2\n")
        with pytest.raises(ConfigError, match="mapping"):
            LedgerConfig.from_yaml(path)

    @pytest.mark.parametrize("content", [
        "difficulty: 0",
        "difficulty: 257",
        "flush_interval: 0",
        "workers: 0",
        "flush_retries: -1",
        "log_level: LOUD",
    ])
    def test_invalid_values(self, tmp_path, content):
        path = tmp_path / "invalid.yaml"
        path.write_text(content + "\n")
        with pytest.raises(ConfigError):
            LedgerConfig.from_yaml(path)


class TestCommandLine:
    """Tests for the powledger entry point."""

    def test_parser_defaults(self):
        args = build_parser().parse_args([])
        assert args.config is None
        assert args.difficulty is None
        assert not args.no_extend

    def test_flags_become_overrides(self, tmp_path):
        args = build_parser().parse_args([
            "--difficulty", "9",
            "--storage-path", str(tmp_path),
            "--flush-interval", "2.5",
            "--workers", "3",
            "--log-level", "warning",
            "--no-extend",
        ])
        config = load_config(args)
        assert config.difficulty == 9
        assert config.storage_path == tmp_path
        assert config.flush_interval == 2.5
        assert config.workers == 3
        assert config.log_level == "WARNING"
        assert args.no_extend

    def test_config_file_flag(self, tmp_path):
        path = tmp_path / "node.yaml"
        path.write_text("difficulty: 11\n")
        config = load_config(build_parser().parse_args(["--config", str(path)]))
        assert config.difficulty == 11

    def test_bad_config_exit_code(self, tmp_path):
        assert main(["--config", str(tmp_path / "missing.yaml")]) == 2

    def test_startup_failure_exit_code(self, tmp_path):
        path = tmp_path / "occupied"
        path.write_text("file")
        assert main(["--storage-path", str(path), "--difficulty", "8", "--workers", "2"]) == 1
