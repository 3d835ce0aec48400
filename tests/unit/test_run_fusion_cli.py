"""Unit tests for scripts/run_fusion.py (argument mapping and logging setup)."""

from __future__ import annotations

import importlib.util
import json
import signal
import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from nextsignal.io.store import InMemoryStore

_SCRIPT = Path(__file__).resolve().parents[2] / "scripts" / "run_fusion.py"


@pytest.fixture
def cli():
    spec = importlib.util.spec_from_file_location("run_fusion_cli", _SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def _args(cli, *extra):
    return cli.build_arg_parser().parse_args(["--lat", "12.9716", "--lng", "77.5946", *extra])


class TestArgsToConfig:
    def test_log_level_flag_overrides_environment(self, cli, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "ERROR")
        config = cli.args_to_config(_args(cli, "--log-level", "DEBUG"))
        assert config.log_level == "DEBUG"

    def test_log_level_falls_back_to_environment(self, cli, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "WARNING")
        config = cli.args_to_config(_args(cli))
        assert config.log_level == "WARNING"

    def test_radius_and_window_mapped(self, cli):
        config = cli.args_to_config(_args(cli, "--radius", "500", "--time-window", "7200"))
        assert config.fusion_radius_m == 500.0
        assert config.time_window_s == 7200


class TestMain:
    def test_logging_configured_from_config(self, cli, monkeypatch, capsys):
        monkeypatch.setenv("LOG_LEVEL", "WARNING")
        monkeypatch.setattr(sys, "argv", ["run_fusion", "--lat", "12.9716", "--lng", "77.5946"])
        monkeypatch.setattr(signal, "signal", MagicMock())
        configure = MagicMock()
        monkeypatch.setattr(cli, "configure_logging", configure)
        monkeypatch.setattr(cli, "build_store", lambda kind, config: InMemoryStore())

        with pytest.raises(SystemExit) as exc_info:
            cli.main()

        assert exc_info.value.code == 0
        configure.assert_called_once_with(log_level="WARNING", log_file=None)
        output = json.loads(capsys.readouterr().out)
        assert output["success"] is True
        assert output["events"] == []
        assert output["reportCount"] == 0
