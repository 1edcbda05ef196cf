"""Tests for CLI commands."""

import logging
from pathlib import Path
from unittest.mock import patch

import pytest
import structlog
from click.testing import CliRunner

from obs_pulse.cli import main
from obs_pulse.config import Config
from obs_pulse.credentials import Credentials, CredentialStore
from obs_pulse.obs_client import ConnectError
from tests.conftest import FakeClientFactory, stats_payload


@pytest.fixture
def runner() -> CliRunner:
    """Create a CLI test runner."""
    return CliRunner()


@pytest.fixture
def home(tmp_path: Path, monkeypatch) -> Path:
    """Point config and state directories at a temporary home."""
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.delenv("OBS_PULSE_ADDRESS", raising=False)
    monkeypatch.delenv("OBS_PULSE_PASSWORD", raising=False)
    yield tmp_path
    structlog.reset_defaults()
    root = logging.getLogger()
    for handler in root.handlers:
        handler.close()
    root.handlers.clear()


def _fast_config() -> None:
    config = Config()
    config.polling.interval = 0.01
    config.save()


class TestConfigCommand:
    """Tests for the config command group."""

    def test_init_creates_file(self, runner: CliRunner, home: Path) -> None:
        result = runner.invoke(main, ["config", "init"])
        assert result.exit_code == 0
        assert Config().config_path.exists()

    def test_init_keeps_existing(self, runner: CliRunner, home: Path) -> None:
        runner.invoke(main, ["config", "init"])
        result = runner.invoke(main, ["config", "init"])
        assert result.exit_code == 0
        assert "already exists" in result.output

    def test_show(self, runner: CliRunner, home: Path) -> None:
        result = runner.invoke(main, ["config", "show"])
        assert result.exit_code == 0
        assert "Exists: False" in result.output
        assert "[connection]" in result.output
        assert "default_address = 127.0.0.1:4455" in result.output
        assert "warning = 0.01" in result.output

    def test_invalid_config_is_reported(self, runner: CliRunner, home: Path) -> None:
        path = Config().config_path
        path.parent.mkdir(parents=True)
        path.write_text("[polling]\ninterval = -1\n")
        result = runner.invoke(main, ["config", "show"])
        assert result.exit_code != 0
        assert "interval" in result.output


class TestForgetCommand:
    """Tests for the forget command."""

    def test_forget_removes_credentials(self, runner: CliRunner, home: Path) -> None:
        store = CredentialStore(Config().credentials_path)
        store.save(Credentials("127.0.0.1:4455", "secret"))

        result = runner.invoke(main, ["forget"])
        assert result.exit_code == 0
        assert store.load() is None


class TestWatchCommand:
    """Tests for the console watch mode."""

    def test_watch_prints_samples(self, runner: CliRunner, home: Path) -> None:
        _fast_config()
        factory = FakeClientFactory()
        factory.stats = [stats_payload(60, 1000)] * 10

        with patch("obs_pulse.monitor.ObsClient", factory):
            result = runner.invoke(
                main, ["watch", "--count", "2", "--address", "127.0.0.1:4455", "-p", "pw"]
            )

        assert result.exit_code == 0, result.output
        assert factory.attempts == [("ws://127.0.0.1:4455", "pw")]
        assert factory.batches >= 2
        assert "Connected" in result.output
        # Successful credentials are remembered for the next run
        assert CredentialStore(Config().credentials_path).load() == Credentials(
            "127.0.0.1:4455", "pw"
        )

    def test_watch_uses_env_address(self, runner: CliRunner, home: Path) -> None:
        _fast_config()
        factory = FakeClientFactory()

        with patch("obs_pulse.monitor.ObsClient", factory):
            result = runner.invoke(
                main, ["watch", "--count", "1"], env={"OBS_PULSE_ADDRESS": "obs.local:4455"}
            )

        assert result.exit_code == 0, result.output
        assert factory.attempts[0][0] == "ws://obs.local:4455"

    def test_watch_connect_failure(self, runner: CliRunner, home: Path) -> None:
        factory = FakeClientFactory()
        factory.failures.append(ConnectError("Could not connect"))

        with patch("obs_pulse.monitor.ObsClient", factory):
            result = runner.invoke(main, ["watch", "--count", "1"])

        assert result.exit_code == 1
        assert "Connect failed" in result.output
        assert factory.attempts[0][0] == "ws://127.0.0.1:4455"
