import pytest
from pydantic import ValidationError

from sessionlink.config import ConnectionSettings


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("SESSIONLINK_CONFIG_FILE", raising=False)
    for name in ("SESSIONLINK_MAX_RECONNECT_ATTEMPTS", "SESSIONLINK_LOG_LEVEL", "SESSIONLINK_URL"):
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    settings = ConnectionSettings()

    assert str(settings.url) == "ws://localhost:8000/websocket"
    assert settings.session_query_param == "sessionId"
    assert settings.attempt_query_param == "attempt"
    assert settings.max_reconnect_attempts == 50
    assert settings.reconnect_delay_seconds == 0.1
    assert settings.heartbeat_close_code == 4000
    assert settings.config_path is None


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("SESSIONLINK_MAX_RECONNECT_ATTEMPTS", "7")
    monkeypatch.setenv("SESSIONLINK_LOG_LEVEL", "debug")

    settings = ConnectionSettings()

    assert settings.max_reconnect_attempts == 7
    assert settings.log_level == "DEBUG"


def test_yaml_file_source(monkeypatch, tmp_path):
    config = tmp_path / "client.yaml"
    config.write_text(
        "url: ws://chat.example.test/websocket\n"
        "ping_interval_seconds: 5\n"
        "pong_payload: PONG\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("SESSIONLINK_CONFIG_FILE", str(config))

    settings = ConnectionSettings()

    assert str(settings.url) == "ws://chat.example.test/websocket"
    assert settings.ping_interval_seconds == 5
    assert settings.pong_payload == "PONG"
    assert settings.config_path == config


def test_init_values_beat_file(monkeypatch, tmp_path):
    config = tmp_path / "client.yaml"
    config.write_text("max_reconnect_attempts: 9\n", encoding="utf-8")
    monkeypatch.setenv("SESSIONLINK_CONFIG_FILE", str(config))

    assert ConnectionSettings(max_reconnect_attempts=2).max_reconnect_attempts == 2


def test_non_mapping_file_rejected(monkeypatch, tmp_path):
    config = tmp_path / "client.yaml"
    config.write_text("- just\n- a list\n", encoding="utf-8")
    monkeypatch.setenv("SESSIONLINK_CONFIG_FILE", str(config))

    with pytest.raises(ValueError):
        ConnectionSettings()


@pytest.mark.parametrize(
    "overrides",
    [
        {"heartbeat_close_code": 1000},
        {"heartbeat_close_code": 5000},
        {"ping_payload": "same", "pong_payload": "same"},
        {"pong_timeout_seconds": 0},
        {"max_reconnect_attempts": -1},
    ],
)
def test_invalid_values_rejected(overrides):
    with pytest.raises(ValidationError):
        ConnectionSettings(**overrides)
