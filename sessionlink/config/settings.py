"""Client configuration loading and validation."""

from __future__ import annotations

import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, ClassVar, Dict, Iterable, Literal

import yaml
from pydantic import AnyUrl, Field, NonNegativeInt, PositiveFloat
from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_CONFIG_LOCATIONS: tuple[Path, ...] = (
    Path("/etc/sessionlink/client.yaml"),
    Path("/etc/sessionlink/client.yml"),
    Path("./config/client.yaml"),
    Path("./config/client.yml"),
)


class ConnectionSettings(BaseSettings):
    """Validated settings for the reconnecting session connection."""

    model_config: ClassVar[SettingsConfigDict] = SettingsConfigDict(
        env_prefix="SESSIONLINK_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Endpoint + session identity
    url: AnyUrl = Field(
        default="ws://localhost:8000/websocket",
        description="Base WebSocket endpoint; session and attempt parameters are appended.",
    )
    subprotocols: list[str] = Field(
        default_factory=list,
        description="WebSocket subprotocols offered during the handshake.",
    )
    session_query_param: str = Field(
        default="sessionId",
        min_length=1,
        description="Query parameter carrying the immutable session token.",
    )
    attempt_query_param: str = Field(
        default="attempt",
        min_length=1,
        description="Query parameter carrying the lifetime reconnect attempt counter.",
    )

    # Reconnect budget
    max_reconnect_attempts: NonNegativeInt = Field(
        default=50,
        description="Consecutive reconnect attempts allowed before giving up.",
    )
    reconnect_delay_seconds: float = Field(
        default=0.1,
        ge=0,
        description="Fixed delay between reconnect attempts.",
    )
    max_reconnect_window_seconds: PositiveFloat = Field(
        default=300.0,
        description="Give up once this long has passed since the first disconnect of a retry sequence.",
    )

    # Heartbeat
    ping_interval_seconds: PositiveFloat = Field(
        default=20.0,
        description="Interval between heartbeat pings while the transport is open.",
    )
    pong_timeout_seconds: PositiveFloat = Field(
        default=10.0,
        description="Seconds to wait for a pong after a ping before presuming the link dead.",
    )
    ping_payload: str = Field(
        default="__ping__",
        min_length=1,
        description="Reserved text payload sent as the heartbeat ping.",
    )
    pong_payload: str = Field(
        default="__pong__",
        min_length=1,
        description="Reserved text payload the server replies with.",
    )
    heartbeat_close_code: int = Field(
        default=4000,
        ge=3000,
        le=4999,
        description="Application close code used when the pong deadline expires.",
    )
    heartbeat_close_reason: str = Field(
        default="heartbeat timeout",
        max_length=123,
        description="Close reason used when the pong deadline expires.",
    )

    # Transport
    open_timeout_seconds: PositiveFloat | None = Field(
        default=10.0,
        description="Handshake timeout for a single connection attempt.",
    )
    close_timeout_seconds: PositiveFloat | None = Field(
        default=10.0,
        description="Time allowed for the closing handshake.",
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Minimum log level for the client process.",
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        if isinstance(value, str):
            return value.upper()
        return value

    @model_validator(mode="after")
    def _check_heartbeat_payloads(self) -> "ConnectionSettings":
        if self.ping_payload == self.pong_payload:
            raise ValueError("ping_payload and pong_payload must differ")
        return self

    config_path: Path | None = Field(
        default=None,
        description="Resolved path to the on-disk config that seeded the settings.",
        exclude=True,
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[ConnectionSettings],
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            cls._yaml_settings_source,
            env_settings,
            dotenv_settings,
            file_secret_settings,
        )

    @staticmethod
    def _yaml_settings_source(settings_cls: type[ConnectionSettings] | None = None) -> Dict[str, Any]:
        candidates: Iterable[Path] = ConnectionSettings._resolve_candidate_paths()

        for path in candidates:
            data = ConnectionSettings._load_file(path)
            if data is not None:
                data.setdefault("config_path", path)
                return data
        return {}

    @staticmethod
    def _resolve_candidate_paths() -> Iterable[Path]:
        explicit = os.getenv("SESSIONLINK_CONFIG_FILE")
        if explicit:
            yield Path(explicit).expanduser()
        yield from DEFAULT_CONFIG_LOCATIONS

    @staticmethod
    def _load_file(path: Path) -> Dict[str, Any] | None:
        if not path.is_file():
            return None
        suffix = path.suffix.lower()
        try:
            with path.open("r", encoding="utf-8") as handle:
                if suffix in {".yaml", ".yml"}:
                    raw = yaml.safe_load(handle)
                elif suffix == ".json":
                    raw = json.load(handle)
                else:
                    return None
        except OSError as exc:
            raise RuntimeError(f"Failed to read client config file {path}") from exc
        except (yaml.YAMLError, json.JSONDecodeError) as exc:
            raise ValueError(f"Invalid client config file {path}") from exc

        if raw is None:
            return {}
        if not isinstance(raw, dict):
            raise ValueError(f"Client config file {path} must contain a mapping at top level.")
        return raw


@lru_cache()
def get_settings() -> ConnectionSettings:
    """Return memoized client settings."""

    return ConnectionSettings()
