"""Client configuration for pylivemap."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from pylivemap._constants import (
    BASE_URL,
    NOMINATIM_URL,
    SEARCH_DEBOUNCE_SECONDS,
    SEARCH_RESULT_LIMIT,
    USER_AGENT,
    WS_URL,
)
from pylivemap.exceptions import LiveMapConfigError

POSITION_TRANSPORTS: frozenset[str] = frozenset({"websocket", "mqtt"})


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


@dataclasses.dataclass(frozen=True)
class MqttSettings:
    """Broker settings for the MQTT position transport."""

    host: str = "localhost"
    port: int = 1883
    topic: str = "livemap/playerLocations"
    client_id: str = ""
    username: str | None = None
    password: str | None = None
    tls: bool = False
    keepalive: int = 60


@dataclasses.dataclass(frozen=True)
class LiveMapConfig:
    """Client configuration.

    Parameters
    ----------
    base_url : str
        Region service base URL.
    ws_url : str
        WebSocket URL of the position push service.
    access_token : str or None
        Bearer credential attached to privileged requests (region deletion).
        Issued elsewhere; pylivemap only forwards it.
    geocoder_url : str
        Nominatim-compatible search endpoint.
    geocoder_user_agent : str
        ``User-Agent`` sent to the geocoder (Nominatim requires one).
    geocoder_limit : int
        Maximum hits requested from the geocoder per query.
    request_timeout : float
        Total timeout in seconds for HTTP requests.
    search_debounce : float
        Seconds of quiet after the latest query before a search runs.
    search_limit : int
        Cap on the merged result list.
    position_transport : str
        ``"websocket"`` (default) or ``"mqtt"``.
    reconnect_initial_delay : float
        First reconnect backoff in seconds.
    reconnect_max_delay : float
        Backoff ceiling in seconds.
    ws_heartbeat : float
        WebSocket ping interval in seconds.
    load_overlay_on_start : bool
        Fetch the region overlay when the view mounts.
    mqtt : MqttSettings
        Broker settings, used when ``position_transport == "mqtt"``.
    """

    base_url: str = BASE_URL
    ws_url: str = WS_URL
    access_token: str | None = None
    geocoder_url: str = NOMINATIM_URL
    geocoder_user_agent: str = USER_AGENT
    geocoder_limit: int = 10
    request_timeout: float = 10.0
    search_debounce: float = SEARCH_DEBOUNCE_SECONDS
    search_limit: int = SEARCH_RESULT_LIMIT
    position_transport: str = "websocket"
    reconnect_initial_delay: float = 1.0
    reconnect_max_delay: float = 30.0
    ws_heartbeat: float = 25.0
    load_overlay_on_start: bool = True
    mqtt: MqttSettings = dataclasses.field(default_factory=MqttSettings)

    def __post_init__(self) -> None:
        if self.position_transport not in POSITION_TRANSPORTS:
            raise LiveMapConfigError(
                f"position_transport must be one of {sorted(POSITION_TRANSPORTS)}, got {self.position_transport!r}"
            )
        if self.search_debounce < 0:
            raise LiveMapConfigError("search_debounce must be >= 0")
        if self.search_limit <= 0:
            raise LiveMapConfigError("search_limit must be positive")
        if self.geocoder_limit <= 0:
            raise LiveMapConfigError("geocoder_limit must be positive")
        if self.ws_heartbeat <= 0:
            raise LiveMapConfigError("ws_heartbeat must be positive")
        if self.reconnect_initial_delay <= 0 or self.reconnect_max_delay < self.reconnect_initial_delay:
            raise LiveMapConfigError("reconnect delays must satisfy 0 < initial <= max")

    @classmethod
    def from_env(cls, **overrides: Any) -> LiveMapConfig:
        """Create configuration from environment variables.

        Reads ``LIVEMAP_*`` variables. Explicit keyword arguments override
        environment values.
        """
        env = os.environ

        mqtt_kwargs: dict[str, Any] = {}
        _ENV_MQTT_MAP = {
            "LIVEMAP_MQTT_HOST": "host",
            "LIVEMAP_MQTT_TOPIC": "topic",
            "LIVEMAP_MQTT_CLIENT_ID": "client_id",
            "LIVEMAP_MQTT_USERNAME": "username",
            "LIVEMAP_MQTT_PASSWORD": "password",
        }
        for env_key, field_name in _ENV_MQTT_MAP.items():
            val = env.get(env_key)
            if val is not None:
                mqtt_kwargs[field_name] = val
        port_env = env.get("LIVEMAP_MQTT_PORT")
        if port_env is not None:
            mqtt_kwargs["port"] = int(port_env)
        tls_env = env.get("LIVEMAP_MQTT_TLS")
        if tls_env is not None:
            mqtt_kwargs["tls"] = _env_bool(tls_env, False)

        mqtt_overrides = overrides.pop("mqtt", None)
        if isinstance(mqtt_overrides, dict):
            mqtt_kwargs.update(mqtt_overrides)
        elif isinstance(mqtt_overrides, MqttSettings):
            mqtt_kwargs = dataclasses.asdict(mqtt_overrides)

        _ENV_CONFIG_MAP = {
            "LIVEMAP_BASE_URL": "base_url",
            "LIVEMAP_WS_URL": "ws_url",
            "LIVEMAP_ACCESS_TOKEN": "access_token",
            "LIVEMAP_GEOCODER_URL": "geocoder_url",
            "LIVEMAP_GEOCODER_USER_AGENT": "geocoder_user_agent",
            "LIVEMAP_POSITION_TRANSPORT": "position_transport",
        }
        config_kwargs: dict[str, Any] = {"mqtt": MqttSettings(**mqtt_kwargs)}
        for env_key, field_name in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        # numeric fields, handled separately
        _ENV_FLOAT_MAP = {
            "LIVEMAP_REQUEST_TIMEOUT": "request_timeout",
            "LIVEMAP_SEARCH_DEBOUNCE": "search_debounce",
            "LIVEMAP_RECONNECT_INITIAL_DELAY": "reconnect_initial_delay",
            "LIVEMAP_RECONNECT_MAX_DELAY": "reconnect_max_delay",
            "LIVEMAP_WS_HEARTBEAT": "ws_heartbeat",
        }
        for env_key, field_name in _ENV_FLOAT_MAP.items():
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                config_kwargs[field_name] = float(val)

        _ENV_INT_MAP = {
            "LIVEMAP_SEARCH_LIMIT": "search_limit",
            "LIVEMAP_GEOCODER_LIMIT": "geocoder_limit",
        }
        for env_key, field_name in _ENV_INT_MAP.items():
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                config_kwargs[field_name] = int(val)

        if "load_overlay_on_start" not in overrides:
            config_kwargs["load_overlay_on_start"] = _env_bool(env.get("LIVEMAP_LOAD_OVERLAY_ON_START"), True)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
