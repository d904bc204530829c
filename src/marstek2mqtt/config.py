"""Bridge configuration.

All settings are resolved once at startup from environment variables
(optionally loaded from a ``.env`` file) and treated as immutable after
that.

Example:
    config = BridgeConfig.from_env()
    config.validate()

Environment variables:
    IDENTIFIER            Device id used in MQTT topics (default "One")
    MQTT_BROKER_URL       mqtt://host[:port] or mqtts://host[:port]
    MQTT_USERNAME         Broker username (optional)
    MQTT_PASSWORD         Broker password (optional)
    POLL_IP               Modbus TCP host (required)
    POLL_PORT             Modbus TCP port (default 502)
    SLAVE_ID              Modbus unit id (default 1)
    POLL_INTERVAL         Poll interval in ms (default 5000)
    POLL_TIMEOUT          Per-request timeout in ms (default 2000)
    LOGLEVEL              trace, debug, info, warn or error (default info)
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from urllib.parse import urlsplit

from dotenv import load_dotenv

from marstek2mqtt.constants import (
    DEFAULT_IDENTIFIER,
    DEFAULT_LOG_LEVEL,
    DEFAULT_MODBUS_PORT,
    DEFAULT_POLL_INTERVAL_MS,
    DEFAULT_TIMEOUT_MS,
    DEFAULT_UNIT_ID,
    LOG_LEVELS,
    MQTT_DEFAULT_PORT,
)
from marstek2mqtt.exceptions import ConfigError

MQTT_TLS_SCHEMES = frozenset({"mqtts", "ssl", "tls"})
MQTT_PLAIN_SCHEMES = frozenset({"mqtt", "tcp"})
MQTT_DEFAULT_TLS_PORT = 8883


def _int_setting(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw, 10)
    except ValueError as err:
        raise ConfigError(f"{name} must be an integer, got '{raw}'") from err


def parse_log_level(value: str) -> int:
    """Map a LOGLEVEL name to a logging level number.

    Raises:
        ConfigError: If the name is not one of the supported levels
    """
    level = LOG_LEVELS.get(value.strip().lower())
    if level is None:
        valid = "','".join(LOG_LEVELS)
        raise ConfigError(f"Invalid log level '{value}', valid are '{valid}'")
    return level


@dataclass(frozen=True)
class BridgeConfig:
    """Immutable settings for one bridge process.

    Attributes:
        poll_host: Modbus TCP host of the battery
        identifier: Device id used in MQTT topics
        poll_port: Modbus TCP port
        unit_id: Modbus unit/slave ID
        poll_interval_ms: Poll interval in milliseconds
        timeout_ms: Per-request Modbus timeout in milliseconds
        mqtt_host: Broker hostname
        mqtt_port: Broker port
        mqtt_tls: True to connect to the broker over TLS
        mqtt_username: Broker username, None for anonymous
        mqtt_password: Broker password
        log_level: LOGLEVEL name (trace, debug, info, warn, error)
    """

    poll_host: str
    identifier: str = DEFAULT_IDENTIFIER
    poll_port: int = DEFAULT_MODBUS_PORT
    unit_id: int = DEFAULT_UNIT_ID
    poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    mqtt_host: str = "127.0.0.1"
    mqtt_port: int = MQTT_DEFAULT_PORT
    mqtt_tls: bool = False
    mqtt_username: str | None = None
    mqtt_password: str | None = None
    log_level: str = DEFAULT_LOG_LEVEL

    @property
    def timeout(self) -> float:
        """Modbus timeout in seconds."""
        return self.timeout_ms / 1000

    @property
    def log_level_number(self) -> int:
        """``log_level`` as a :mod:`logging` level number."""
        return parse_log_level(self.log_level)

    def validate(self) -> None:
        """Validate configuration completeness.

        Raises:
            ConfigError: If a required setting is missing or out of range
        """
        if not self.poll_host:
            raise ConfigError("POLL_IP is not set.")
        if not self.identifier or "/" in self.identifier or "+" in self.identifier:
            raise ConfigError(f"IDENTIFIER '{self.identifier}' is not a valid topic segment")
        if not 1 <= self.poll_port <= 65535:
            raise ConfigError(f"POLL_PORT must be between 1 and 65535, got {self.poll_port}")
        if not 0 <= self.unit_id <= 247:
            raise ConfigError(f"SLAVE_ID must be between 0 and 247, got {self.unit_id}")
        if self.poll_interval_ms <= 0:
            raise ConfigError(f"POLL_INTERVAL must be positive, got {self.poll_interval_ms}")
        if self.timeout_ms <= 0:
            raise ConfigError(f"POLL_TIMEOUT must be positive, got {self.timeout_ms}")
        if not self.mqtt_host:
            raise ConfigError("MQTT_BROKER_URL has no host")
        parse_log_level(self.log_level)

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        *,
        env_file: str | Path | None = None,
    ) -> BridgeConfig:
        """Create configuration from environment variables.

        Args:
            environ: Mapping to read instead of ``os.environ``.  When omitted,
                ``.env`` is loaded first (without overriding variables that are
                already set).
            env_file: Explicit ``.env`` path to load

        Returns:
            Unvalidated BridgeConfig; call :meth:`validate` before use

        Raises:
            ConfigError: If a numeric setting or the broker URL cannot be parsed
        """
        if environ is None:
            load_dotenv(env_file)
            environ = os.environ

        kwargs: dict[str, Any] = {}
        kwargs.update(parse_broker_url(environ.get("MQTT_BROKER_URL", "mqtt://127.0.0.1")))

        username = environ.get("MQTT_USERNAME")
        if username:
            kwargs["mqtt_username"] = username
            kwargs["mqtt_password"] = environ.get("MQTT_PASSWORD")

        return cls(
            poll_host=environ.get("POLL_IP", "").strip(),
            identifier=environ.get("IDENTIFIER", "").strip() or DEFAULT_IDENTIFIER,
            poll_port=_int_setting(environ, "POLL_PORT", DEFAULT_MODBUS_PORT),
            unit_id=_int_setting(environ, "SLAVE_ID", DEFAULT_UNIT_ID),
            poll_interval_ms=_int_setting(environ, "POLL_INTERVAL", DEFAULT_POLL_INTERVAL_MS),
            timeout_ms=_int_setting(environ, "POLL_TIMEOUT", DEFAULT_TIMEOUT_MS),
            log_level=environ.get("LOGLEVEL", "").strip() or DEFAULT_LOG_LEVEL,
            **kwargs,
        )


def parse_broker_url(url: str) -> dict[str, Any]:
    """Split an MQTT broker URL into host, port and TLS flag.

    Raises:
        ConfigError: If the scheme is unsupported or the port is invalid
    """
    parts = urlsplit(url.strip() if "://" in url else f"mqtt://{url.strip()}")
    scheme = parts.scheme.lower()
    if scheme not in MQTT_PLAIN_SCHEMES | MQTT_TLS_SCHEMES:
        raise ConfigError(f"Unsupported MQTT_BROKER_URL scheme '{parts.scheme}'")

    tls = scheme in MQTT_TLS_SCHEMES
    try:
        port = parts.port
    except ValueError as err:
        raise ConfigError(f"Invalid port in MQTT_BROKER_URL '{url}'") from err

    return {
        "mqtt_host": parts.hostname or "",
        "mqtt_port": port or (MQTT_DEFAULT_TLS_PORT if tls else MQTT_DEFAULT_PORT),
        "mqtt_tls": tls,
    }
