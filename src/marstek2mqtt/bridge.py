"""MQTT bridge.

Connects the poller to an MQTT broker:

- Every snapshot is published key by key to ``marstek2mqtt/<id>/<key>``.
  Enumerated keys (modes, inverter state) are published as their label.
- Home Assistant discovery configs are (re)published, retained, before the
  first snapshot and then at most every 4 hours.
- Commands arriving on ``marstek2mqtt/<id>/set/<key>`` are translated to a
  register write.  Invalid commands are logged and dropped; writes are
  attempted once and never retried.

Usage:
    bridge = Bridge(poller, RegisterCodec(), config)
    await asyncio.gather(poller.run(), bridge.run())
"""

from __future__ import annotations

import asyncio
import json
import logging
import random
import re
import ssl
import time
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

import aiomqtt

from marstek2mqtt.codec import RegisterCodec
from marstek2mqtt.constants import (
    AUTOCONF_REPUBLISH_INTERVAL,
    COMMAND_SEGMENT,
    MAX_REGISTER_VALUE,
    MQTT_RECONNECT_DELAY,
    TOPIC_PREFIX,
)
from marstek2mqtt.discovery import build_discovery_messages, state_topic
from marstek2mqtt.registers import ControlDefinition, ControlKind
from marstek2mqtt.transports import TransportError

if TYPE_CHECKING:
    from marstek2mqtt.config import BridgeConfig
    from marstek2mqtt.data import TelemetrySnapshot
    from marstek2mqtt.poller import Poller

_LOGGER = logging.getLogger(__name__)

_INTEGER_RE = re.compile(r"\s*[+-]?[0-9]+\s*")


def generate_client_id(identifier: str) -> str:
    """Return a unique MQTT client id for this process."""
    return f"{TOPIC_PREFIX}_{identifier}_{random.getrandbits(28):07x}"


class Bridge:
    """Translate between poller snapshots/writes and MQTT topics."""

    def __init__(
        self,
        poller: Poller,
        codec: RegisterCodec,
        config: BridgeConfig,
        *,
        clock: Callable[[], float] = time.monotonic,
        reconnect_delay: float = MQTT_RECONNECT_DELAY,
    ) -> None:
        """Initialize the bridge and subscribe it to poller snapshots.

        Args:
            poller: Source of snapshots and target of command writes
            codec: Label/code tables for controls and lookups
            config: Process configuration
            clock: Monotonic clock in seconds, drives discovery republishing
            reconnect_delay: Seconds to wait before reconnecting to the broker
        """
        self._poller = poller
        self._codec = codec
        self._config = config
        self._clock = clock
        self._reconnect_delay = reconnect_delay
        self._identifier = config.identifier
        self._client_id = generate_client_id(config.identifier)
        self._client: aiomqtt.Client | None = None
        self._autoconf_timestamp: float | None = None

        poller.on_data(self.handle_snapshot)

    @property
    def client_id(self) -> str:
        """MQTT client identifier used when connecting."""
        return self._client_id

    @property
    def command_topic_filter(self) -> str:
        """Subscription filter for inbound commands."""
        return f"{TOPIC_PREFIX}/{self._identifier}/{COMMAND_SEGMENT}/+"

    @property
    def autoconf_timestamp(self) -> float | None:
        """Monotonic time discovery was last published, None if never."""
        return self._autoconf_timestamp

    @property
    def is_connected(self) -> bool:
        """True while a broker session is open."""
        return self._client is not None

    # ------------------------------------------------------------------
    # Broker session
    # ------------------------------------------------------------------

    async def run(self) -> None:
        """Keep a broker session open and dispatch commands until cancelled."""
        config = self._config
        tls_context = ssl.create_default_context() if config.mqtt_tls else None

        while True:
            try:
                async with aiomqtt.Client(
                    hostname=config.mqtt_host,
                    port=config.mqtt_port,
                    username=config.mqtt_username,
                    password=config.mqtt_password,
                    identifier=self._client_id,
                    tls_context=tls_context,
                ) as client:
                    self._client = client
                    _LOGGER.info(
                        "Connected to MQTT broker %s:%s", config.mqtt_host, config.mqtt_port
                    )
                    await client.subscribe(self.command_topic_filter)
                    _LOGGER.info("Subscribed to commands: %s", self.command_topic_filter)

                    async for message in client.messages:
                        await self.handle_command(message.topic.value, message.payload)
            except aiomqtt.MqttError as err:
                _LOGGER.error(
                    "MQTT error: %s; reconnecting in %.0fs", err, self._reconnect_delay
                )
            finally:
                self._client = None

            await asyncio.sleep(self._reconnect_delay)

    # ------------------------------------------------------------------
    # Telemetry
    # ------------------------------------------------------------------

    async def handle_snapshot(self, snapshot: TelemetrySnapshot) -> None:
        """Publish discovery (if due) and every value of ``snapshot``."""
        client = self._client
        if client is None:
            _LOGGER.debug("Not connected to MQTT broker, dropping snapshot")
            return

        try:
            await self.ensure_autoconf()
            for key, value in snapshot.items():
                await client.publish(
                    state_topic(self._identifier, key), self.format_value(key, value)
                )
        except aiomqtt.MqttError as err:
            _LOGGER.warning("Failed to publish telemetry: %s", err)

    def format_value(self, key: str, value: Any) -> str:
        """Render a telemetry value as an MQTT payload.

        Enumerated keys become their label.  Codes without a label are
        published as the raw number.
        """
        if self._codec.is_enumerated(key):
            label = self._codec.label_for_code(key, value)
            if label is not None:
                return label
            _LOGGER.warning("Value %s for %s not found in lookup map", value, key)
        return f"{value}"

    async def ensure_autoconf(self) -> bool:
        """Publish discovery configs if they are missing or stale.

        Returns:
            True if discovery was published by this call

        Raises:
            aiomqtt.MqttError: If a publish fails; the clock is left unchanged
        """
        now = self._clock()
        if (
            self._autoconf_timestamp is not None
            and now - self._autoconf_timestamp <= AUTOCONF_REPUBLISH_INTERVAL
        ):
            return False

        client = self._client
        if client is None:
            return False

        messages = build_discovery_messages(
            self._identifier, self._codec, self._config.poll_interval_ms
        )
        for message in messages:
            payload = json.dumps(message.payload, ensure_ascii=False)
            await client.publish(message.topic, payload, retain=True)

        self._autoconf_timestamp = now
        _LOGGER.info("Published %d discovery configs", len(messages))
        return True

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def handle_command(self, topic: str, payload: Any) -> bool:
        """Translate a command message into a register write.

        Args:
            topic: ``<prefix>/<id>/set/<key>``
            payload: Label or decimal integer, as bytes or str

        Returns:
            True if a write was performed successfully
        """
        parts = topic.split("/")
        if len(parts) != 4 or parts[2] != COMMAND_SEGMENT:
            _LOGGER.debug("Ignoring message on %s", topic)
            return False

        key = parts[3]
        try:
            value = _payload_text(payload)
        except UnicodeDecodeError:
            _LOGGER.warning("Command payload for %s is not valid UTF-8", key)
            return False

        _LOGGER.info("Received command for %s: %s", key, value)

        control = self._codec.control(key)
        if control is None:
            if self._codec.lookup(key) is not None:
                _LOGGER.warning("%s is read-only", key)
            else:
                _LOGGER.warning("Unknown control key: %s", key)
            return False

        register_value = (
            self._resolve_label(control, value)
            if control.kind == ControlKind.ENUMERATED
            else self._resolve_number(control, value)
        )
        if register_value is None:
            return False

        return await self._write(control.register, register_value)

    def _resolve_label(self, control: ControlDefinition, value: str) -> int | None:
        code = self._codec.code_for_label(control.key, value)
        if code is None:
            _LOGGER.warning(
                "Invalid option string '%s' for %s. Expected: %s",
                value,
                control.key,
                ", ".join(self._codec.labels_for(control.key)),
            )
        return code

    def _resolve_number(self, control: ControlDefinition, value: str) -> int | None:
        if not _INTEGER_RE.fullmatch(value):
            _LOGGER.warning("Invalid number '%s' for %s", value, control.key)
            return None

        try:
            number = int(value, 10)
        except ValueError:
            # digit strings past the interpreter's int conversion limit
            _LOGGER.warning("Invalid number '%.20s...' for %s", value.strip(), control.key)
            return None

        low = control.min_value if control.min_value is not None else 0
        high = control.max_value if control.max_value is not None else MAX_REGISTER_VALUE
        if not low <= number <= high:
            _LOGGER.warning(
                "Value %d for %s out of range [%d, %d]", number, control.key, low, high
            )
            return None
        return number

    async def _write(self, register: int, value: int) -> bool:
        try:
            await self._poller.write_register(register, value)
        except TransportError as err:
            _LOGGER.error("Failed to write to register %d: %s", register, err)
            return False

        _LOGGER.info("Successfully wrote %d to register %d", value, register)
        return True


def _payload_text(payload: Any) -> str:
    if payload is None:
        return ""
    if isinstance(payload, bytes | bytearray):
        return bytes(payload).decode("utf-8")
    return str(payload)
