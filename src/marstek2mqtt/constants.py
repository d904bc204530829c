"""Constants shared across marstek2mqtt."""

from __future__ import annotations

import logging

# ============================================================================
# MQTT TOPICS
# ============================================================================

TOPIC_PREFIX = "marstek2mqtt"
DISCOVERY_PREFIX = "homeassistant"
COMMAND_SEGMENT = "set"

# Republish discovery metadata every 4 hours
AUTOCONF_REPUBLISH_INTERVAL = 4 * 60 * 60  # seconds

MQTT_DEFAULT_PORT = 1883
MQTT_RECONNECT_DELAY = 5.0  # seconds

# ============================================================================
# DEVICE
# ============================================================================

DEVICE_MANUFACTURER = "Marstek"
DEVICE_MODEL = "Venus"

DEFAULT_IDENTIFIER = "One"
DEFAULT_MODBUS_PORT = 502
DEFAULT_UNIT_ID = 1
DEFAULT_POLL_INTERVAL_MS = 5000
DEFAULT_TIMEOUT_MS = 2000

# Largest value a single holding register can carry
MAX_REGISTER_VALUE = 0xFFFF

# ============================================================================
# LOGGING
# ============================================================================

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

LOG_LEVELS: dict[str, int] = {
    "trace": TRACE,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}
DEFAULT_LOG_LEVEL = "info"
LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(name)s: %(message)s"
