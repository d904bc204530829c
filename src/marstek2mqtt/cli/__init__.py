"""Command line entry points for marstek2mqtt."""

from __future__ import annotations

import logging

from marstek2mqtt.constants import LOG_FORMAT, TRACE


def configure_logging(level: int) -> None:
    """Configure the root logger for a CLI process.

    pymodbus is kept at WARNING unless trace output was requested, since its
    debug output repeats every frame on the wire.
    """
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger().setLevel(level)
    logging.getLogger("pymodbus").setLevel(level if level <= TRACE else logging.WARNING)
