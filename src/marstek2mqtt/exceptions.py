"""Exception classes for marstek2mqtt.

Every exception raised by this package derives from :class:`MarstekError`,
so callers can catch a single base class for decode, configuration and
transport failures alike.
"""

from __future__ import annotations


class MarstekError(Exception):
    """Base exception for all marstek2mqtt errors."""

    pass


class DecodeError(MarstekError):
    """A register block is shorter than the layout applied to it."""

    def __init__(self, key: str, required: int, available: int) -> None:
        """Initialize with the field that could not be decoded.

        Args:
            key: Output key of the field that ran past the buffer
            required: Number of bytes the field needs
            available: Number of bytes actually supplied
        """
        self.key = key
        self.required = required
        self.available = available
        super().__init__(
            f"Malformed block: field '{key}' needs {required} bytes, got {available}"
        )


class ConfigError(MarstekError, ValueError):
    """Configuration is missing or invalid."""

    pass
