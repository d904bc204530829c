"""Transport-specific exceptions.

This module provides exception classes for Modbus transport operations,
allowing callers to distinguish a device that cannot be reached from one
that was reached but failed mid-request.

All transport exceptions inherit from :class:`~marstek2mqtt.exceptions.MarstekError`.
"""

from __future__ import annotations

from marstek2mqtt.exceptions import MarstekError


class TransportError(MarstekError):
    """Base exception for all transport errors."""

    pass


class TransportConnectionError(TransportError):
    """Failed to connect to the device."""

    pass


class NotConnectedError(TransportError):
    """Operation attempted while the link is disconnected.

    Raised before any I/O is attempted, so it never indicates a fault on
    the wire.
    """

    def __init__(self, operation: str) -> None:
        """Initialize with the operation that was refused.

        Args:
            operation: Short description of the refused operation
        """
        self.operation = operation
        super().__init__(f"Cannot {operation}: not connected")


class TransportIOError(TransportError):
    """Base class for failures during a read or write on a live link."""

    pass


class TransportTimeoutError(TransportIOError):
    """Operation timed out."""

    pass


class TransportReadError(TransportIOError):
    """Failed to read data from device."""

    pass


class TransportWriteError(TransportIOError):
    """Failed to write data to device."""

    pass
