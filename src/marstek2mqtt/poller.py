"""Fixed-interval poller.

The poller owns the single authoritative poll cycle: it keeps the Modbus
link alive, reads the Venus register blocks in a fixed order, decodes them
into one :class:`~marstek2mqtt.data.TelemetrySnapshot` and hands that
snapshot to every registered listener.

Scheduling:
    Ticks are aligned to interval boundaries.  After each tick the poller
    sleeps ``interval - (now mod interval)``, so a slow cycle shortens the
    following sleep instead of pushing every later tick back.  Only one
    tick runs at a time; a tick's connect attempt and cycle always finish
    before the next tick starts.

Failure handling:
    Any transport or decode error during a cycle abandons it (no snapshot
    is emitted) and drops the link.  The next tick reconnects.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from collections.abc import Awaitable, Callable, Sequence

from marstek2mqtt.codec import TelemetryValue, decode_block
from marstek2mqtt.constants import DEFAULT_POLL_INTERVAL_MS
from marstek2mqtt.data import TelemetrySnapshot
from marstek2mqtt.exceptions import DecodeError
from marstek2mqtt.registers import VENUS_POLL_BLOCKS, RegisterBlock
from marstek2mqtt.transports import (
    ModbusTransport,
    TransportConnectionError,
    TransportError,
)

_LOGGER = logging.getLogger(__name__)

DataListener = Callable[[TelemetrySnapshot], Awaitable[None] | None]


class Poller:
    """Drives the poll loop against a :class:`ModbusTransport`."""

    def __init__(
        self,
        transport: ModbusTransport,
        *,
        interval_ms: int = DEFAULT_POLL_INTERVAL_MS,
        blocks: Sequence[RegisterBlock] = VENUS_POLL_BLOCKS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the poller.

        Args:
            transport: Link to the device
            interval_ms: Poll interval in milliseconds
            blocks: Register blocks read each cycle, in order
            clock: Wall-clock source in seconds, used to align ticks
        """
        if interval_ms <= 0:
            raise ValueError(f"interval_ms must be positive, got {interval_ms}")
        self._transport = transport
        self._interval_ms = interval_ms
        self._blocks = tuple(blocks)
        self._clock = clock
        self._listeners: list[DataListener] = []
        self._cycle_lock = asyncio.Lock()
        self._stop_event = asyncio.Event()
        self._cycle_count = 0

    @property
    def transport(self) -> ModbusTransport:
        """The device link this poller drives."""
        return self._transport

    @property
    def interval_ms(self) -> int:
        """Poll interval in milliseconds."""
        return self._interval_ms

    @property
    def cycle_count(self) -> int:
        """Number of poll cycles that produced a snapshot."""
        return self._cycle_count

    def on_data(self, listener: DataListener) -> None:
        """Register a listener for completed poll cycles.

        Listeners are called in registration order with each snapshot.  They
        may be plain callables or coroutine functions.
        """
        self._listeners.append(listener)

    async def write_register(self, address: int, value: int) -> None:
        """Write a single register through the shared device link."""
        await self._transport.write_register(address, value)

    def next_delay(self) -> float:
        """Seconds until the next interval boundary."""
        now_ms = self._clock() * 1000
        return (self._interval_ms - (now_ms % self._interval_ms)) / 1000

    async def run(self) -> None:
        """Poll until :meth:`stop` is called.

        Connection and cycle failures are logged and retried on the next
        tick; they never end the loop.
        """
        self._stop_event.clear()
        _LOGGER.info(
            "Polling %s:%s (unit %s) every %dms",
            self._transport.host,
            self._transport.port,
            self._transport.unit_id,
            self._interval_ms,
        )
        try:
            while not self._stop_event.is_set():
                await self.tick()
                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=self.next_delay())
                except TimeoutError:
                    continue
        finally:
            await self._transport.disconnect()
            _LOGGER.info("Poller stopped")

    def stop(self) -> None:
        """Ask :meth:`run` to return after the current tick."""
        self._stop_event.set()

    async def tick(self) -> TelemetrySnapshot | None:
        """Run one scheduled tick: reconnect if needed, then poll.

        Returns:
            The emitted snapshot, or None if the tick failed
        """
        async with self._cycle_lock:
            if not self._transport.is_connected:
                try:
                    await self._transport.connect()
                except TransportConnectionError:
                    # already logged by the transport
                    return None

            try:
                return await self._poll_cycle()
            except (TransportError, DecodeError) as err:
                _LOGGER.warning("Error during poll cycle: %s", err)
                await self._transport.disconnect()
                return None

    async def poll_once(self) -> TelemetrySnapshot:
        """Run a single poll cycle on an already connected link.

        Raises:
            TransportError: If a block read fails
            DecodeError: If a block is shorter than its layout
        """
        async with self._cycle_lock:
            return await self._poll_cycle()

    async def _poll_cycle(self) -> TelemetrySnapshot:
        values: dict[str, TelemetryValue] = {}
        for block in self._blocks:
            raw = await self._transport.read_block(block.start, block.count)
            values.update(decode_block(raw, block.fields))

        snapshot = TelemetrySnapshot(values)
        self._cycle_count += 1
        _LOGGER.debug("Poll cycle %d complete: %d values", self._cycle_count, len(snapshot))
        await self._emit(snapshot)
        return snapshot

    async def _emit(self, snapshot: TelemetrySnapshot) -> None:
        for listener in list(self._listeners):
            try:
                result = listener(snapshot)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                _LOGGER.exception("Data listener %r failed", listener)
