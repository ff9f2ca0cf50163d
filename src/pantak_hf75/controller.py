"""
Pantak HF75 X-ray emitter interface.

High-level Python API for driving a Pantak HF75 over RS232.  Focus control
is not supported.

Protocol details:
    - Baud: 9600, 8N1
    - Command termination: CR (0x0D)
    - Response termination: ``>`` (0x3E)
    - Errors: ``COMMUNICATION ERROR`` trailing a response

Disconnecting always switches emission off first.
"""

from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Callable

from .constants import DEFAULT_BAUD, DEFAULT_PORT, MAX_RATED_KV, MAX_RATED_WATTS
from .exceptions import NotConnected, PortUnavailable
from .protocol import InterlockStatus, PantakProtocol, TraceSink
from .transport import ByteChannel, SerialChannel

logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    """Lifecycle of a :class:`PantakHF75` connection."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class PantakHF75:
    """Serial driver for the Pantak HF75 X-ray emitter.

    Every public method holds one lock for its whole duration, so concurrent
    callers never interleave frames.  Nothing is cached; each query goes to
    the device.

    Use as a context manager to guarantee emission is stopped and the port
    released::

        with PantakHF75("/dev/ttyUSB0") as hf:
            hf.start_emitting(kv=40, ma=5)

    Args:
        port: Default port for :meth:`connect` and the context manager.
        trace: Sink for protocol trace lines (defaults to the
            ``pantak_hf75.trace`` logger).
        trace_enabled: Whether trace lines are emitted.
        channel_factory: Callable building an unopened byte channel for a
            port name.
    """

    def __init__(
        self,
        port: str | None = None,
        trace: TraceSink | None = None,
        trace_enabled: bool = True,
        channel_factory: Callable[[str], ByteChannel] | None = None,
    ) -> None:
        self.port = port
        self._trace = trace
        self._trace_enabled = trace_enabled
        self._channel_factory = channel_factory or _serial_channel
        self._channel: ByteChannel | None = None
        self._p: PantakProtocol | None = None
        self._state = ConnectionState.DISCONNECTED
        self._lock = threading.RLock()

    # -- Context manager ----------------------------------------------------

    def __enter__(self) -> PantakHF75:
        if self.port is not None:
            self.connect(self.port)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.disconnect()

    # -- Connection ---------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        """Return ``True`` if the serial port is open."""
        return self._channel is not None and self._channel.is_open

    def connect(self, port: str | None = None) -> None:
        """Open *port*, reset the emitter and select ASCII mode.

        Any existing connection is torn down first (emission stopped, port
        closed).

        Raises:
            PortUnavailable: If no port is given or it cannot be opened.
            CommunicationFault: If the emitter rejects the handshake; the
                port is closed again before this propagates.
        """
        port = port or self.port
        if not port:
            raise PortUnavailable("No port given to connect()")

        with self._lock:
            self.disconnect()
            self._state = ConnectionState.CONNECTING
            channel = self._channel_factory(port)
            try:
                channel.open()
            except Exception:
                self._state = ConnectionState.DISCONNECTED
                raise

            proto = PantakProtocol(
                channel, trace=self._trace, trace_enabled=self._trace_enabled
            )
            try:
                proto.handshake()
            except Exception:
                logger.warning("Handshake with %s failed; closing port", port)
                channel.close()
                self._state = ConnectionState.DISCONNECTED
                raise

            self.port = port
            self._channel = channel
            self._p = proto
            self._state = ConnectionState.CONNECTED
            logger.info("Connected to Pantak HF75 on %s", port)

    def disconnect(self) -> None:
        """Stop emission and close the port (safe to call multiple times).

        Never raises: a failure to stop emission is logged and the port is
        closed regardless.
        """
        with self._lock:
            channel, proto = self._channel, self._p
            self._channel = None
            self._p = None
            self._state = ConnectionState.DISCONNECTED

            if channel is None or not channel.is_open:
                return

            try:
                if proto is not None:
                    proto.stop_emitting()
            except Exception as exc:
                logger.warning("Could not stop emission during disconnect: %s", exc)

            try:
                channel.close()
            except Exception as exc:
                logger.warning("Error closing port during disconnect: %s", exc)

    def _require_proto(self) -> PantakProtocol:
        if not self.is_connected or self._p is None:
            raise NotConnected("Not connected - call connect() first.")
        return self._p

    # -- Tracing ------------------------------------------------------------

    @property
    def trace_enabled(self) -> bool:
        return self._trace_enabled

    def enable_trace(self) -> None:
        with self._lock:
            self._trace_enabled = True
            if self._p is not None:
                self._p.enable_trace()

    def disable_trace(self) -> None:
        with self._lock:
            self._trace_enabled = False
            if self._p is not None:
                self._p.disable_trace()

    # -- Ratings ------------------------------------------------------------

    @property
    def max_watts(self) -> float:
        return MAX_RATED_WATTS

    @property
    def max_kv(self) -> float:
        return MAX_RATED_KV

    # -- Queries ------------------------------------------------------------

    def get_kv(self) -> float:
        """Measured output voltage in kV (``-1.0`` if garbled)."""
        with self._lock:
            return self._require_proto().get_kv()

    def get_ma(self) -> float:
        """Measured tube current in mA (``-1.0`` if garbled)."""
        with self._lock:
            return self._require_proto().get_ma()

    def is_emitting(self) -> bool:
        with self._lock:
            return self._require_proto().is_emitting()

    def is_warmed_up(self) -> bool:
        with self._lock:
            return self._require_proto().is_warmed_up()

    def get_interlocks(self) -> InterlockStatus:
        with self._lock:
            return self._require_proto().get_interlocks()

    def get_interlock_text(self) -> str:
        """Comma-separated names of the interlocks currently in fault."""
        with self._lock:
            return self._require_proto().get_interlock_text()

    # -- Commands -----------------------------------------------------------

    def override_warmup(self) -> None:
        with self._lock:
            self._require_proto().override_warmup()

    def set_voltage_and_current(self, kv: float, ma: float) -> float:
        """Set kV and mA without starting emission.

        Current is clamped to the rated power at *kv*.

        Returns:
            The current actually sent, in mA.
        """
        with self._lock:
            return self._require_proto().set_voltage_and_current(kv, ma)

    def start_emitting(self, kv: float, ma: float) -> float:
        """Switch X-ray emission on at *kv* / *ma*.

        If the settings would exceed the tube's rated power the current is
        reduced to the maximum allowed at *kv*.

        Returns:
            The current actually sent, in mA.

        Raises:
            InvalidParameter: If *kv* or *ma* is negative (nothing is sent).
        """
        with self._lock:
            return self._require_proto().start_emitting(kv, ma)

    def stop_emitting(self) -> None:
        with self._lock:
            self._require_proto().stop_emitting()


def _serial_channel(port: str) -> ByteChannel:
    return SerialChannel(port, baudrate=DEFAULT_BAUD)


# ---------------------------------------------------------------------------
# Convenience factory
# ---------------------------------------------------------------------------


def get_driver(port: str = DEFAULT_PORT, trace_enabled: bool = True) -> PantakHF75:
    """Return a driver instance (use as a context manager).

    Example::

        with get_driver('/dev/ttyUSB0') as hf:
            print(hf.get_kv())
    """
    return PantakHF75(port, trace_enabled=trace_enabled)
