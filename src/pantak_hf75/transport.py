"""
Serial transport layer for the Pantak HF75.

Wraps the physical serial port behind a minimal duplex byte channel.  Knows
nothing about frames, terminators or commands; that is :mod:`codec` and
:mod:`protocol`'s job.

Typical usage (via :class:`~pantak_hf75.controller.PantakHF75`)::

    channel = SerialChannel("/dev/ttyUSB0")
    channel.open()
    channel.write(b"v\\r")
    byte = channel.read_one()
    channel.close()
"""

from __future__ import annotations

import logging
from typing import Protocol

import serial

from .constants import DEFAULT_BAUD, DEFAULT_PORT
from .exceptions import NotConnected, PortUnavailable

logger = logging.getLogger(__name__)


class ByteChannel(Protocol):
    """Duplex byte stream consumed by the protocol engine.

    Any object with these members is a valid channel.  The engine never
    assumes the channel buffers more than it asked for.
    """

    @property
    def is_open(self) -> bool: ...

    def open(self) -> None: ...

    def close(self) -> None: ...

    def write(self, data: bytes) -> None: ...

    def read_one(self) -> int | None:
        """Return the next byte, or ``None`` if nothing has arrived yet."""
        ...

    def bytes_available(self) -> int: ...


class SerialChannel:
    """Byte channel backed by a pyserial port.

    The port is opened 8N1 with no read timeout, so :meth:`read_one` blocks
    until a single byte is available instead of spinning on an empty buffer.

    Args:
        port: Serial port path (e.g. ``/dev/ttyUSB0``).
        baudrate: Baud rate (default 9600).
    """

    def __init__(self, port: str = DEFAULT_PORT, baudrate: int = DEFAULT_BAUD) -> None:
        self.port = port
        self.baudrate = baudrate
        self._ser: serial.Serial | None = None

    # -- Lifecycle ----------------------------------------------------------

    def open(self) -> None:
        """Open the serial port.

        Raises:
            PortUnavailable: If the port cannot be opened.
        """
        logger.info("Opening serial port %s at %d baud", self.port, self.baudrate)
        try:
            self._ser = serial.Serial(
                port=self.port,
                baudrate=self.baudrate,
                bytesize=serial.EIGHTBITS,
                parity=serial.PARITY_NONE,
                stopbits=serial.STOPBITS_ONE,
                timeout=None,
            )
        except (serial.SerialException, ValueError) as exc:
            raise PortUnavailable(f"Cannot open {self.port}: {exc}") from exc
        logger.info("Port %s open", self.port)

    def close(self) -> None:
        """Close the serial port (safe to call multiple times)."""
        if self._ser and self._ser.is_open:
            self._ser.close()
            logger.info("Serial port %s closed", self.port)

    @property
    def is_open(self) -> bool:
        """Return ``True`` if the serial port is currently open."""
        return self._ser is not None and self._ser.is_open

    # -- I/O ----------------------------------------------------------------

    def write(self, data: bytes) -> None:
        ser = self._require_open()
        ser.write(data)
        ser.flush()

    def read_one(self) -> int | None:
        data = self._require_open().read(1)
        return data[0] if data else None

    def bytes_available(self) -> int:
        return self._require_open().in_waiting

    # -- Internal -----------------------------------------------------------

    def _require_open(self) -> serial.Serial:
        """Return the open serial port or raise."""
        if not self.is_open:
            raise NotConnected("Serial port not open - call open() first.")
        assert self._ser is not None  # for type-checker
        return self._ser
