"""
Pantak HF75 serial protocol: exchanges, typed queries, emission commands.

This module sits between the channel (raw byte I/O) and the controller
(user-facing API, connection lifecycle).  It knows how to:

* run one command/response exchange at a time,
* block on the channel until a ``>``-terminated response arrives,
* detect the device's out-of-band ``COMMUNICATION ERROR`` marker,
* turn payloads into typed values (with sentinels for garbled responses),
* clamp and send emission settings,
* trace every frame to a pluggable sink.

It does **not** open or close the channel; that belongs to
:class:`~pantak_hf75.controller.PantakHF75`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterator, Protocol

from .codec import Command, contains_fault, decode_increment, encode
from .constants import (
    GARBLED_READING,
    INTERLOCK_NAMES,
    MAX_RATED_WATTS,
    RESET_BYTE,
    TRACE_LOGGER_NAME,
)
from .exceptions import CommunicationFault
from .safety import fit_settings, validate_settings
from .transport import ByteChannel

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Trace sinks
# ---------------------------------------------------------------------------


class TraceSink(Protocol):
    """Receives human-readable trace lines."""

    def log(self, line: str) -> None: ...


class LoggingTraceSink:
    """Trace sink that forwards every line to a :mod:`logging` logger."""

    def __init__(self, name: str = TRACE_LOGGER_NAME, level: int = logging.INFO) -> None:
        self._logger = logging.getLogger(name)
        self._level = level

    def log(self, line: str) -> None:
        self._logger.log(self._level, "%s", line)


class NullTraceSink:
    """Trace sink that discards everything."""

    def log(self, line: str) -> None:
        pass


# ---------------------------------------------------------------------------
# Data
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class InterlockStatus:
    """Fault flags for the emitter's nine interlocks, in device order.

    ``faults[i]`` is ``True`` when the interlock named ``INTERLOCK_NAMES[i]``
    is tripped.
    """

    faults: tuple[bool, ...]

    def __post_init__(self) -> None:
        if len(self.faults) != len(INTERLOCK_NAMES):
            raise ValueError(
                f"Expected {len(INTERLOCK_NAMES)} interlock flags, got {len(self.faults)}"
            )

    @classmethod
    def all_clear(cls) -> InterlockStatus:
        return cls((False,) * len(INTERLOCK_NAMES))

    @classmethod
    def from_payload(cls, payload: str) -> InterlockStatus:
        """Parse a ``GET_INTERLOCKS`` payload.

        Anything other than exactly nine characters decodes to all-clear.
        A position counts as faulted only when its character is NUL.
        """
        if len(payload) != len(INTERLOCK_NAMES):
            return cls.all_clear()
        return cls(tuple(ch == "\x00" for ch in payload))

    @property
    def active(self) -> list[str]:
        """Names of the interlocks currently in fault."""
        return [name for name, fault in zip(INTERLOCK_NAMES, self.faults) if fault]

    @property
    def any_fault(self) -> bool:
        return any(self.faults)

    @property
    def text(self) -> str:
        """Comma-separated names of faulted interlocks (empty if none)."""
        return ", ".join(self.active)

    def __len__(self) -> int:
        return len(self.faults)

    def __iter__(self) -> Iterator[bool]:
        return iter(self.faults)

    def __getitem__(self, index: int) -> bool:
        return self.faults[index]


# ---------------------------------------------------------------------------
# Parse helpers
# ---------------------------------------------------------------------------


def _parse_reading(payload: str) -> float:
    """Turn a 4-digit ×10 payload into a float, or the garbled sentinel."""
    if len(payload) == 4 and payload.isdigit():
        return int(payload) / 10.0
    return GARBLED_READING


def _parse_flag(payload: str, truthy: str) -> bool:
    """Single-character flag; any other length reads as False."""
    return payload == truthy


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------


class PantakProtocol:
    """Runs command exchanges over an open channel and parses the results.

    Not thread-safe by itself; :class:`~pantak_hf75.controller.PantakHF75`
    serialises access.

    Args:
        channel: An open :class:`~pantak_hf75.transport.ByteChannel`.
        trace: Sink for trace lines (defaults to :class:`LoggingTraceSink`).
        trace_enabled: Whether trace lines are emitted at all.
        max_watts: Rated power used for current clamping.
    """

    def __init__(
        self,
        channel: ByteChannel,
        trace: TraceSink | None = None,
        trace_enabled: bool = True,
        max_watts: float = MAX_RATED_WATTS,
    ) -> None:
        self._ch = channel
        self._trace = trace if trace is not None else LoggingTraceSink()
        self.trace_enabled = trace_enabled
        self.max_watts = max_watts

    # -- Tracing ------------------------------------------------------------

    def enable_trace(self) -> None:
        self.trace_enabled = True

    def disable_trace(self) -> None:
        self.trace_enabled = False

    def _log(self, line: str) -> None:
        if self.trace_enabled:
            self._trace.log(line)

    # -- Exchange -----------------------------------------------------------

    def _cmd(self, command: Command, value: float | None = None) -> str:
        """Encode and send *command*, then return the decoded payload."""
        return self._exchange(encode(command, value))

    def _exchange(self, frame: bytes) -> str:
        """Write *frame* and block until exactly one response is decoded.

        Raises:
            CommunicationFault: If bytes trailing the response carry the
                device's fault marker.
        """
        self._log(f"SEND | {frame.decode('latin-1')!r}")
        logger.debug("TX: %r", frame)
        self._ch.write(frame)
        payload = self._read_response()
        logger.debug("RX: %r", payload)
        return payload

    def _read_response(self) -> str:
        """Read byte by byte until the response terminator.

        There is no timeout here: the emitter answers every command with
        exactly one terminated response.
        """
        buf = bytearray()
        while True:
            byte = self._ch.read_one()
            if byte is None:
                continue
            done, payload = decode_increment(buf, byte)
            if done:
                break

        self._log(f"RECV | {bytes(buf).decode('latin-1')!r}")
        self._drain_trailing()
        assert payload is not None  # for type-checker
        return payload

    def _drain_trailing(self) -> None:
        """Consume anything left after the terminator and check it for faults."""
        remaining = self._ch.bytes_available()
        if not remaining:
            return

        self._log(f"{remaining} bytes remaining in stream")
        trailing = bytearray()
        for _ in range(remaining):
            byte = self._ch.read_one()
            if byte is None:
                break
            trailing.append(byte)

        text = trailing.decode("ascii", errors="replace")
        self._log(text)
        if contains_fault(text):
            raise CommunicationFault(f"Pantak returned generic error: {text.strip()!r}")

    # -- Session ------------------------------------------------------------

    def handshake(self) -> None:
        """Reset the emitter and switch it to ASCII command mode."""
        self._exchange(RESET_BYTE)
        self._cmd(Command.ASCII_MODE)

    # -- Queries ------------------------------------------------------------

    def get_kv(self) -> float:
        """Return the measured output voltage in kV, or ``-1.0`` if garbled.

        This is the actual output, not the setpoint; an idle tube reads a
        small floating value.
        """
        return _parse_reading(self._cmd(Command.GET_VOLTS))

    def get_ma(self) -> float:
        """Return the measured tube current in mA, or ``-1.0`` if garbled."""
        return _parse_reading(self._cmd(Command.GET_AMPS))

    def is_emitting(self) -> bool:
        # The device reports 0 while emitting and 1 while idle
        return _parse_flag(self._cmd(Command.GET_ON_OFF), "0")

    def is_warmed_up(self) -> bool:
        return _parse_flag(self._cmd(Command.GET_WARMED_UP), "1")

    def get_interlocks(self) -> InterlockStatus:
        """Query the nine interlock fault flags."""
        return InterlockStatus.from_payload(self._cmd(Command.GET_INTERLOCKS))

    def get_interlock_text(self) -> str:
        """Return the names of tripped interlocks, comma-separated."""
        return self.get_interlocks().text

    # -- Commands -----------------------------------------------------------

    def override_warmup(self) -> None:
        """Tell the firmware to skip its forced warm-up period."""
        self._cmd(Command.OVERRIDE_WARMUP)

    def set_voltage_and_current(self, kv: float, ma: float) -> float:
        """Send voltage then current setpoints, clamping current to rated power.

        The two frames are separate exchanges; a fault on the second leaves
        the voltage set.  The sent voltage times the sent current never
        exceeds :attr:`max_watts`.

        Returns:
            The current actually sent, in mA, at the payload's 0.1 mA
            resolution.

        Raises:
            InvalidParameter: Before anything is sent, if *kv* or *ma* is
                out of range.
        """
        validate_settings(kv, ma)
        kv, ma = fit_settings(kv, ma, self.max_watts, trace=self._log)
        # Both payloads are checked before the first write
        volts_frame = encode(Command.SET_VOLTS, kv)
        amps_frame = encode(Command.SET_AMPS, ma)

        self._exchange(volts_frame)
        self._exchange(amps_frame)
        return ma

    def start_emitting(self, kv: float, ma: float) -> float:
        """Apply *kv*/*ma* (clamped) and switch X-ray emission on.

        Returns:
            The current actually sent, in mA.
        """
        ma = self.set_voltage_and_current(kv, ma)
        self._cmd(Command.START_EMITTING)
        return ma

    def stop_emitting(self) -> None:
        """Switch X-ray emission off."""
        self._cmd(Command.STOP_EMITTING)
