"""
Pantak HF75 frame codec: command table, frame encoding, response decoding.

Outbound frames are ``<opcode><optional 4-digit value>\\r`` where the value
is the physical quantity × 10, zero-padded.  Inbound frames are arbitrary
bytes ending in ``>``; the payload is everything before the terminator with
non-alphanumeric noise removed.

This module is pure and never touches a channel.
"""

from __future__ import annotations

import math
import re
from enum import Enum
from types import MappingProxyType
from typing import Callable

from .constants import (
    COMMAND_TERMINATOR,
    FAULT_MARKER,
    PAYLOAD_DIGITS,
    PAYLOAD_SCALE,
    RESPONSE_TERMINATOR,
)
from .exceptions import InvalidParameter

_NOISE = re.compile(r"[^a-zA-Z0-9]+")
_MAX_PAYLOAD = 10**PAYLOAD_DIGITS - 1


class Command(Enum):
    """Commands understood by the Pantak HF75."""

    GET_VOLTS = "get_volts"
    GET_AMPS = "get_amps"
    GET_ON_OFF = "get_on_off"
    GET_WARMED_UP = "get_warmed_up"
    GET_INTERLOCKS = "get_interlocks"
    SET_VOLTS = "set_volts"
    SET_AMPS = "set_amps"
    START_EMITTING = "start_emitting"
    STOP_EMITTING = "stop_emitting"
    OVERRIDE_WARMUP = "override_warmup"
    ASCII_MODE = "ascii_mode"

    @property
    def opcode(self) -> str:
        return OPCODES[self]


OPCODES = MappingProxyType(
    {
        Command.GET_VOLTS: "v",
        Command.GET_AMPS: "m",
        Command.GET_ON_OFF: "s",
        Command.GET_WARMED_UP: "w",
        Command.GET_INTERLOCKS: "i",
        Command.SET_VOLTS: "V",
        Command.SET_AMPS: "M",
        Command.START_EMITTING: "S",
        Command.STOP_EMITTING: "E",
        Command.OVERRIDE_WARMUP: "911",
        Command.ASCII_MODE: "A",
    }
)


# ---------------------------------------------------------------------------
# Encoding
# ---------------------------------------------------------------------------


def scale_value(value: float, rounding: Callable[[float], int] = round) -> int:
    """Return *value* × 10 as the integer carried in a 4-digit payload.

    *rounding* defaults to :func:`round` (half-to-even); pass
    :func:`math.floor` to never round up.

    Raises:
        InvalidParameter: If *value* is not finite or the scaled value does
            not fit in 4 digits.
    """
    if not math.isfinite(value):
        raise InvalidParameter(f"Value {value} is not a finite number")
    scaled = rounding(value * PAYLOAD_SCALE)
    if not (0 <= scaled <= _MAX_PAYLOAD):
        raise InvalidParameter(
            f"Value {value} does not fit the {PAYLOAD_DIGITS}-digit payload "
            f"(0-{_MAX_PAYLOAD / PAYLOAD_SCALE})"
        )
    return scaled


def format_value(value: float) -> str:
    """Format *value* as the device's fixed 4-digit, ×10 payload.

    ``10`` becomes ``"0100"`` and ``4.5`` becomes ``"0045"``.  Rounding is
    half-to-even.

    Raises:
        InvalidParameter: If *value* is not finite or the scaled value does
            not fit in 4 digits.
    """
    return f"{scale_value(value):0{PAYLOAD_DIGITS}d}"


def encode(command: Command, value: float | None = None) -> bytes:
    """Return the exact bytes to transmit for *command*.

    Args:
        command: The command to send.
        value: Optional numeric argument (kV or mA).

    Returns:
        Opcode, optional formatted payload and the ``\\r`` terminator.
    """
    text = command.opcode
    if value is not None:
        text += format_value(value)
    return text.encode("ascii") + COMMAND_TERMINATOR


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------


def strip_noise(raw: bytes | bytearray | str) -> str:
    """Remove every character outside ``[A-Za-z0-9]`` from *raw*."""
    if not isinstance(raw, str):
        raw = bytes(raw).decode("latin-1")
    return _NOISE.sub("", raw)


def decode_increment(accumulator: bytearray, byte: int) -> tuple[bool, str | None]:
    """Feed one received byte into an in-progress response.

    Non-terminator bytes are appended to *accumulator*.  When *byte* is the
    response terminator the frame is complete: the terminator is not
    appended and the cleaned payload is returned.

    Returns:
        ``(True, payload)`` on the terminator, ``(False, None)`` otherwise.
    """
    if byte == RESPONSE_TERMINATOR:
        return True, strip_noise(accumulator)
    accumulator.append(byte)
    return False, None


def contains_fault(trailing: bytes | str) -> bool:
    """Return ``True`` if bytes drained after a frame carry the fault marker."""
    if not isinstance(trailing, str):
        trailing = trailing.decode("ascii", errors="replace")
    return FAULT_MARKER in trailing
