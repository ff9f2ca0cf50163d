"""
Emission safety policy.

Keeps requested tube settings inside the emitter's rated power envelope.
Everything here runs before a single byte is written.
"""

from __future__ import annotations

import logging
import math
from typing import Callable

from .codec import scale_value
from .constants import MAX_RATED_KV, MAX_RATED_WATTS, PAYLOAD_SCALE
from .exceptions import InvalidParameter

logger = logging.getLogger(__name__)


def validate_settings(kv: float, ma: float) -> None:
    """Reject settings the emitter must never be sent.

    Raises:
        InvalidParameter: If *kv* or *ma* is negative or NaN, or *kv* exceeds the
            rated maximum voltage.
    """
    if not kv >= 0:
        raise InvalidParameter(f"kV must be 0 or more, got {kv}")
    if not ma >= 0:
        raise InvalidParameter(f"mA must be 0 or more, got {ma}")
    if kv > MAX_RATED_KV:
        raise InvalidParameter(f"kV must be at most {MAX_RATED_KV}, got {kv}")


def clamp_current(
    kv: float,
    ma: float,
    max_watts: float = MAX_RATED_WATTS,
    trace: Callable[[str], None] | None = None,
) -> float:
    """Return the largest current not above *ma* that stays within *max_watts*.

    At 0 kV the tube draws no power at any current, but the rated-current
    quotient is undefined there, so the current is forced to 0.

    Args:
        kv: Target voltage in kilovolts (already validated).
        ma: Requested current in milliamps (already validated).
        max_watts: Rated maximum power.
        trace: Optional callable receiving a line whenever *ma* is reduced.
    """
    if kv == 0:
        max_ma = 0.0
    else:
        max_ma = max_watts / kv

    if max_ma < ma:
        line = f"Requested milliamps {ma} exceeds max milliamps {max_ma}"
        logger.debug("Clamping current: %s", line)
        if trace is not None:
            trace(line)
        return max_ma
    return ma


def fit_settings(
    kv: float,
    ma: float,
    max_watts: float = MAX_RATED_WATTS,
    trace: Callable[[str], None] | None = None,
) -> tuple[float, float]:
    """Return ``(kv, ma)`` exactly as they will be encoded on the wire.

    The voltage is rounded to the payload resolution first and the current
    is clamped against that rounded voltage.  If rounding the current to
    the nearest step would break *max_watts*, it is rounded down instead.

    Raises:
        InvalidParameter: If either value does not fit the payload.
    """
    kv_steps = scale_value(kv)
    sent_kv = kv_steps / PAYLOAD_SCALE
    ma = clamp_current(sent_kv, ma, max_watts, trace=trace)

    # Compare in payload steps so float products cannot hide an overshoot
    step_budget = max_watts * PAYLOAD_SCALE * PAYLOAD_SCALE
    ma_steps = scale_value(ma)
    if kv_steps * ma_steps > step_budget:
        ma_steps = scale_value(ma, math.floor)
    return sent_kv, ma_steps / PAYLOAD_SCALE
