"""Shared runtime constants for the Pantak HF75 X-ray emitter.

This is the canonical source of truth for device ratings, link parameters
and wire-level markers.  Other modules should import from here rather than
defining their own copies.
"""

# ---------------------------------------------------------------------------
# Device ratings
# ---------------------------------------------------------------------------

MAX_RATED_WATTS = 450.0
MAX_RATED_KV = 75.0

# Interlock names, in the order the device reports them
INTERLOCK_NAMES = (
    "Cooling",
    "Overselect",
    "Interlock",
    "Over kV",
    "Over mA",
    "Supply",
    "Filament",
    "kV diff",
    "mA diff",
)

# ---------------------------------------------------------------------------
# Wire format
# ---------------------------------------------------------------------------

COMMAND_TERMINATOR = b"\r"
RESPONSE_TERMINATOR = 0x3E  # '>'
RESET_BYTE = b"\x1b"  # ESC
FAULT_MARKER = "COMMUNICATION ERROR"
PAYLOAD_DIGITS = 4
PAYLOAD_SCALE = 10  # one decimal digit of precision on the wire

# Sentinel returned by voltage/current queries for a garbled response
GARBLED_READING = -1.0

# ---------------------------------------------------------------------------
# Controller / runtime defaults
# ---------------------------------------------------------------------------

DEFAULT_PORT = "/dev/ttyUSB0"
DEFAULT_BAUD = 9600
TRACE_LOGGER_NAME = "pantak_hf75.trace"
