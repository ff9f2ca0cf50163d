"""Pantak HF75 X-ray Emitter Python Interface"""

from .codec import Command
from .constants import INTERLOCK_NAMES, MAX_RATED_KV, MAX_RATED_WATTS
from .controller import ConnectionState, PantakHF75, get_driver
from .exceptions import (
    CommunicationFault,
    ConfigError,
    InvalidParameter,
    NotConnected,
    PantakError,
    PortUnavailable,
)
from .protocol import InterlockStatus, LoggingTraceSink, NullTraceSink, TraceSink
from .safety import clamp_current, fit_settings

__all__ = [
    "Command",
    "CommunicationFault",
    "ConfigError",
    "ConnectionState",
    "INTERLOCK_NAMES",
    "InterlockStatus",
    "InvalidParameter",
    "LoggingTraceSink",
    "MAX_RATED_KV",
    "MAX_RATED_WATTS",
    "NotConnected",
    "NullTraceSink",
    "PantakError",
    "PantakHF75",
    "PortUnavailable",
    "TraceSink",
    "clamp_current",
    "fit_settings",
    "get_driver",
]
__version__ = "0.1.0"
