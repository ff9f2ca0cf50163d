"""
Exception hierarchy for the Pantak HF75 driver.

All exceptions inherit from :class:`PantakError` so callers can catch
broadly (``except PantakError``) or narrowly (``except CommunicationFault``).
"""


class PantakError(Exception):
    """Base exception for all Pantak HF75 errors."""


class InvalidParameter(PantakError):
    """Raised when a voltage/current fails pre-send validation.

    Nothing has been transmitted when this is raised.
    """


class ConfigError(InvalidParameter):
    """Raised when a session configuration file is malformed."""


class PortUnavailable(PantakError):
    """Raised when the serial port cannot be opened."""


class NotConnected(PantakError):
    """Raised when an operation needs an open connection and there is none."""


class CommunicationFault(PantakError):
    """Raised when the emitter reports that it could not parse a command.

    The connection stays open; retrying or disconnecting is up to the caller.
    """
