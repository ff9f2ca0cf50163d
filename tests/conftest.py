"""Shared pytest fixtures for Pantak HF75 tests."""

from __future__ import annotations

from typing import Callable
from unittest.mock import patch

import pytest

from pantak_hf75 import PantakHF75
from pantak_hf75.protocol import PantakProtocol
from pantak_hf75.transport import SerialChannel


class FakeSerial:
    """Lightweight stand-in for ``serial.Serial``.

    Implements the subset of the pyserial API used by
    :class:`~pantak_hf75.transport.SerialChannel`: ``write``, ``read``,
    ``in_waiting``, ``flush``, ``close`` and ``is_open``.

    By default every command gets a bare ``>`` (empty payload) response.
    Call :meth:`set_response` to stage a custom response for the **next**
    command, or :meth:`queue_responses` for the next several; once the
    staged responses are used up the default comes back, so multi-frame
    operations (like ``start_emitting``) work without extra setup.

    Bytes left over from a previous command are discarded on each
    :meth:`write`.  Reading past the staged bytes raises instead of
    blocking forever like the real port would.
    """

    _DEFAULT = b">"

    def __init__(self) -> None:
        self.is_open: bool = True
        self.written: list[bytes] = []
        self._response: bytes = b""
        self._staged: list[bytes] = []

    # -- Helpers for tests --------------------------------------------------

    def set_response(self, data: str | bytes) -> None:
        """Stage a response for the **next** command (write cycle)."""
        self._staged = [_as_bytes(data)]

    def queue_responses(self, *responses: str | bytes) -> None:
        """Stage one response per upcoming command, in order."""
        self._staged = [_as_bytes(r) for r in responses]

    # -- pyserial interface -------------------------------------------------

    def write(self, data: bytes) -> int:
        self.written.append(bytes(data))
        self._response = self._staged.pop(0) if self._staged else self._DEFAULT
        return len(data)

    @property
    def in_waiting(self) -> int:
        return len(self._response)

    def read(self, size: int = 1) -> bytes:
        if not self._response:
            raise AssertionError("read() with nothing staged; a real port would block")
        data = self._response[:size]
        self._response = self._response[size:]
        return data

    def flush(self) -> None:
        pass

    def close(self) -> None:
        self.is_open = False


def _as_bytes(data: str | bytes) -> bytes:
    return data.encode("latin-1") if isinstance(data, str) else data


class RecordingSink:
    """Trace sink that keeps every line for inspection."""

    def __init__(self) -> None:
        self.lines: list[str] = []

    def log(self, line: str) -> None:
        self.lines.append(line)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def fake_serial() -> FakeSerial:
    """Return a fresh ``FakeSerial`` instance."""
    return FakeSerial()


@pytest.fixture()
def make_fake_serial() -> Callable[[], FakeSerial]:
    """Return a factory for extra ``FakeSerial`` ports (e.g. a second port)."""
    return FakeSerial


@pytest.fixture()
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture()
def channel(fake_serial: FakeSerial) -> SerialChannel:
    """Return an open ``SerialChannel`` wired to a fake serial port."""
    with patch("pantak_hf75.transport.serial.Serial", return_value=fake_serial):
        ch = SerialChannel("/dev/fake")
        ch.open()
        return ch


@pytest.fixture()
def protocol(channel: SerialChannel, sink: RecordingSink) -> PantakProtocol:
    """Return a ``PantakProtocol`` wired to a fake channel."""
    return PantakProtocol(channel, trace=sink)


@pytest.fixture()
def controller(fake_serial: FakeSerial, sink: RecordingSink) -> PantakHF75:
    """Return a fully connected ``PantakHF75`` wired to a fake serial port."""
    with patch("pantak_hf75.transport.serial.Serial", return_value=fake_serial):
        hf = PantakHF75(trace=sink)
        hf.connect("/dev/fake")
        # Reset so tests don't see the handshake
        fake_serial.written.clear()
        sink.lines.clear()
        return hf
