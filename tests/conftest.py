"""Pytest configuration and shared fixtures for awg_control.

The project root is placed on ``sys.path`` so ``pytest`` works without an
editable install. No fixture touches hardware or sleeps for real.
"""

import sys
from pathlib import Path

import pytest


def _ensure_project_root_on_path() -> None:
    """Insert the repository root at the front of ``sys.path`` if needed."""
    root = Path(__file__).resolve().parents[1]
    root_str = str(root)
    if root_str not in sys.path:
        sys.path.insert(0, root_str)


_ensure_project_root_on_path()

from awg_control.mock_instruments import MockDG2072Transport  # noqa: E402
from awg_control.src.config import EngineConfig  # noqa: E402
from awg_control.src.device_manager import DeviceTransport  # noqa: E402
from awg_control.src.errors import TransportError  # noqa: E402
from awg_control.src.rigol_dg2072 import RigolDG2072  # noqa: E402
from awg_control.src.terminal import ColorPrinter  # noqa: E402


class RecordingTransport(DeviceTransport):
    """Records sends; answers queries from a canned dict keyed by command."""

    def __init__(self, responses=None):
        self.sent = []
        self.queries = []
        self.responses = dict(responses or {})
        self.fail_on = []

    def _check(self, command):
        for pattern in self.fail_on:
            if pattern in command:
                raise TransportError(f"Forced failure on '{command}'")

    def send(self, command):
        self._check(command)
        self.sent.append(command)

    def query(self, command):
        self._check(command)
        self.queries.append(command)
        if command not in self.responses:
            raise TransportError(f"No canned response for '{command}'")
        return self.responses[command]


class ManualTimer:
    """threading.Timer stand-in that only fires when told to."""

    def __init__(self, delay, callback):
        self.delay = delay
        self.callback = callback
        self.started = False
        self.cancelled = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        if not self.cancelled:
            self.callback()


class ManualTimerFactory:
    def __init__(self):
        self.timers = []

    def __call__(self, delay, callback):
        timer = ManualTimer(delay, callback)
        self.timers.append(timer)
        return timer

    def live(self):
        return [t for t in self.timers if t.started and not t.cancelled]

    def fire_all(self):
        for timer in self.live():
            timer.fire()


class RecordingSleep:
    def __init__(self):
        self.delays = []

    def __call__(self, seconds):
        self.delays.append(seconds)


@pytest.fixture(autouse=True)
def quiet_printer():
    """Plain, info-level output for every test."""
    enabled, threshold = ColorPrinter.enabled, ColorPrinter.threshold
    ColorPrinter.enabled = False
    ColorPrinter.set_level("info")
    yield
    ColorPrinter.enabled, ColorPrinter.threshold = enabled, threshold


@pytest.fixture
def config():
    return EngineConfig()


@pytest.fixture
def recording_transport():
    return RecordingTransport()


@pytest.fixture
def mock_transport():
    return MockDG2072Transport()


@pytest.fixture
def device(mock_transport):
    return RigolDG2072(mock_transport)


@pytest.fixture
def timer_factory():
    return ManualTimerFactory()


@pytest.fixture
def no_sleep():
    return RecordingSleep()
