"""
Mock DG2072 for running the REPL and the engine without physical hardware.

Usage:
    awg-control --mock
"""

import re

from .src.device_manager import DeviceTransport
from .src.errors import TransportError

_HEADER = re.compile(r"^(SOURCE|OUTPUT)(\d)?:?(.*)$")

_DEFAULTS = {
    "FUNCTION": "SIN",
    "FREQUENCY": "1000",
    "PERIOD": "0.001",
    "VOLTAGE": "5",
    "VOLTAGE:OFFSET": "0",
    "PHASE": "0",
    "PULSE:WIDTH": "0.0005",
    "PULSE:TRANSITION:LEADING": "2e-08",
    "PULSE:TRANSITION:TRAILING": "2e-08",
    "HARMONIC:STATE": "OFF",
    "HARMONIC:TYPE": "EVEN",
    "HARMONIC:ORDER": "2",
    "HARMONIC:USER": "X0000000",
    "FUNCTION:DUALTONE:FREQ1": "1000",
    "FUNCTION:DUALTONE:FREQ2": "2000",
    "FUNCTION:DUALTONE:CENTERFREQ": "1500",
    "FUNCTION:DUALTONE:OFFSETFREQ": "500",
    "OUTPUT": "OFF",
}

_APPLY_FUNCTIONS = {"SINUSOID": "SIN", "HARMONIC": "HARM", "PULSE": "PULS"}


class MockDG2072Transport(DeviceTransport):
    """
    In-memory DG2072 speaking the subset of SCPI produced by RigolDG2072.

    Keeps per-channel state, records every command in `log` (sends only in
    `sent`), and raises TransportError for any command containing one of the
    substrings in `fail_on`.
    """

    def __init__(self):
        self.channels = {ch: dict(_DEFAULTS) for ch in (1, 2)}
        for ch in (1, 2):
            for order in range(2, 9):
                self.channels[ch][f"HARMONIC:AMPLITUDE {order}"] = "0"
                self.channels[ch][f"HARMONIC:PHASE {order}"] = "0"
        self.log = []
        self.sent = []
        self.fail_on = []

    def _check_failure(self, command):
        for pattern in self.fail_on:
            if pattern in command:
                raise TransportError(f"Mock failure on '{command}'")

    @staticmethod
    def _split(command):
        header, _, args = command.strip().partition(" ")
        match = _HEADER.match(header.upper().rstrip("?"))
        if not match:
            return None, header.upper(), args.strip()
        root, channel, path = match.groups()
        channel = int(channel) if channel else 1
        if root == "OUTPUT":
            path = "OUTPUT" + (":" + path if path else "")
        return channel, path, args.strip()

    def send(self, command):
        self.log.append(command)
        self._check_failure(command)
        self.sent.append(command)
        channel, path, args = self._split(command)
        if channel is None:
            return
        state = self.channels[channel]

        if path.startswith("APPLY:"):
            func = path.split(":", 1)[1]
            state["FUNCTION"] = _APPLY_FUNCTIONS.get(func, func)
            values = [v for v in args.split(",") if v]
            for key, value in zip(("FREQUENCY", "VOLTAGE", "VOLTAGE:OFFSET", "PHASE"), values):
                state[key] = value
            if values:
                state["PERIOD"] = repr(1.0 / float(values[0]))
            return

        if path in ("HARMONIC:AMPLITUDE", "HARMONIC:PHASE"):
            order, _, value = args.partition(",")
            state[f"{path} {order.strip()}"] = value.strip()
            return

        state[path] = args
        if path == "FREQUENCY":
            state["PERIOD"] = repr(1.0 / float(args))
        elif path == "PERIOD":
            state["FREQUENCY"] = repr(1.0 / float(args))

    def query(self, command):
        self.log.append(command)
        self._check_failure(command)
        if command.strip().upper() == "*IDN?":
            return "Rigol Technologies,DG2072,MOCK000001,00.01.14"
        if command.strip().upper() == "SYSTEM:ERROR?":
            return '0,"No error"'
        channel, path, args = self._split(command)
        key = f"{path} {args}" if args else path
        state = self.channels[channel or 1]
        if key not in state:
            raise TransportError(f"Mock has no value for '{command}'")
        return state[key]

    def value(self, channel, key):
        """Current raw value of a stored setting, e.g. value(1, 'HARMONIC:USER')."""
        return self.channels[channel][key]


def get_mock_devices(verbose=True):
    from .src.terminal import ColorPrinter

    if verbose:
        ColorPrinter.warning("Mock mode: no real instruments connected")
        ColorPrinter.info("Injecting: awg (MockDG2072Transport)")
    return {"awg": MockDG2072Transport()}
