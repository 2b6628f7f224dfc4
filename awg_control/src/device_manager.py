import pyvisa

from .config import VISA_TIMEOUT_MS
from .errors import TransportError
from .terminal import ColorPrinter


class DeviceTransport:
    """
    Base class for a FIFO, blocking request/response link to an instrument.

    The engine only calls send() and query(); connection lifecycle hooks are
    no-ops unless a subclass needs them. Failures raise TransportError.
    """

    def connect(self):
        """Opens the link (no-op by default)."""

    def disconnect(self):
        """Closes the link (no-op by default)."""

    def send(self, command: str):
        raise NotImplementedError

    def query(self, command: str) -> str:
        raise NotImplementedError


class VisaTransport(DeviceTransport):
    """
    DeviceTransport over a PyVISA resource (USB-TMC, LAN or GPIB).
    """

    def __init__(self, resource_name, timeout_ms=VISA_TIMEOUT_MS, resource_manager=None):
        self.rm = resource_manager or pyvisa.ResourceManager()
        self.resource_name = resource_name
        self.timeout_ms = timeout_ms
        self.instrument = None

    def connect(self):
        """Connects to the instrument."""
        try:
            self.instrument = self.rm.open_resource(self.resource_name)
            self.instrument.timeout = self.timeout_ms
            self.instrument.read_termination = "\n"
            self.instrument.write_termination = "\n"
            ColorPrinter.success(f"Connected to {self.resource_name}")
        except pyvisa.VisaIOError as e:
            ColorPrinter.error(f"Failed to connect to {self.resource_name}: {e}")
            raise TransportError(f"Failed to connect to {self.resource_name}: {e}") from e

    def disconnect(self):
        """Disconnects from the instrument."""
        if self.instrument:
            self.instrument.close()
            self.instrument = None
            ColorPrinter.info(f"Disconnected from {self.resource_name}")

    @property
    def is_connected(self):
        return self.instrument is not None

    def send(self, command):
        """Sends a command to the instrument without waiting for a response."""
        if not self.instrument:
            raise TransportError("Instrument not connected.")
        try:
            self.instrument.write(command)
        except pyvisa.VisaIOError as e:
            raise TransportError(f"Error sending '{command}': {e}") from e
        ColorPrinter.debug(f"Sent command: {command}")

    def query(self, command):
        """Sends a command and returns the stripped response."""
        if not self.instrument:
            raise TransportError("Instrument not connected.")
        try:
            response = self.instrument.query(command)
        except pyvisa.VisaIOError as e:
            raise TransportError(f"Error querying '{command}': {e}") from e
        ColorPrinter.debug(f"Query: {command} -> {response.strip()}")
        return response.strip()
