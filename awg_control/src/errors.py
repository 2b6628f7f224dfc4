"""
Exception taxonomy for the waveform generator control engine.

Validation errors are recovered by the caller (the last known-good value is
kept). Transport errors are logged and swallowed at the boundary of apply and
refresh operations. Pulse width constraint violations are never raised; they
are clamped (see pulse_timing.WidthClamp).
"""


class AwgControlError(Exception):
    """Base class for every error raised by awg_control."""


class ValidationError(AwgControlError, ValueError):
    """Input rejected before any state was mutated."""


class InvalidUnitError(ValidationError):
    def __init__(self, unit, kind, valid_units):
        self.unit = unit
        self.kind = kind
        super().__init__(
            f"Invalid unit '{unit}' for {kind}. Must be one of: {list(valid_units)}"
        )


class InvalidHarmonicOrderError(ValidationError):
    def __init__(self, order):
        self.order = order
        super().__init__(f"Harmonic order must be between 2 and 8, got {order}")


class NonPositiveRateError(ValidationError):
    def __init__(self, value):
        self.value = value
        super().__init__(f"Rate value must be positive to derive its reciprocal, got {value}")


class UnparsableInputError(ValidationError):
    def __init__(self, text):
        self.text = text
        super().__init__(f"Cannot parse '{text}' as a number")


class InvalidChannelError(ValidationError):
    def __init__(self, channel, valid_channels):
        self.channel = channel
        super().__init__(
            f"Invalid channel {channel}. Must be one of: {list(valid_channels)}"
        )


class TransportError(AwgControlError, ConnectionError):
    """Communication with the instrument failed."""
