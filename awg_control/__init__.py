__version__ = "1.0.0"

from .src.config import EngineConfig, DEFAULT_CONFIG
from .src.errors import (
    AwgControlError,
    ValidationError,
    InvalidUnitError,
    InvalidHarmonicOrderError,
    NonPositiveRateError,
    UnparsableInputError,
    InvalidChannelError,
    TransportError,
)
from .src.device_manager import DeviceTransport, VisaTransport
from .src.rigol_dg2072 import RigolDG2072
from .src.unit_scaler import Kind, ScaledQuantity, select_display_unit, format_min_decimals
from .src.pulse_timing import PulseController, PulseTimingState, clamp_width, derive_complementary_rate
from .src.dual_tone import DualToneController, DualToneFrequencyPair
from .src.harmonics import AmplitudeMode, HarmonicSet, HarmonicState, HarmonicStateManager
from .src.debounce import Debouncer
from .src.session import ChannelSession
from .src.terminal import ColorPrinter

__all__ = [
    "EngineConfig",
    "DEFAULT_CONFIG",
    "AwgControlError",
    "ValidationError",
    "InvalidUnitError",
    "InvalidHarmonicOrderError",
    "NonPositiveRateError",
    "UnparsableInputError",
    "InvalidChannelError",
    "TransportError",
    "DeviceTransport",
    "VisaTransport",
    "RigolDG2072",
    "Kind",
    "ScaledQuantity",
    "select_display_unit",
    "format_min_decimals",
    "PulseController",
    "PulseTimingState",
    "clamp_width",
    "derive_complementary_rate",
    "DualToneController",
    "DualToneFrequencyPair",
    "AmplitudeMode",
    "HarmonicSet",
    "HarmonicState",
    "HarmonicStateManager",
    "Debouncer",
    "ChannelSession",
    "ColorPrinter",
]
