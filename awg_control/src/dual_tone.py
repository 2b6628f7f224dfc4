"""
Dual-tone frequency model.

A dual-tone waveform is addressed either directly (F1, F2) or as a center
frequency plus an offset. The offset is the half-distance between the tones:

    center = (f1 + f2) / 2
    offset = (f2 - f1) / 2
    f1 = center - offset
    f2 = center + offset
"""

import threading
from dataclasses import dataclass

from .config import DEFAULT_CONFIG
from .errors import TransportError, ValidationError
from .terminal import ColorPrinter
from .unit_scaler import Kind, format_min_decimals, parse_number, select_display_unit

DEFAULT_RATIO = 2.0


def to_center_offset(f1: float, f2: float):
    """Return (center, offset) for a pair of tone frequencies."""
    return (f1 + f2) / 2.0, (f2 - f1) / 2.0


def from_center_offset(center: float, offset: float):
    """Return (f1, f2); exact inverse of to_center_offset."""
    return center - offset, center + offset


@dataclass
class DualToneFrequencyPair:
    f1: float = 1000.0
    f2: float = 2000.0

    @property
    def center(self):
        return to_center_offset(self.f1, self.f2)[0]

    @property
    def offset(self):
        return to_center_offset(self.f1, self.f2)[1]


def switch_mode(current, to_direct_mode, center_text=None, offset_text=None, f1_text=None, f2_text=None):
    """
    Switch between direct and center/offset entry.

    The representation being left is the active one: its text fields are
    parsed and the other representation is recomputed from them. Unparsable
    text raises UnparsableInputError and nothing is recomputed. Fields left
    as None fall back to the stored pair.

    Returns:
        tuple: (pair, (center, offset)) where the pair is a new object
    """
    if to_direct_mode:
        # Leaving center/offset: center/offset is the source
        center = parse_number(center_text) if center_text is not None else current.center
        offset = parse_number(offset_text) if offset_text is not None else current.offset
        f1, f2 = from_center_offset(center, offset)
        return DualToneFrequencyPair(f1, f2), (center, offset)

    # Leaving direct: F1/F2 are the source
    f1 = parse_number(f1_text) if f1_text is not None else current.f1
    f2 = parse_number(f2_text) if f2_text is not None else current.f2
    pair = DualToneFrequencyPair(f1, f2)
    return pair, to_center_offset(f1, f2)


class DualToneController:
    """One channel's dual-tone settings and their path to the instrument."""

    def __init__(self, device, channel, config=DEFAULT_CONFIG, lock=None):
        self.device = device
        self.channel = channel
        self.config = config
        self.pair = DualToneFrequencyPair()
        self.direct_mode = True
        self.synchronized = False
        self.ratio = DEFAULT_RATIO
        self.amplitude = 1.0
        self.offset_voltage = 0.0
        self.phase = 0.0
        self._lock = lock if lock is not None else threading.RLock()

    def set_direct(self, f1, f2=None):
        """Set F1 (and F2 unless synchronized, where F2 = F1 * ratio)."""
        if self.synchronized or f2 is None:
            f2 = f1 * self.ratio
        self.pair = DualToneFrequencyPair(f1, f2)

    def set_center_offset(self, center, offset):
        f1, f2 = from_center_offset(center, offset)
        self.pair = DualToneFrequencyPair(f1, f2)

    def set_synchronized(self, synchronized, ratio=None):
        """Lock F2 to F1 * ratio; enabling it recomputes F2 immediately."""
        if ratio is not None:
            if ratio <= 0:
                raise ValidationError(f"Frequency ratio must be positive, got {ratio}")
            self.ratio = ratio
        self.synchronized = bool(synchronized)
        if self.synchronized:
            self.pair = DualToneFrequencyPair(self.pair.f1, self.pair.f1 * self.ratio)

    def switch_mode(self, to_direct_mode, **texts):
        """Change entry mode, recomputing only the inactive representation."""
        if bool(to_direct_mode) == self.direct_mode:
            return self.pair
        self.pair, _ = switch_mode(self.pair, to_direct_mode, **texts)
        self.direct_mode = bool(to_direct_mode)
        return self.pair

    def apply(self) -> bool:
        """Select the dual-tone function and send F1, F2, amplitude, offset, phase."""
        with self._lock:
            pair = self.pair
            try:
                self.device.apply_dual_tone(
                    self.channel,
                    pair.f1,
                    pair.f2,
                    self.amplitude,
                    self.offset_voltage,
                    self.phase,
                )
            except TransportError as exc:
                ColorPrinter.error(f"CH{self.channel}: error applying dual tone settings: {exc}")
                return False
            ColorPrinter.info(
                f"CH{self.channel}: dual tone F1={pair.f1}Hz, F2={pair.f2}Hz, "
                f"center={pair.center}Hz, offset={pair.offset}Hz"
            )
            return True

    def refresh(self) -> bool:
        with self._lock:
            try:
                f1 = self.device.get_dual_tone_f1(self.channel)
                f2 = self.device.get_dual_tone_f2(self.channel)
            except (TransportError, ValidationError) as exc:
                ColorPrinter.error(f"CH{self.channel}: error refreshing dual tone settings: {exc}")
                return False
            self.pair = DualToneFrequencyPair(f1, f2)
            return True

    def display(self):
        """Auto-ranged display text for both representations."""
        pair = self.pair
        shown = {}
        for name, value, decimals in (
            ("f1", pair.f1, 2),
            ("f2", pair.f2, 2),
            ("center", pair.center, 2),
            ("offset", pair.offset, 1),
        ):
            unit, scaled = select_display_unit(
                value, Kind.FREQUENCY, low=self.config.display_low, high=self.config.display_high
            )
            shown[name] = f"{format_min_decimals(scaled, decimals)} {unit}"
        return shown
