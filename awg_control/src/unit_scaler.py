"""
Unit scaling and auto-ranging for frequency, time and voltage quantities.

Every value the engine stores is in its canonical SI unit (Hz, s, V). The
(display value, unit) pairs shown to a user are derived on demand and are
never written back as the source of truth.
"""

import math
from dataclasses import dataclass
from enum import Enum

from .config import DISPLAY_HIGH, DISPLAY_LOW
from .errors import InvalidUnitError, UnparsableInputError


class Kind(Enum):
    FREQUENCY = "frequency"
    TIME = "time"
    VOLTAGE = "voltage"


# Ordered smallest to largest
UNIT_LADDERS = {
    Kind.FREQUENCY: (
        ("µHz", 1e-6),
        ("mHz", 1e-3),
        ("Hz", 1.0),
        ("kHz", 1e3),
        ("MHz", 1e6),
    ),
    Kind.TIME: (
        ("ps", 1e-12),
        ("ns", 1e-9),
        ("µs", 1e-6),
        ("ms", 1e-3),
        ("s", 1.0),
    ),
    Kind.VOLTAGE: (
        ("µV", 1e-6),
        ("mV", 1e-3),
        ("V", 1.0),
    ),
}

BASE_UNITS = {Kind.FREQUENCY: "Hz", Kind.TIME: "s", Kind.VOLTAGE: "V"}

# Typed input often uses "u" for the micro sign
_UNIT_ALIASES = {"uHz": "µHz", "us": "µs", "uV": "µV", "μHz": "µHz", "μs": "µs", "μV": "µV"}

RMS_FACTOR = 1.0 / (2.0 * math.sqrt(2.0))

# Amplitude mode multipliers, expressed as Vpp per displayed unit (sine relation)
AMPLITUDE_UNITS = {
    "Vpp": 1.0,
    "mVpp": 1e-3,
    "Vrms": 1.0 / RMS_FACTOR,
    "mVrms": 1e-3 / RMS_FACTOR,
}


def units_for(kind):
    """Return the unit symbols of a ladder, smallest first."""
    return [symbol for symbol, _ in UNIT_LADDERS[kind]]


def _multiplier(unit, kind):
    unit = _UNIT_ALIASES.get(unit, unit)
    for symbol, factor in UNIT_LADDERS[kind]:
        if symbol == unit:
            return factor
    raise InvalidUnitError(unit, kind.value, units_for(kind))


def to_base(value: float, unit: str, kind: Kind) -> float:
    """Convert a value expressed in `unit` to the canonical unit of `kind`."""
    return value * _multiplier(unit, kind)


def from_base(base_value: float, unit: str, kind: Kind) -> float:
    """Convert a canonical value into `unit`."""
    return base_value / _multiplier(unit, kind)


def _in_window(display_value, low, high):
    return low <= abs(display_value) < high


def select_display_unit(base_value, kind, current_unit=None, low=DISPLAY_LOW, high=DISPLAY_HIGH):
    """
    Pick a unit that shows `base_value` with a readable magnitude.

    The current unit is kept when its displayed magnitude already lies in
    [low, high). Otherwise the ladder is scanned smallest to largest and the
    first unit inside the window wins. Values outside the whole ladder's
    range clamp to the largest unit (too big) or the smallest (too small or
    zero).

    Returns:
        tuple: (unit, display_value)
    """
    if current_unit is not None:
        current_unit = _UNIT_ALIASES.get(current_unit, current_unit)
        if current_unit in units_for(kind):
            shown = from_base(base_value, current_unit, kind)
            if _in_window(shown, low, high):
                return current_unit, shown

    ladder = UNIT_LADDERS[kind]
    for symbol, factor in ladder:
        shown = base_value / factor
        if _in_window(shown, low, high):
            return symbol, shown

    largest, factor = ladder[-1]
    if abs(base_value / factor) >= high:
        return largest, base_value / factor
    smallest, factor = ladder[0]
    return smallest, base_value / factor


def format_min_decimals(value: float, min_decimals: int = 2) -> str:
    """
    Render `value` with every significant decimal digit but never fewer than
    `min_decimals`; trailing zeros past the minimum are trimmed.

    >>> format_min_decimals(5.0, 2)
    '5.00'
    >>> format_min_decimals(5.12, 1)
    '5.12'
    """
    text = f"{value:.12f}"
    whole, _, decimals = text.partition(".")
    decimals = decimals.rstrip("0")
    if len(decimals) < min_decimals:
        decimals = decimals.ljust(min_decimals, "0")
    if not decimals:
        return whole
    return f"{whole}.{decimals}"


def to_vpp(value: float, unit: str) -> float:
    """Convert an amplitude in Vpp/mVpp/Vrms/mVrms to Vpp."""
    if unit not in AMPLITUDE_UNITS:
        raise InvalidUnitError(unit, "amplitude", AMPLITUDE_UNITS)
    return value * AMPLITUDE_UNITS[unit]


def from_vpp(vpp: float, unit: str) -> float:
    """Convert a Vpp amplitude into `unit`."""
    if unit not in AMPLITUDE_UNITS:
        raise InvalidUnitError(unit, "amplitude", AMPLITUDE_UNITS)
    return vpp / AMPLITUDE_UNITS[unit]


def parse_number(text) -> float:
    """Parse user or device text into a finite float."""
    try:
        value = float(str(text).strip())
    except (TypeError, ValueError):
        raise UnparsableInputError(text) from None
    if not math.isfinite(value):
        raise UnparsableInputError(text)
    return value


@dataclass
class ScaledQuantity:
    """A canonical value plus the unit it was last shown in."""

    base_value: float
    kind: Kind
    display_unit: str = None

    @classmethod
    def from_display(cls, value, unit, kind):
        return cls(to_base(value, unit, kind), kind, _UNIT_ALIASES.get(unit, unit))

    def display(self):
        """Auto-range, remember the chosen unit, and return (unit, value)."""
        unit, shown = select_display_unit(self.base_value, self.kind, self.display_unit)
        self.display_unit = unit
        return unit, shown

    def display_text(self, min_decimals=2):
        unit, shown = self.display()
        return f"{format_min_decimals(shown, min_decimals)} {unit}"
