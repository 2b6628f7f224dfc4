"""
Pulse timing constraints and the pulse waveform controller.

The instrument accepts a pulse width only when

    width + 0.7 * (rise + fall) <= period

and a 10% margin is kept on top of that, so the usable ceiling is
0.9 * (period - 0.7 * (rise + fall)). The floor is a fixed 20 ns.
Out-of-range widths are clamped, never rejected.
"""

import threading
from dataclasses import dataclass
from typing import Optional

from .config import DEFAULT_CONFIG, MIN_PULSE_WIDTH
from .errors import NonPositiveRateError, TransportError, ValidationError
from .terminal import ColorPrinter
from .unit_scaler import Kind, ScaledQuantity, format_min_decimals, select_display_unit

WIDTH_MARGIN = 0.9
TRANSITION_FACTOR = 0.7


def max_allowed_width(period: float, rise_time: float, fall_time: float) -> float:
    """Largest width the device accepts; may be <= 0 if transitions dominate."""
    return WIDTH_MARGIN * (period - TRANSITION_FACTOR * (rise_time + fall_time))


@dataclass(frozen=True)
class WidthClamp:
    value: float
    was_adjusted: bool
    message: str = ""

    def __iter__(self):
        # Allows `clamped, adjusted = clamp_width(...)`
        return iter((self.value, self.was_adjusted))


def _seconds_text(seconds):
    unit, shown = select_display_unit(seconds, Kind.TIME)
    return f"{format_min_decimals(shown)} {unit}"


def clamp_width(requested, period, rise_time, fall_time, min_width=MIN_PULSE_WIDTH):
    """
    Clamp a requested pulse width into [min_width, max_allowed_width].

    When the transition times leave no valid width at all the result is
    min_width, and the message says the constraints contradict each other.

    Returns:
        WidthClamp: unpacks as (clamped, was_adjusted)
    """
    ceiling = max_allowed_width(period, rise_time, fall_time)

    if ceiling <= 0 or ceiling < min_width:
        message = (
            f"No valid pulse width for period {_seconds_text(period)} with rise "
            f"{_seconds_text(rise_time)} and fall {_seconds_text(fall_time)}; "
            f"using minimum {_seconds_text(min_width)}"
        )
        return WidthClamp(min_width, requested != min_width, message)

    if requested > ceiling:
        message = (
            f"Pulse width adjusted to maximum allowed value ({_seconds_text(ceiling)}) "
            f"based on current period and transition times"
        )
        return WidthClamp(ceiling, True, message)

    if requested < min_width:
        message = f"Pulse width adjusted to minimum allowed value ({_seconds_text(min_width)})"
        return WidthClamp(min_width, True, message)

    return WidthClamp(requested, False)


def derive_complementary_rate(known_value: float, mode_is_frequency: bool) -> float:
    """
    Return period for a frequency, or frequency for a period.

    `mode_is_frequency` names which side `known_value` is; the result is
    always the reciprocal and is for display only.
    """
    if known_value is None or known_value <= 0:
        raise NonPositiveRateError(known_value)
    return 1.0 / known_value


@dataclass
class PulseTimingState:
    period: float = 1e-3
    width: float = 500e-6
    rise_time: float = 20e-9
    fall_time: float = 20e-9

    @property
    def frequency(self):
        return derive_complementary_rate(self.period, mode_is_frequency=False)

    def duty_cycle(self):
        """Width as a percentage of the period."""
        if self.period <= 0:
            return 0.0
        return self.width / self.period * 100.0


class PulseController:
    """
    Owns one channel's pulse timing and drives it onto the instrument.

    Exactly one of frequency or period is the controlled value at any time,
    selected by `frequency_mode`; the other is derived for display only.
    """

    def __init__(
        self, device, channel, config=DEFAULT_CONFIG, state: Optional[PulseTimingState] = None, lock=None
    ):
        self.device = device
        self.channel = channel
        self.config = config
        self.state = state or PulseTimingState()
        self.frequency_mode = True
        self.frequency = self.state.frequency
        self._lock = lock if lock is not None else threading.RLock()
        self._shown = {
            "frequency": ScaledQuantity(self.frequency, Kind.FREQUENCY),
            "period": ScaledQuantity(self.state.period, Kind.TIME),
            "width": ScaledQuantity(self.state.width, Kind.TIME),
            "rise": ScaledQuantity(self.state.rise_time, Kind.TIME),
            "fall": ScaledQuantity(self.state.fall_time, Kind.TIME),
        }

    # ==========================================
    # RATE (FREQUENCY / PERIOD)
    # ==========================================

    def set_rate_mode(self, frequency_mode: bool):
        """Choose which of frequency/period is user-controlled."""
        self.frequency_mode = bool(frequency_mode)

    def set_frequency(self, frequency: float):
        """Set the frequency; the period follows as a derived value."""
        period = derive_complementary_rate(frequency, mode_is_frequency=True)
        self.frequency = frequency
        self.state.period = period

    def set_period(self, period: float):
        """Set the period; the frequency follows as a derived value."""
        frequency = derive_complementary_rate(period, mode_is_frequency=False)
        self.state.period = period
        self.frequency = frequency

    def set_rise_time(self, rise_time: float):
        self.state.rise_time = rise_time

    def set_fall_time(self, fall_time: float):
        self.state.fall_time = fall_time

    def set_width(self, width: float) -> WidthClamp:
        """
        Store a clamped width. Any clamp message is logged as a warning,
        including contradictory constraints that leave the width unchanged.
        """
        result = clamp_width(
            width,
            self.state.period,
            self.state.rise_time,
            self.state.fall_time,
            self.config.min_pulse_width,
        )
        if result.message:
            ColorPrinter.warning(f"CH{self.channel}: {result.message}")
        self.state.width = result.value
        return result

    def duty_cycle(self):
        return self.state.duty_cycle()

    # ==========================================
    # DEVICE I/O
    # ==========================================

    def apply(self) -> bool:
        """
        Select the pulse function, then send rate, transition times and
        width, in that order.

        The width is re-clamped against the final period and transitions
        before it is sent. Transport failures are logged and stop the
        sequence; already-sent commands stay applied.
        """
        with self._lock:
            try:
                self.device.set_function(self.channel, "PULS")
                if self.frequency_mode:
                    self.device.set_frequency(self.channel, self.frequency)
                else:
                    self.device.set_period(self.channel, self.state.period)
                self.device.set_pulse_rise_time(self.channel, self.state.rise_time)
                self.device.set_pulse_fall_time(self.channel, self.state.fall_time)
                self.set_width(self.state.width)
                self.device.set_pulse_width(self.channel, self.state.width)
            except TransportError as exc:
                ColorPrinter.error(f"CH{self.channel}: error applying pulse parameters: {exc}")
                return False
            ColorPrinter.info(
                f"CH{self.channel}: pulse period {_seconds_text(self.state.period)}, "
                f"width {_seconds_text(self.state.width)} "
                f"({format_min_decimals(self.duty_cycle(), 1)}% duty)"
            )
            return True

    def refresh(self) -> bool:
        """Read period, width, rise and fall time back from the device."""
        with self._lock:
            try:
                period = self.device.get_period(self.channel)
                width = self.device.get_pulse_width(self.channel)
                rise = self.device.get_pulse_rise_time(self.channel)
                fall = self.device.get_pulse_fall_time(self.channel)
                frequency = derive_complementary_rate(period, mode_is_frequency=False)
            except (TransportError, ValidationError) as exc:
                ColorPrinter.error(f"CH{self.channel}: error refreshing pulse parameters: {exc}")
                return False
            self.state = PulseTimingState(period, width, rise, fall)
            self.frequency = frequency
            return True

    def display(self):
        """
        Auto-ranged (unit, value) pairs for every pulse field. Each field
        keeps the unit it was last shown in while that unit stays readable.
        """
        state = self.state
        values = {
            "frequency": state.frequency,
            "period": state.period,
            "width": state.width,
            "rise": state.rise_time,
            "fall": state.fall_time,
        }
        shown = {}
        for name, value in values.items():
            quantity = self._shown[name]
            quantity.base_value = value
            shown[name] = quantity.display()
        return shown
