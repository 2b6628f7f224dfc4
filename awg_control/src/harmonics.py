"""
Harmonic waveform state and the ordered device-apply sequence.

One HarmonicStateManager exists per channel. It owns which harmonic orders
(2..8) are enabled, the amplitude of each order in both absolute volts and
percent of the fundamental, and each order's phase. The fundamental (order 1)
is always present and never stored here.

The instrument has to be driven through a fixed sequence with a settling
delay after every command:

    1. user pattern X0000000
    2. read fundamental amplitude and frequency
    3. per order 2..8: amplitude + phase if enabled, amplitude 0 otherwise
    4. type USER, order, pattern, state ON, re-apply the fundamental

A failure part way through aborts the rest; nothing already sent is rolled
back.
"""

import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Dict

from .config import DEFAULT_CONFIG
from .errors import InvalidHarmonicOrderError, TransportError, ValidationError
from .terminal import ColorPrinter
from .unit_scaler import Kind, format_min_decimals, select_display_unit

MIN_ORDER = 2
MAX_ORDER = 8
HARMONIC_ORDERS = tuple(range(MIN_ORDER, MAX_ORDER + 1))
DISABLED_PATTERN = "X0000000"


class AmplitudeMode(Enum):
    PERCENTAGE = "percentage"
    ABSOLUTE = "absolute"


class HarmonicState(Enum):
    DISABLED = "disabled"
    ENABLED = "enabled"


def check_order(order):
    if not isinstance(order, int) or isinstance(order, bool) or not MIN_ORDER <= order <= MAX_ORDER:
        raise InvalidHarmonicOrderError(order)
    return order


class HarmonicSet:
    """Seven enable flags for harmonic orders 2..8, indexed 0..6."""

    SIZE = len(HARMONIC_ORDERS)

    def __init__(self, flags=None):
        flags = list(flags) if flags is not None else [False] * self.SIZE
        if len(flags) != self.SIZE:
            raise ValidationError(f"HarmonicSet needs {self.SIZE} flags, got {len(flags)}")
        self._flags = [bool(flag) for flag in flags]

    @classmethod
    def from_orders(cls, orders):
        harmonic_set = cls()
        for order in orders:
            harmonic_set.set(order, True)
        return harmonic_set

    @classmethod
    def from_pattern(cls, pattern):
        """Parse a device user pattern such as 'X0101000'."""
        pattern = pattern.strip().strip('"')
        if len(pattern) < cls.SIZE + 1:
            raise ValidationError(f"Harmonic pattern '{pattern}' is too short")
        return cls(ch == "1" for ch in pattern[1 : cls.SIZE + 1])

    def set(self, order, enabled=True):
        self._flags[check_order(order) - MIN_ORDER] = bool(enabled)

    def is_enabled(self, order):
        return self._flags[check_order(order) - MIN_ORDER]

    def enabled_orders(self):
        return [order for order, flag in zip(HARMONIC_ORDERS, self._flags) if flag]

    def copy(self):
        return HarmonicSet(self._flags)

    def __getitem__(self, index):
        return self._flags[index]

    def __iter__(self):
        return iter(self._flags)

    def __len__(self):
        return self.SIZE

    def __eq__(self, other):
        if isinstance(other, HarmonicSet):
            return self._flags == other._flags
        return NotImplemented

    def __repr__(self):
        return f"HarmonicSet({self.enabled_orders()})"


def build_pattern(enabled) -> str:
    """'X' for the fundamental followed by one '1'/'0' per order 2..8."""
    return "X" + "".join("1" if flag else "0" for flag in list(enabled)[: HarmonicSet.SIZE])


def highest_enabled_order(enabled) -> int:
    """Highest enabled order; 2 when none are enabled (device minimum)."""
    highest = MIN_ORDER
    for index, flag in enumerate(list(enabled)[: HarmonicSet.SIZE]):
        if flag:
            highest = index + MIN_ORDER
    return highest


def normalize_phase(phase):
    return ((phase % 360.0) + 360.0) % 360.0


@dataclass
class HarmonicAmplitude:
    absolute_volts: float = 0.0
    percent_of_fundamental: float = 0.0


class HarmonicAmplitudeCache:
    """
    Absolute and percentage amplitude per order, kept consistent with one
    live fundamental amplitude:

        absolute_volts == percent_of_fundamental / 100 * fundamental
    """

    def __init__(self, fundamental=1.0):
        self.fundamental = fundamental
        self._entries = {order: HarmonicAmplitude() for order in HARMONIC_ORDERS}

    def _percent_of(self, volts, fundamental):
        if fundamental <= 0:
            return 0.0
        return volts / fundamental * 100.0

    def set(self, order, value, mode, fundamental=None):
        """Write one representation and recompute the other."""
        check_order(order)
        if fundamental is not None:
            self.fundamental = fundamental
        entry = self._entries[order]
        if mode is AmplitudeMode.PERCENTAGE:
            entry.percent_of_fundamental = value
            entry.absolute_volts = value / 100.0 * self.fundamental
        else:
            entry.absolute_volts = value
            entry.percent_of_fundamental = self._percent_of(value, self.fundamental)
        return entry

    def rebase(self, new_fundamental, mode):
        """
        Follow a new fundamental amplitude. Percentage mode keeps the
        percentages and recomputes volts; absolute mode keeps the volts and
        recomputes percentages.
        """
        self.fundamental = new_fundamental
        for entry in self._entries.values():
            if mode is AmplitudeMode.PERCENTAGE:
                entry.absolute_volts = entry.percent_of_fundamental / 100.0 * new_fundamental
            else:
                entry.percent_of_fundamental = self._percent_of(entry.absolute_volts, new_fundamental)

    def get(self, order) -> HarmonicAmplitude:
        return self._entries[check_order(order)]

    def value(self, order, mode):
        entry = self.get(order)
        if mode is AmplitudeMode.PERCENTAGE:
            return entry.percent_of_fundamental
        return entry.absolute_volts

    def values(self, mode) -> Dict[int, float]:
        return {order: self.value(order, mode) for order in HARMONIC_ORDERS}


class HarmonicStateManager:
    """
    Per-channel harmonic state machine and device sequencer.

    Axes: enabled (DISABLED <-> ENABLED), amplitude display mode
    (PERCENTAGE | ABSOLUTE) and the per-order amplitude/phase cache.
    """

    def __init__(self, device, channel, config=DEFAULT_CONFIG, sleep=time.sleep, lock=None):
        self.device = device
        self.channel = channel
        self.config = config
        self._sleep = sleep
        self._lock = lock if lock is not None else threading.RLock()

        self.state = HarmonicState.DISABLED
        self.amplitude_mode = AmplitudeMode.PERCENTAGE
        self.enabled_set = HarmonicSet()
        self.cache = HarmonicAmplitudeCache()
        self.phases = {order: 0.0 for order in HARMONIC_ORDERS}

    @property
    def fundamental(self):
        return self.cache.fundamental

    @property
    def is_enabled(self):
        return self.state is HarmonicState.ENABLED

    # ==========================================
    # LOCAL STATE
    # ==========================================

    def set_order_enabled(self, order, enabled=True):
        self.enabled_set.set(order, enabled)

    def set_amplitude(self, order, value, mode=None, fundamental=None):
        """
        Store an amplitude given in `mode` (default: current display mode).

        `fundamental` updates the live fundamental amplitude used for the
        conversion; omitted, the cached fundamental is used.
        """
        check_order(order)
        mode = mode or self.amplitude_mode
        with self._lock:
            return self.cache.set(order, value, mode, fundamental)

    def set_phase(self, order, phase):
        check_order(order)
        self.phases[order] = normalize_phase(phase)
        return self.phases[order]

    def set_amplitude_mode(self, mode: AmplitudeMode):
        """Switch what amplitudes are displayed as; the device is not touched."""
        if mode is not self.amplitude_mode:
            self.amplitude_mode = mode
            ColorPrinter.info(f"CH{self.channel}: harmonic amplitude mode changed to {mode.value}")

    def display_amplitude(self, order):
        """(text, unit) for one order in the current display mode."""
        entry = self.cache.get(order)
        if self.amplitude_mode is AmplitudeMode.PERCENTAGE:
            return format_min_decimals(entry.percent_of_fundamental, 1), "%"
        unit, shown = select_display_unit(entry.absolute_volts, Kind.VOLTAGE, "V")
        return format_min_decimals(shown, 1), unit

    def recompute_for_new_fundamental(self, new_fundamental, mode=None) -> bool:
        """
        Follow a change of the fundamental's absolute amplitude.

        In percentage mode the absolute amplitudes change, so the apply
        sequence is re-issued from the stored percentages when harmonics are
        enabled; the volts sent follow the fundamental the device reports.
        In absolute mode only the displayed percentages change and nothing
        is sent.

        Returns:
            bool: True if the apply sequence was re-issued
        """
        mode = mode or self.amplitude_mode
        with self._lock:
            self.cache.rebase(new_fundamental, mode)
            if mode is not AmplitudeMode.PERCENTAGE or not self.is_enabled:
                return False
            ColorPrinter.info(f"CH{self.channel}: fundamental now {new_fundamental} Vpp, re-applying harmonics")
            self.apply_sequence(
                self.enabled_set,
                self.cache.values(AmplitudeMode.PERCENTAGE),
                dict(self.phases),
                AmplitudeMode.PERCENTAGE,
            )
            return True

    # ==========================================
    # DEVICE SEQUENCING
    # ==========================================

    def _step(self, action, delay, *args):
        action(self.channel, *args)
        self._sleep(delay)

    def apply_sequence(self, enabled=None, amplitudes=None, phases=None, mode=None) -> bool:
        """
        Drive the instrument through the full harmonic apply sequence.

        `amplitudes` are interpreted in `mode`; percentages are converted
        using the fundamental amplitude read from the device in step 2.
        Arguments default to the manager's cached state. Transport errors
        are logged and abort the remaining steps.

        Returns:
            bool: True when every step completed
        """
        enabled = enabled if enabled is not None else self.enabled_set
        mode = mode or self.amplitude_mode
        if amplitudes is None:
            amplitudes = self.cache.values(mode)
        if phases is None:
            phases = dict(self.phases)
        for order in list(amplitudes) + list(phases):
            check_order(order)
        if not isinstance(enabled, HarmonicSet):
            enabled = HarmonicSet(enabled)

        cfg = self.config
        device = self.device
        with self._lock:
            ColorPrinter.info(f"CH{self.channel}: starting harmonic settings application...")
            try:
                # 1. Reset the user pattern
                self._step(device.set_harmonic_user_pattern, cfg.settle_pattern, DISABLED_PATTERN)

                # 2. Current fundamental from the device, not the cache
                fundamental = device.get_amplitude(self.channel)
                frequency = device.get_frequency(self.channel)
                self.cache.fundamental = fundamental

                # 3. Per-order amplitude and phase
                for order in HARMONIC_ORDERS:
                    if enabled.is_enabled(order):
                        value = amplitudes.get(order, 0.0)
                        entry = self.cache.set(order, value, mode, fundamental)
                        self._step(
                            device.set_harmonic_amplitude,
                            cfg.settle_harmonic,
                            order,
                            entry.absolute_volts,
                        )
                        phase = normalize_phase(phases.get(order, self.phases[order]))
                        self.phases[order] = phase
                        self._step(device.set_harmonic_phase, cfg.settle_harmonic, order, phase)
                    else:
                        self._step(device.set_harmonic_amplitude, cfg.settle_harmonic, order, 0)

                # 4. Pattern, state, fundamental
                highest = highest_enabled_order(enabled)
                pattern = build_pattern(enabled)
                self._step(device.set_harmonic_type, cfg.settle_pattern, "USER")
                self._step(device.set_harmonic_order, cfg.settle_pattern, highest)
                self._step(device.set_harmonic_user_pattern, cfg.settle_pattern, pattern)
                self._step(device.set_harmonic_state, cfg.settle_state, True)

                offset = device.get_offset(self.channel)
                phase = device.get_phase(self.channel)
                self._step(
                    device.apply_harmonic,
                    cfg.settle_state,
                    frequency,
                    fundamental,
                    offset,
                    phase,
                )
            except (TransportError, ValidationError) as exc:
                ColorPrinter.error(f"CH{self.channel}: error applying harmonic settings: {exc}")
                return False

            self.enabled_set = enabled.copy()
            self.state = HarmonicState.ENABLED
            ColorPrinter.success(
                f"CH{self.channel}: harmonics applied (pattern {pattern}, order {highest})"
            )
            return True

    def enable(self) -> bool:
        """DISABLED -> ENABLED: run the full apply sequence."""
        return self.apply_sequence()

    def disable(self) -> bool:
        """ENABLED -> DISABLED: state OFF and pattern reset to X0000000."""
        with self._lock:
            # Intended state is cached first so a failed write is still remembered
            self.state = HarmonicState.DISABLED
            try:
                self._step(self.device.set_harmonic_state, self.config.settle_state, False)
                self._step(self.device.set_harmonic_user_pattern, self.config.settle_pattern, DISABLED_PATTERN)
            except TransportError as exc:
                ColorPrinter.error(f"CH{self.channel}: error disabling harmonics: {exc}")
                return False
            ColorPrinter.info(f"CH{self.channel}: harmonics disabled and user pattern reset")
            return True

    def refresh(self) -> bool:
        """
        Rebuild state from the device.

        If the state query itself fails, the last intended state is kept and
        the remaining reads still run.
        """
        with self._lock:
            try:
                self.state = (
                    HarmonicState.ENABLED
                    if self.device.get_harmonic_state(self.channel)
                    else HarmonicState.DISABLED
                )
            except TransportError as exc:
                ColorPrinter.warning(
                    f"CH{self.channel}: harmonic state query failed ({exc}); keeping {self.state.value}"
                )

            try:
                fundamental = self.device.get_amplitude(self.channel)
                pattern = self.device.get_harmonic_user_pattern(self.channel)
                readings = {}
                for order in HARMONIC_ORDERS:
                    readings[order] = (
                        self.device.get_harmonic_amplitude(self.channel, order),
                        self.device.get_harmonic_phase(self.channel, order),
                    )
                enabled = HarmonicSet.from_pattern(pattern)
            except (TransportError, ValidationError) as exc:
                ColorPrinter.error(f"CH{self.channel}: error getting harmonic settings: {exc}")
                return False

            self.enabled_set = enabled
            self.cache.fundamental = fundamental
            for order, (volts, phase) in readings.items():
                self.cache.set(order, volts, AmplitudeMode.ABSOLUTE)
                self.phases[order] = normalize_phase(phase)
            return True

    def summary(self):
        """Rows of (order, enabled, amplitude text, unit, phase) for display."""
        rows = []
        for order in HARMONIC_ORDERS:
            text, unit = self.display_amplitude(order)
            rows.append((order, self.enabled_set.is_enabled(order), text, unit, self.phases[order]))
        return rows
