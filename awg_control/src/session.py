"""
Per-channel session: debounced text input flowing into the engine.

A ChannelSession is created when a channel is set up for control and lives
until the program exits. It owns one instance of each controller, so two
channels never share cached state. Selecting a different waveform family
throws the controllers away and starts them fresh. All controllers of one
channel share the session lock, so their device sequences never interleave.
"""

import threading
import time

from .config import DEFAULT_CONFIG
from .debounce import Debouncer
from .errors import TransportError, UnparsableInputError, ValidationError
from .harmonics import AmplitudeMode, HarmonicStateManager, check_order
from .pulse_timing import PulseController
from .dual_tone import DualToneController
from .terminal import ColorPrinter
from .unit_scaler import (
    Kind,
    format_min_decimals,
    parse_number,
    select_display_unit,
    to_base,
    to_vpp,
)

_PULSE_FIELDS = {
    "pulse.frequency": (Kind.FREQUENCY, "Hz"),
    "pulse.period": (Kind.TIME, "s"),
    "pulse.width": (Kind.TIME, "s"),
    "pulse.rise": (Kind.TIME, "s"),
    "pulse.fall": (Kind.TIME, "s"),
}

_DUAL_FIELDS = ("dual.f1", "dual.f2", "dual.center", "dual.offset")


class ChannelSession:
    """
    Engine state for one channel plus the debounced edit path into it.

    edit(field, text, unit) is called on every keystroke. Each field has its
    own debounce timer; when it fires the latest text is parsed, validated,
    committed and applied. Unparsable text is dropped and the previous value
    stays in effect.

    Field names:
        fundamental.amplitude
        harmonic.<2-8>.amplitude, harmonic.<2-8>.phase
        pulse.frequency, pulse.period, pulse.width, pulse.rise, pulse.fall
        dual.f1, dual.f2, dual.center, dual.offset
    """

    def __init__(self, device, channel, config=DEFAULT_CONFIG, debouncer=None, sleep=time.sleep):
        device._validate_channel(channel)
        self.device = device
        self.channel = channel
        self.config = config
        self.debouncer = debouncer or Debouncer(config.debounce_delay)
        self.waveform = None
        self._sleep = sleep
        self._lock = threading.RLock()
        self._keys = set()
        self._new_controllers()

    def _new_controllers(self):
        self.harmonics = HarmonicStateManager(
            self.device, self.channel, self.config, sleep=self._sleep, lock=self._lock
        )
        self.pulse = PulseController(self.device, self.channel, self.config, lock=self._lock)
        self.dual_tone = DualToneController(self.device, self.channel, self.config, lock=self._lock)

    # ==========================================
    # DEBOUNCED INPUT
    # ==========================================

    def edit(self, field, text, unit=None):
        """Record a keystroke-level edit; only the last one per field is committed."""
        key = self._key(field)
        self._keys.add(key)
        self.debouncer.schedule(key, lambda: self.commit(field, text, unit))

    def _key(self, field):
        return f"ch{self.channel}.{field}"

    def close(self):
        """Drop pending edits; the session is not used afterwards."""
        self._cancel_pending()

    def _cancel_pending(self):
        for key in self._keys:
            self.debouncer.cancel(key)
        self._keys.clear()

    def commit(self, field, text, unit=None) -> bool:
        """
        Parse, validate and apply one field value immediately.

        Returns:
            bool: True when the value was accepted (device errors are logged
            separately and do not un-commit the value)
        """
        try:
            value = parse_number(text)
        except UnparsableInputError:
            ColorPrinter.debug(f"CH{self.channel}: ignoring unparsable input {text!r} for {field}")
            return False

        with self._lock:
            try:
                if field == "fundamental.amplitude":
                    self._commit_fundamental(value, unit or "Vpp")
                elif field.startswith("harmonic."):
                    self._commit_harmonic(field, value, unit)
                elif field in _PULSE_FIELDS:
                    self._commit_pulse(field, value, unit)
                elif field in _DUAL_FIELDS:
                    self._commit_dual(field, value, unit or "Hz")
                else:
                    raise ValidationError(f"Unknown field '{field}'")
            except ValidationError as exc:
                ColorPrinter.warning(f"CH{self.channel}: {field} rejected: {exc}")
                return False
        return True

    def _commit_fundamental(self, value, unit):
        vpp = to_vpp(value, unit)
        if vpp <= 0:
            raise ValidationError(f"Fundamental amplitude must be positive, got {vpp}")
        try:
            self.device.set_amplitude(self.channel, vpp)
            self._sleep(self.config.settle_default)
        except TransportError as exc:
            ColorPrinter.error(f"CH{self.channel}: error setting amplitude: {exc}")
            return
        self.harmonics.recompute_for_new_fundamental(vpp)

    def _commit_harmonic(self, field, value, unit):
        parts = field.split(".")
        if len(parts) != 3 or not parts[1].isdigit() or parts[2] not in ("amplitude", "phase"):
            raise ValidationError(f"Unknown field '{field}'")
        order = check_order(int(parts[1]))
        if parts[2] == "phase":
            self.harmonics.set_phase(order, value)
        elif self.harmonics.amplitude_mode is AmplitudeMode.PERCENTAGE:
            self.harmonics.set_amplitude(order, value, AmplitudeMode.PERCENTAGE)
        else:
            volts = to_base(value, unit or "V", Kind.VOLTAGE)
            self.harmonics.set_amplitude(order, volts, AmplitudeMode.ABSOLUTE)
        if self.harmonics.is_enabled:
            self.harmonics.apply_sequence()

    def _commit_pulse(self, field, value, unit):
        kind, default_unit = _PULSE_FIELDS[field]
        base = to_base(value, unit or default_unit, kind)
        pulse = self.pulse
        if field == "pulse.frequency":
            pulse.set_rate_mode(True)
            pulse.set_frequency(base)
        elif field == "pulse.period":
            pulse.set_rate_mode(False)
            pulse.set_period(base)
        elif field == "pulse.rise":
            pulse.set_rise_time(base)
        elif field == "pulse.fall":
            pulse.set_fall_time(base)
        else:
            pulse.set_width(base)
        pulse.apply()

    def _commit_dual(self, field, value, unit):
        hz = to_base(value, unit, Kind.FREQUENCY)
        dual = self.dual_tone
        pair = dual.pair
        if field == "dual.f1":
            dual.set_direct(hz, pair.f2)
        elif field == "dual.f2":
            if dual.synchronized:
                raise ValidationError("F2 follows F1 while frequencies are synchronized")
            dual.set_direct(pair.f1, hz)
        elif field == "dual.center":
            dual.set_center_offset(hz, pair.offset)
        else:
            dual.set_center_offset(pair.center, hz)
        dual.apply()

    # ==========================================
    # WAVEFORM FAMILY
    # ==========================================

    def select_waveform(self, func) -> bool:
        """
        Switch the channel to another waveform family.

        Moving to a different family drops pending edits and replaces the
        harmonic, pulse and dual-tone controllers with fresh ones. HARM,
        PULS and DUALT then run their own apply sequence; every other family
        is selected with a plain function command.

        Returns:
            bool: True when the device accepted the change
        """
        family = func.upper()
        if family not in self.device.VALID_WAVEFORMS:
            raise ValidationError(
                f"Invalid function '{func}'. Must be one of: {sorted(self.device.VALID_WAVEFORMS)}"
            )
        with self._lock:
            if family != self.waveform:
                self._cancel_pending()
                self._new_controllers()
                ColorPrinter.debug(f"CH{self.channel}: waveform state reset for {family}")
            self.waveform = family
            if family == "HARM":
                return self.harmonics.enable()
            if family == "PULS":
                return self.pulse.apply()
            if family == "DUALT":
                return self.dual_tone.apply()
            try:
                self.device.set_function(self.channel, family)
            except TransportError as exc:
                ColorPrinter.error(f"CH{self.channel}: error selecting {family}: {exc}")
                return False
            ColorPrinter.info(f"CH{self.channel}: function {family}")
            return True

    # ==========================================
    # REFRESH / DISPLAY
    # ==========================================

    def refresh(self) -> bool:
        """
        Re-read every representation from the device. Each part logs its own
        failure; the others still refresh.
        """
        with self._lock:
            ok = True
            try:
                function = self.device.get_function(self.channel)
            except TransportError as exc:
                ColorPrinter.error(f"CH{self.channel}: error reading function: {exc}")
                return False
            self.waveform = function
            ok = self.harmonics.refresh() and ok
            if function.startswith("PULS"):
                ok = self.pulse.refresh() and ok
            if function.startswith("DUAL"):
                ok = self.dual_tone.refresh() and ok
            return ok

    def display(self):
        """Human-readable snapshot of this channel's engine state."""
        unit, shown = select_display_unit(self.harmonics.fundamental, Kind.VOLTAGE, "V")
        pulse = {
            name: f"{format_min_decimals(value)} {u}" for name, (u, value) in self.pulse.display().items()
        }
        return {
            "waveform": self.waveform or "unknown",
            "fundamental": f"{format_min_decimals(shown)} {unit}",
            "harmonics_enabled": self.harmonics.is_enabled,
            "amplitude_mode": self.harmonics.amplitude_mode.value,
            "harmonics": self.harmonics.summary(),
            "pulse": pulse,
            "duty_cycle": format_min_decimals(self.pulse.duty_cycle(), 1),
            "rate_mode": "frequency" if self.pulse.frequency_mode else "period",
            "dual_tone": self.dual_tone.display(),
        }
