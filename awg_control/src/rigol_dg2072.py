# Rigol DG2072
"""
Command formatter for the Rigol DG2072 Function/Arbitrary Waveform Generator.
Instrument Type: Dual-Channel Arbitrary Waveform Generator (AWG)

Based on the DG2000 Series Programming Guide.
Every setter sends one command through the injected DeviceTransport; every
getter issues one query and parses the numeric reply.
"""

from .errors import InvalidChannelError, ValidationError
from .harmonics import check_order
from .unit_scaler import parse_number


class RigolDG2072:
    """
    Formats and parses DG2072 commands for both channels.

    Channels are addressed via the SOURce1/SOURce2 prefix; output enable uses
    OUTPut1/OUTPut2. The transport is shared by both channels and must keep
    commands in FIFO order.
    """

    CHANNEL_MAP = {1: "SOURce1", 2: "SOURce2"}

    VALID_WAVEFORMS = {"SIN", "SQU", "RAMP", "PULS", "NOIS", "DC", "USER", "HARM", "DUALT"}

    VALID_HARMONIC_TYPES = {"EVEN", "ODD", "ALL", "USER"}

    def __init__(self, transport):
        self.transport = transport

    # ==========================================
    # INTERNAL HELPERS
    # ==========================================

    def _validate_channel(self, channel):
        if channel not in self.CHANNEL_MAP:
            raise InvalidChannelError(channel, self.CHANNEL_MAP.keys())

    def _src(self, channel):
        """Return the SOURce prefix for the given channel number."""
        self._validate_channel(channel)
        return self.CHANNEL_MAP[channel]

    def _query_float(self, command):
        return parse_number(self.transport.query(command))

    def send_command(self, command):
        self.transport.send(command)

    def query(self, command):
        return self.transport.query(command)

    def idn(self):
        return self.transport.query("*IDN?")

    # ==========================================
    # OUTPUT CONTROL
    # ==========================================

    def enable_output(self, channel, enabled: bool = True):
        """Enable or disable the output for the specified channel."""
        self._validate_channel(channel)
        state = "ON" if enabled else "OFF"
        self.send_command(f"OUTPut{channel} {state}")

    def get_output(self, channel):
        self._validate_channel(channel)
        return self.transport.query(f"OUTPut{channel}?").strip().upper() in ("ON", "1")

    def disable_all_channels(self):
        for channel in self.CHANNEL_MAP:
            self.enable_output(channel, False)

    # ==========================================
    # BASIC WAVEFORM PARAMETERS
    # ==========================================

    def set_function(self, channel, func):
        f = func.upper()
        if f not in self.VALID_WAVEFORMS:
            raise ValidationError(f"Invalid function '{func}'. Must be one of: {sorted(self.VALID_WAVEFORMS)}")
        self.send_command(f"{self._src(channel)}:FUNCtion {f}")

    def get_function(self, channel):
        return self.transport.query(f"{self._src(channel)}:FUNCtion?").strip().upper()

    def set_frequency(self, channel, frequency):
        """Frequency in Hz."""
        self.send_command(f"{self._src(channel)}:FREQuency {frequency}")

    def get_frequency(self, channel):
        return self._query_float(f"{self._src(channel)}:FREQuency?")

    def set_period(self, channel, period):
        """Period in seconds."""
        self.send_command(f"{self._src(channel)}:PERiod {period}")

    def get_period(self, channel):
        return self._query_float(f"{self._src(channel)}:PERiod?")

    def set_amplitude(self, channel, amplitude):
        """Amplitude in Vpp."""
        self.send_command(f"{self._src(channel)}:VOLTage {amplitude}")

    def get_amplitude(self, channel):
        return self._query_float(f"{self._src(channel)}:VOLTage?")

    def set_offset(self, channel, offset):
        """DC offset in Volts."""
        self.send_command(f"{self._src(channel)}:VOLTage:OFFSet {offset}")

    def get_offset(self, channel):
        return self._query_float(f"{self._src(channel)}:VOLTage:OFFSet?")

    def set_phase(self, channel, phase):
        """Start phase in degrees."""
        self.send_command(f"{self._src(channel)}:PHASe {phase}")

    def get_phase(self, channel):
        return self._query_float(f"{self._src(channel)}:PHASe?")

    def apply_sine(self, channel, frequency, amplitude, offset, phase):
        self.send_command(f"{self._src(channel)}:APPLy:SINusoid {frequency},{amplitude},{offset},{phase}")

    # ==========================================
    # PULSE
    # ==========================================

    def set_pulse_width(self, channel, width):
        """Pulse width in seconds."""
        self.send_command(f"{self._src(channel)}:PULSe:WIDTh {width}")

    def get_pulse_width(self, channel):
        return self._query_float(f"{self._src(channel)}:PULSe:WIDTh?")

    def set_pulse_rise_time(self, channel, rise_time):
        self.send_command(f"{self._src(channel)}:PULSe:TRANsition:LEADing {rise_time}")

    def get_pulse_rise_time(self, channel):
        return self._query_float(f"{self._src(channel)}:PULSe:TRANsition:LEADing?")

    def set_pulse_fall_time(self, channel, fall_time):
        self.send_command(f"{self._src(channel)}:PULSe:TRANsition:TRAiling {fall_time}")

    def get_pulse_fall_time(self, channel):
        return self._query_float(f"{self._src(channel)}:PULSe:TRANsition:TRAiling?")

    # ==========================================
    # HARMONICS
    # ==========================================

    def set_harmonic_state(self, channel, enabled: bool):
        state = "ON" if enabled else "OFF"
        self.send_command(f"{self._src(channel)}:HARMonic:STATe {state}")

    def get_harmonic_state(self, channel):
        return self.transport.query(f"{self._src(channel)}:HARMonic:STATe?").strip().upper() in ("ON", "1")

    def set_harmonic_type(self, channel, harmonic_type):
        t = harmonic_type.upper()
        if t not in self.VALID_HARMONIC_TYPES:
            raise ValidationError(
                f"Invalid harmonic type '{harmonic_type}'. Must be one of: {sorted(self.VALID_HARMONIC_TYPES)}"
            )
        self.send_command(f"{self._src(channel)}:HARMonic:TYPe {t}")

    def get_harmonic_type(self, channel):
        return self.transport.query(f"{self._src(channel)}:HARMonic:TYPe?").strip().upper()

    def set_harmonic_order(self, channel, order):
        """Highest harmonic order in use (2-8)."""
        check_order(order)
        self.send_command(f"{self._src(channel)}:HARMonic:ORDer {order}")

    def get_harmonic_order(self, channel):
        return int(self._query_float(f"{self._src(channel)}:HARMonic:ORDer?"))

    def set_harmonic_user_pattern(self, channel, pattern):
        """Pattern such as 'X0100000': fundamental marker then orders 2..8."""
        if len(pattern) != 8 or pattern[0] != "X" or set(pattern[1:]) - {"0", "1"}:
            raise ValidationError(f"Invalid harmonic user pattern '{pattern}'")
        self.send_command(f"{self._src(channel)}:HARMonic:USER {pattern}")

    def get_harmonic_user_pattern(self, channel):
        return self.transport.query(f"{self._src(channel)}:HARMonic:USER?").strip()

    def set_harmonic_amplitude(self, channel, order, amplitude):
        """Amplitude of one harmonic in Vpp."""
        check_order(order)
        self.send_command(f"{self._src(channel)}:HARMonic:AMPLitude {order},{amplitude}")

    def get_harmonic_amplitude(self, channel, order):
        check_order(order)
        return self._query_float(f"{self._src(channel)}:HARMonic:AMPLitude? {order}")

    def set_harmonic_phase(self, channel, order, phase):
        check_order(order)
        self.send_command(f"{self._src(channel)}:HARMonic:PHASe {order},{phase}")

    def get_harmonic_phase(self, channel, order):
        check_order(order)
        return self._query_float(f"{self._src(channel)}:HARMonic:PHASe? {order}")

    def apply_harmonic(self, channel, frequency, amplitude, offset, phase):
        """Re-apply the fundamental sine as a harmonic waveform."""
        self.send_command(f"{self._src(channel)}:APPLy:HARMonic {frequency},{amplitude},{offset},{phase}")

    # ==========================================
    # DUAL TONE
    # ==========================================

    def set_dual_tone_f1(self, channel, frequency):
        self.send_command(f"{self._src(channel)}:FUNCtion:DUALTone:FREQ1 {frequency}")

    def get_dual_tone_f1(self, channel):
        return self._query_float(f"{self._src(channel)}:FUNCtion:DUALTone:FREQ1?")

    def set_dual_tone_f2(self, channel, frequency):
        self.send_command(f"{self._src(channel)}:FUNCtion:DUALTone:FREQ2 {frequency}")

    def get_dual_tone_f2(self, channel):
        return self._query_float(f"{self._src(channel)}:FUNCtion:DUALTone:FREQ2?")

    def set_dual_tone_center(self, channel, center):
        """Some firmware accepts center/offset directly; F1/F2 is preferred."""
        self.send_command(f"{self._src(channel)}:FUNCtion:DUALTone:CENTerfreq {center}")

    def get_dual_tone_center(self, channel):
        return self._query_float(f"{self._src(channel)}:FUNCtion:DUALTone:CENTerfreq?")

    def set_dual_tone_offset(self, channel, offset):
        self.send_command(f"{self._src(channel)}:FUNCtion:DUALTone:OFFSetfreq {offset}")

    def get_dual_tone_offset(self, channel):
        return self._query_float(f"{self._src(channel)}:FUNCtion:DUALTone:OFFSetfreq?")

    def apply_dual_tone(self, channel, f1, f2, amplitude, offset, phase):
        """Select the dual-tone function, then F1, F2, amplitude, offset, phase."""
        self.set_function(channel, "DUALT")
        self.set_dual_tone_f1(channel, f1)
        self.set_dual_tone_f2(channel, f2)
        self.set_amplitude(channel, amplitude)
        self.set_offset(channel, offset)
        self.set_phase(channel, phase)

    # ==========================================
    # SYSTEM & UTILITY
    # ==========================================

    def get_error(self):
        """Reads the most recent error from the system error queue."""
        return self.transport.query("SYSTem:ERRor?")
