"""
Tests for the DG2072 command formatter and the VISA transport.
"""

import pytest
import pyvisa
from pyvisa import constants

from awg_control.src.device_manager import VisaTransport
from awg_control.src.errors import (
    InvalidChannelError,
    InvalidHarmonicOrderError,
    TransportError,
    UnparsableInputError,
    ValidationError,
)
from awg_control.src.rigol_dg2072 import RigolDG2072


@pytest.fixture
def awg(recording_transport):
    return RigolDG2072(recording_transport)


def test_basic_parameter_commands(awg, recording_transport):
    awg.set_frequency(1, 1000)
    awg.set_amplitude(2, 3.5)
    awg.set_offset(1, -0.5)
    awg.set_phase(2, 90)
    awg.set_period(1, 0.002)
    assert recording_transport.sent == [
        "SOURce1:FREQuency 1000",
        "SOURce2:VOLTage 3.5",
        "SOURce1:VOLTage:OFFSet -0.5",
        "SOURce2:PHASe 90",
        "SOURce1:PERiod 0.002",
    ]


def test_output_commands(awg, recording_transport):
    awg.enable_output(2, True)
    awg.disable_all_channels()
    assert recording_transport.sent == ["OUTPut2 ON", "OUTPut1 OFF", "OUTPut2 OFF"]


def test_harmonic_commands(awg, recording_transport):
    awg.set_harmonic_amplitude(1, 2, 0.5)
    awg.set_harmonic_phase(1, 3, 270.0)
    awg.set_harmonic_user_pattern(1, "X1010000")
    awg.set_harmonic_order(1, 4)
    awg.set_harmonic_type(1, "user")
    awg.set_harmonic_state(1, True)
    awg.apply_harmonic(1, 1000.0, 2.0, 0.0, 0.0)
    assert recording_transport.sent == [
        "SOURce1:HARMonic:AMPLitude 2,0.5",
        "SOURce1:HARMonic:PHASe 3,270.0",
        "SOURce1:HARMonic:USER X1010000",
        "SOURce1:HARMonic:ORDer 4",
        "SOURce1:HARMonic:TYPe USER",
        "SOURce1:HARMonic:STATe ON",
        "SOURce1:APPLy:HARMonic 1000.0,2.0,0.0,0.0",
    ]


def test_pulse_commands(awg, recording_transport):
    awg.set_pulse_width(1, 1e-5)
    awg.set_pulse_rise_time(1, 2e-08)
    awg.set_pulse_fall_time(1, 3e-08)
    assert recording_transport.sent == [
        "SOURce1:PULSe:WIDTh 1e-05",
        "SOURce1:PULSe:TRANsition:LEADing 2e-08",
        "SOURce1:PULSe:TRANsition:TRAiling 3e-08",
    ]


def test_invalid_arguments_are_rejected(awg, recording_transport):
    with pytest.raises(InvalidChannelError):
        awg.set_frequency(3, 1000)
    with pytest.raises(InvalidHarmonicOrderError):
        awg.set_harmonic_amplitude(1, 1, 0.5)
    with pytest.raises(ValidationError):
        awg.set_harmonic_user_pattern(1, "X12")
    with pytest.raises(ValidationError):
        awg.set_function(1, "bogus")
    with pytest.raises(ValidationError):
        awg.set_harmonic_type(1, "prime")
    assert recording_transport.sent == []


def test_numeric_queries_are_parsed(awg, recording_transport):
    recording_transport.responses.update(
        {
            "SOURce2:FREQuency?": "1.000000E+03",
            "SOURce1:HARMonic:AMPLitude? 3": "0.25",
            "SOURce1:HARMonic:STATe?": "1",
            "SOURce1:HARMonic:USER?": "X0100000",
            "SOURce1:FUNCtion?": "harm",
        }
    )
    assert awg.get_frequency(2) == 1000.0
    assert awg.get_harmonic_amplitude(1, 3) == 0.25
    assert awg.get_harmonic_state(1) is True
    assert awg.get_harmonic_user_pattern(1) == "X0100000"
    assert awg.get_function(1) == "HARM"


def test_garbage_response_raises(awg, recording_transport):
    recording_transport.responses["SOURce1:VOLTage?"] = "not a number"
    with pytest.raises(UnparsableInputError):
        awg.get_amplitude(1)


# ==========================================
# VisaTransport
# ==========================================


class FakeInstrument:
    def __init__(self):
        self.written = []
        self.closed = False
        self.fail = False

    def write(self, command):
        if self.fail:
            raise pyvisa.VisaIOError(constants.StatusCode.error_timeout)
        self.written.append(command)

    def query(self, command):
        if self.fail:
            raise pyvisa.VisaIOError(constants.StatusCode.error_timeout)
        return "Rigol Technologies,DG2072,X,1\n"

    def close(self):
        self.closed = True


class FakeResourceManager:
    def __init__(self):
        self.instrument = FakeInstrument()
        self.opened = []

    def open_resource(self, name):
        self.opened.append(name)
        return self.instrument


def test_visa_transport_lifecycle():
    rm = FakeResourceManager()
    transport = VisaTransport("USB0::0x1AB1::0x0644::DG2::INSTR", timeout_ms=2000, resource_manager=rm)
    assert not transport.is_connected

    transport.connect()
    assert transport.is_connected
    assert rm.instrument.timeout == 2000
    assert rm.instrument.write_termination == "\n"

    transport.send("OUTPut1 ON")
    assert rm.instrument.written == ["OUTPut1 ON"]
    assert transport.query("*IDN?") == "Rigol Technologies,DG2072,X,1"

    transport.disconnect()
    assert rm.instrument.closed
    assert not transport.is_connected


def test_visa_transport_wraps_errors():
    rm = FakeResourceManager()
    transport = VisaTransport("TCPIP::1.2.3.4::INSTR", resource_manager=rm)
    with pytest.raises(TransportError):
        transport.send("OUTPut1 ON")

    transport.connect()
    rm.instrument.fail = True
    with pytest.raises(TransportError):
        transport.send("OUTPut1 ON")
    with pytest.raises(ConnectionError):
        transport.query("*IDN?")
