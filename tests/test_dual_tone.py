"""
Tests for the dual-tone frequency model and controller.
"""

import pytest

from awg_control.src.dual_tone import (
    DualToneController,
    DualToneFrequencyPair,
    from_center_offset,
    switch_mode,
    to_center_offset,
)
from awg_control.src.errors import UnparsableInputError, ValidationError
from awg_control.src.rigol_dg2072 import RigolDG2072


def test_center_offset_conversion():
    assert to_center_offset(1000, 2000) == (1500, 500)
    assert from_center_offset(1500, 500) == (1000, 2000)


def test_conversion_round_trips():
    for f1, f2 in ((1000.0, 2000.0), (3.3, 7.1), (2e6, 1.5e6)):
        center, offset = to_center_offset(f1, f2)
        back = from_center_offset(center, offset)
        assert back == pytest.approx((f1, f2))


def test_pair_properties():
    pair = DualToneFrequencyPair(100, 300)
    assert pair.center == 200
    assert pair.offset == 100


def test_switch_to_direct_uses_center_offset_text():
    pair, (center, offset) = switch_mode(
        DualToneFrequencyPair(), True, center_text="1500", offset_text="250"
    )
    assert (pair.f1, pair.f2) == (1250, 1750)
    assert (center, offset) == (1500, 250)


def test_switch_to_center_uses_direct_text():
    current = DualToneFrequencyPair()
    pair, (center, offset) = switch_mode(current, False, f1_text="100", f2_text="300")
    assert (center, offset) == (200, 100)
    assert pair is not current


def test_switch_mode_rejects_garbage():
    with pytest.raises(UnparsableInputError):
        switch_mode(DualToneFrequencyPair(), True, center_text="1.5k", offset_text="10")


def test_controller_switch_mode_only_recomputes_on_change(device):
    dual = DualToneController(device, 1)
    assert dual.switch_mode(True, center_text="9") == DualToneFrequencyPair()
    dual.switch_mode(False, f1_text="400", f2_text="600")
    assert not dual.direct_mode
    assert dual.pair.center == 500


def test_synchronized_ratio(device):
    dual = DualToneController(device, 1)
    dual.set_direct(500)
    assert dual.pair.f2 == 1000

    dual.set_synchronized(True, 3.0)
    assert dual.pair.f2 == 1500
    dual.set_direct(200, 999)
    assert dual.pair.f2 == 600

    with pytest.raises(ValidationError):
        dual.set_synchronized(True, 0)


def test_apply_sends_function_then_parameters(recording_transport):
    dual = DualToneController(RigolDG2072(recording_transport), 2)
    assert dual.apply()
    assert recording_transport.sent == [
        "SOURce2:FUNCtion DUALT",
        "SOURce2:FUNCtion:DUALTone:FREQ1 1000.0",
        "SOURce2:FUNCtion:DUALTone:FREQ2 2000.0",
        "SOURce2:VOLTage 1.0",
        "SOURce2:VOLTage:OFFSet 0.0",
        "SOURce2:PHASe 0.0",
    ]


def test_apply_failure_returns_false(device, mock_transport):
    mock_transport.fail_on = ["FREQ2"]
    dual = DualToneController(device, 1)
    assert not dual.apply()


def test_refresh(device, mock_transport):
    mock_transport.channels[1]["FUNCTION:DUALTONE:FREQ1"] = "440"
    mock_transport.channels[1]["FUNCTION:DUALTONE:FREQ2"] = "880"
    dual = DualToneController(device, 1)
    assert dual.refresh()
    assert dual.pair == DualToneFrequencyPair(440.0, 880.0)


def test_refresh_failure_keeps_pair(device, mock_transport):
    mock_transport.fail_on = ["FREQ1?"]
    dual = DualToneController(device, 1)
    assert not dual.refresh()
    assert dual.pair == DualToneFrequencyPair()


def test_display(device):
    dual = DualToneController(device, 1)
    assert dual.display() == {
        "f1": "1000.00 Hz",
        "f2": "2000.00 Hz",
        "center": "1500.00 Hz",
        "offset": "500.0 Hz",
    }
    dual.set_direct(15000, 25000)
    assert dual.display()["f1"] == "15.00 kHz"
