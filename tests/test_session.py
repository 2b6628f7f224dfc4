"""
Tests for the per-channel session: debounced edits, commits and refresh.
"""

import pytest

from awg_control.src.debounce import Debouncer
from awg_control.src.errors import InvalidChannelError
from awg_control.src.harmonics import AmplitudeMode
from awg_control.src.session import ChannelSession


@pytest.fixture
def session(device, config, timer_factory, no_sleep):
    return ChannelSession(device, 1, config, Debouncer(config.debounce_delay, timer_factory), sleep=no_sleep)


def test_burst_of_edits_commits_once(session, mock_transport, timer_factory):
    session.edit("pulse.frequency", "1", "kHz")
    session.edit("pulse.frequency", "10", "kHz")
    assert mock_transport.sent == []

    timer_factory.fire_all()
    freq_commands = [c for c in mock_transport.sent if "FREQuency" in c]
    assert freq_commands == ["SOURce1:FREQuency 10000.0"]
    assert session.pulse.state.period == pytest.approx(1e-4)


def test_edits_to_different_fields_do_not_cancel_each_other(session, timer_factory):
    session.edit("pulse.rise", "30", "ns")
    session.edit("pulse.fall", "40", "ns")
    assert len(timer_factory.live()) == 2
    timer_factory.fire_all()
    assert session.pulse.state.rise_time == pytest.approx(30e-9)
    assert session.pulse.state.fall_time == pytest.approx(40e-9)


def test_unparsable_input_keeps_last_good_value(session, mock_transport):
    assert not session.commit("pulse.width", "12..5")
    assert session.pulse.state.width == pytest.approx(500e-6)
    assert mock_transport.sent == []


def test_invalid_value_is_rejected_with_warning(session, capsys):
    assert not session.commit("pulse.frequency", "0")
    assert "[WARNING]" in capsys.readouterr().out
    assert session.pulse.frequency == pytest.approx(1000)


def test_unknown_field_is_rejected(session):
    assert not session.commit("pulse.duty", "50")
    assert not session.commit("harmonic.9.amplitude", "50")
    assert not session.commit("harmonic.2.colour", "50")


def test_width_edit_is_clamped(session, mock_transport):
    assert session.commit("pulse.width", "2", "ms")
    assert session.pulse.state.width < 1e-3
    assert mock_transport.sent[-1].startswith("SOURce1:PULSe:WIDTh")


def test_fundamental_change_moves_percentage_harmonics(session, device, mock_transport):
    device.set_amplitude(1, 2.0)
    session.harmonics.set_order_enabled(2)
    session.harmonics.set_amplitude(2, 50, AmplitudeMode.PERCENTAGE)
    assert session.harmonics.enable()

    assert session.commit("fundamental.amplitude", "4")
    assert mock_transport.value(1, "HARMONIC:AMPLITUDE 2") == "2.0"
    assert session.display()["fundamental"] == "4.00 V"


def test_fundamental_accepts_rms_units(session, mock_transport):
    assert session.commit("fundamental.amplitude", "1", "Vrms")
    assert float(mock_transport.value(1, "VOLTAGE")) == pytest.approx(2.8284271)
    assert not session.commit("fundamental.amplitude", "-1")


def test_harmonic_edits_while_disabled_are_only_cached(session, mock_transport):
    assert session.commit("harmonic.2.phase", "-90")
    assert session.commit("harmonic.3.amplitude", "25")
    assert session.harmonics.phases[2] == 270
    assert session.harmonics.cache.get(3).percent_of_fundamental == 25
    assert mock_transport.sent == []


def test_absolute_harmonic_edit_uses_voltage_units(session):
    session.harmonics.set_amplitude_mode(AmplitudeMode.ABSOLUTE)
    assert session.commit("harmonic.4.amplitude", "250", "mV")
    assert session.harmonics.cache.get(4).absolute_volts == pytest.approx(0.25)


def test_harmonic_edit_while_enabled_reapplies(session, mock_transport):
    session.harmonics.set_order_enabled(3)
    session.harmonics.enable()
    assert session.commit("harmonic.3.amplitude", "10")
    assert mock_transport.value(1, "HARMONIC:AMPLITUDE 3") == "0.5"


def test_dual_tone_edits(session, mock_transport):
    assert session.commit("dual.offset", "250")
    assert (session.dual_tone.pair.f1, session.dual_tone.pair.f2) == (1250, 1750)
    assert mock_transport.value(1, "FUNCTION") == "DUALT"

    assert session.commit("dual.center", "2", "kHz")
    assert (session.dual_tone.pair.f1, session.dual_tone.pair.f2) == (1750, 2250)

    session.dual_tone.set_synchronized(True)
    assert not session.commit("dual.f2", "5000")
    assert session.commit("dual.f1", "300")
    assert session.dual_tone.pair.f2 == 600


def test_refresh_follows_active_function(session, mock_transport):
    state = mock_transport.channels[1]
    state["FUNCTION"] = "PULS"
    state["PERIOD"] = "0.002"
    state["VOLTAGE"] = "3"
    assert session.refresh()
    assert session.pulse.state.period == pytest.approx(2e-3)
    assert session.harmonics.fundamental == 3.0


def test_refresh_reports_function_query_failure(session, mock_transport):
    mock_transport.fail_on = ["FUNCtion?"]
    assert not session.refresh()


def test_channels_are_isolated(device, config, timer_factory, no_sleep, mock_transport):
    debouncer = Debouncer(config.debounce_delay, timer_factory)
    ch1 = ChannelSession(device, 1, config, debouncer, sleep=no_sleep)
    ch2 = ChannelSession(device, 2, config, debouncer, sleep=no_sleep)

    ch1.edit("pulse.period", "5", "ms")
    ch2.edit("pulse.period", "7", "ms")
    timer_factory.fire_all()
    assert ch1.pulse.state.period == pytest.approx(5e-3)
    assert ch2.pulse.state.period == pytest.approx(7e-3)
    assert float(mock_transport.value(2, "PERIOD")) == pytest.approx(7e-3)
    assert float(mock_transport.value(1, "PERIOD")) == pytest.approx(5e-3)


def test_invalid_channel(device):
    with pytest.raises(InvalidChannelError):
        ChannelSession(device, 3)


def test_close_drops_pending_edits(session, timer_factory, mock_transport):
    session.edit("pulse.width", "10", "us")
    session.close()
    timer_factory.fire_all()
    assert mock_transport.sent == []


def test_pulse_edit_switches_function_and_refresh_reads_it_back(session, mock_transport):
    assert session.commit("pulse.width", "10", "us")
    assert mock_transport.value(1, "FUNCTION") == "PULS"

    mock_transport.channels[1]["PULSE:WIDTH"] = "2e-05"
    assert session.refresh()
    assert session.waveform == "PULS"
    assert session.pulse.state.width == pytest.approx(20e-6)


def test_controllers_share_the_session_lock(session):
    assert session.harmonics._lock is session._lock
    assert session.pulse._lock is session._lock
    assert session.dual_tone._lock is session._lock


def test_selecting_another_family_resets_controllers(session, mock_transport, timer_factory):
    assert session.select_waveform("puls")
    assert session.waveform == "PULS"
    assert mock_transport.value(1, "FUNCTION") == "PULS"
    session.commit("pulse.period", "5", "ms")
    session.harmonics.set_order_enabled(3)
    session.edit("pulse.width", "10", "us")
    pulse = session.pulse

    # Same family again keeps everything
    assert session.select_waveform("PULS")
    assert session.pulse is pulse
    assert len(timer_factory.live()) == 1

    assert session.select_waveform("SQU")
    assert mock_transport.sent[-1] == "SOURce1:FUNCtion SQU"
    assert session.pulse is not pulse
    assert session.pulse.state.period == pytest.approx(1e-3)
    assert session.harmonics.enabled_set.enabled_orders() == []
    assert session.pulse._lock is session._lock
    assert timer_factory.live() == []


def test_select_harmonic_family_runs_apply_sequence(session, mock_transport):
    assert session.select_waveform("HARM")
    assert session.harmonics.is_enabled
    assert mock_transport.value(1, "FUNCTION") == "HARM"


def test_select_waveform_rejects_unknown_family(session, mock_transport):
    with pytest.raises(ValueError):
        session.select_waveform("triangle")
    assert session.waveform is None
    assert mock_transport.sent == []


def test_select_waveform_reports_transport_error(session, mock_transport):
    mock_transport.fail_on = ["FUNCtion"]
    assert not session.select_waveform("NOIS")
