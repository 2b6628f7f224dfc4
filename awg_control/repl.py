#!/usr/bin/env python3
"""
Interactive REPL for the Rigol DG2072 harmonic, pulse and dual-tone engine.

Use to build harmonic waveforms, pulse trains and dual-tone signals on either
channel, and to inspect what the instrument is actually doing.
"""

import cmd
import shlex
import sys
import time
from typing import Dict, Optional

from awg_control.src.config import EngineConfig
from awg_control.src.device_manager import VisaTransport
from awg_control.src.errors import AwgControlError, TransportError
from awg_control.src.harmonics import AmplitudeMode, HARMONIC_ORDERS
from awg_control.src.rigol_dg2072 import RigolDG2072
from awg_control.src.session import ChannelSession
from awg_control.src.terminal import ColorPrinter
from awg_control.src.unit_scaler import format_min_decimals, parse_number


HARM_MODE_ALIASES = {
    "pct": AmplitudeMode.PERCENTAGE,
    "percent": AmplitudeMode.PERCENTAGE,
    "%": AmplitudeMode.PERCENTAGE,
    "abs": AmplitudeMode.ABSOLUTE,
    "absolute": AmplitudeMode.ABSOLUTE,
    "v": AmplitudeMode.ABSOLUTE,
}

PULSE_FIELDS = {
    "freq": "pulse.frequency",
    "frequency": "pulse.frequency",
    "period": "pulse.period",
    "per": "pulse.period",
    "width": "pulse.width",
    "rise": "pulse.rise",
    "fall": "pulse.fall",
}

DUAL_FIELDS = {
    "f1": "dual.f1",
    "f2": "dual.f2",
    "center": "dual.center",
    "offset": "dual.offset",
}


class AwgRepl(cmd.Cmd):
    intro = "DG2072 control REPL. Type 'help' for commands."
    prompt = "awg[1]> "

    def __init__(self, device, config: Optional[EngineConfig] = None, sleep=time.sleep):
        super().__init__()
        self.device = device
        self.config = config or EngineConfig.from_env()
        self.sessions: Dict[int, ChannelSession] = {
            ch: ChannelSession(device, ch, self.config, sleep=sleep) for ch in device.CHANNEL_MAP
        }
        self.channel = 1

    @property
    def session(self) -> ChannelSession:
        return self.sessions[self.channel]

    def _set_channel(self, channel):
        self.channel = channel
        self.prompt = f"awg[{channel}]> "

    # --------------------------
    # Helpers
    # --------------------------
    def _parse_args(self, arg):
        try:
            return shlex.split(arg)
        except ValueError as exc:
            ColorPrinter.error(f"Parse error: {exc}")
            return []

    def _is_help(self, args):
        if not args:
            return False
        return args[-1].lower() in ("help", "-h", "--help")

    def _strip_help(self, args):
        if self._is_help(args):
            return args[:-1], True
        return args, False

    def _print_colored_usage(self, lines):
        """Print colorful usage help for a command."""
        for line in lines:
            if line.strip().startswith("#"):
                ColorPrinter.header(line.strip("# ").strip())
            elif line.strip().startswith("-"):
                print(f"{ColorPrinter.YELLOW}{line}{ColorPrinter.RESET}")
            elif line.strip() and not line.startswith(" "):
                parts = line.split(" ", 1)
                rest = parts[1] if len(parts) == 2 else ""
                print(f"{ColorPrinter.CYAN}{parts[0]}{ColorPrinter.RESET} {rest}")
            else:
                print(line)

    def _parse_on_off(self, token):
        value = token.lower()
        if value in ("on", "1", "true"):
            return True
        if value in ("off", "0", "false"):
            return False
        ColorPrinter.error(f"Expected on|off, got '{token}'")
        return None

    def _parse_order(self, token):
        try:
            order = int(token)
        except ValueError:
            order = None
        if order not in HARMONIC_ORDERS:
            ColorPrinter.error(f"Harmonic order must be between 2 and 8, got '{token}'")
            return None
        return order

    def _commit(self, field, args):
        """Commit `<value> [unit]` for a session field."""
        if not args:
            ColorPrinter.error(f"Missing value for {field}")
            return False
        unit = args[1] if len(args) > 1 else None
        return self.session.commit(field, args[0], unit)

    def emptyline(self):
        return False

    def onecmd(self, line):
        try:
            return super().onecmd(line)
        except AwgControlError as exc:
            ColorPrinter.error(str(exc))
            return False

    # --------------------------
    # General commands
    # --------------------------
    def do_chan(self, arg):
        "chan [1|2] [on|off]: select the active channel and/or switch its output"
        args = self._parse_args(arg)
        args, help_flag = self._strip_help(args)
        if help_flag:
            self._print_colored_usage(
                [
                    "chan [1|2] [on|off]",
                    "  - example: chan 2",
                    "  - example: chan 1 on",
                ]
            )
            return
        if not args:
            ColorPrinter.cyan(f"Active channel: CH{self.channel}")
            return
        channel_str = args[0].lower().replace("ch", "")
        if channel_str not in ("1", "2"):
            ColorPrinter.error("Channel must be '1', '2', 'ch1', or 'ch2'")
            return
        self._set_channel(int(channel_str))
        if len(args) > 1:
            state = self._parse_on_off(args[1])
            if state is None:
                return
            try:
                self.device.enable_output(self.channel, state)
            except TransportError as exc:
                ColorPrinter.error(str(exc))
                return
            ColorPrinter.success(f"CH{self.channel}: {'on' if state else 'off'}")

    def do_func(self, arg):
        "func <family>: select the waveform family of the active channel"
        args = self._parse_args(arg)
        args, help_flag = self._strip_help(args)
        if not args or help_flag:
            families = " ".join(sorted(self.device.VALID_WAVEFORMS))
            self._print_colored_usage(
                [
                    "func <family>",
                    f"  - family: {families}",
                    "  - a different family starts harmonic, pulse and dual tone state fresh",
                    "  - HARM, PULS and DUALT also apply the engine's current settings",
                    "  - example: func puls",
                ]
            )
            if not args:
                ColorPrinter.cyan(f"CH{self.channel} function: {self.session.waveform or 'unknown'}")
            return
        if self.session.select_waveform(args[0]):
            ColorPrinter.success(f"CH{self.channel}: {self.session.waveform}")

    def do_fund(self, arg):
        "fund <amplitude> [Vpp|mVpp|Vrms|mVrms]: set the fundamental amplitude"
        args = self._parse_args(arg)
        args, help_flag = self._strip_help(args)
        if not args or help_flag:
            self._print_colored_usage(
                [
                    "fund <amplitude> [unit]",
                    "  - unit: Vpp (default), mVpp, Vrms, mVrms",
                    "  - in percentage mode, enabled harmonics follow the new amplitude",
                    "  - example: fund 4",
                    "  - example: fund 707 mVrms",
                ]
            )
            return
        if self._commit("fundamental.amplitude", args):
            ColorPrinter.success(f"CH{self.channel}: fundamental {self.session.display()['fundamental']}")

    def do_harm(self, arg):
        "harm <cmd>: harmonic waveform control (on, off, set, phase, enable, disable, mode, show)"
        args = self._parse_args(arg)
        args, help_flag = self._strip_help(args)
        if not args or help_flag:
            self._print_colored_usage(
                [
                    "# HARMONIC COMMANDS",
                    "",
                    "harm on|off",
                    "harm enable <order> [order ...]",
                    "harm disable <order> [order ...]",
                    "harm set <order> <amplitude> [V|mV|µV]",
                    "harm phase <order> <deg>",
                    "harm mode pct|abs",
                    "harm show",
                    "  - orders are 2..8; the fundamental is always present",
                    "  - in pct mode amplitudes are % of the fundamental",
                    "  - example: harm enable 2 3",
                    "  - example: harm set 2 50",
                ]
            )
            return

        manager = self.session.harmonics
        cmd_name = args[0].lower()

        if cmd_name == "on":
            manager.enable()
        elif cmd_name == "off":
            manager.disable()
        elif cmd_name in ("enable", "disable") and len(args) >= 2:
            orders = [self._parse_order(token) for token in args[1:]]
            if None in orders:
                return
            for order in orders:
                manager.set_order_enabled(order, cmd_name == "enable")
            if manager.is_enabled:
                manager.apply_sequence()
            else:
                ColorPrinter.info(f"CH{self.channel}: harmonics {manager.enabled_set.enabled_orders()} selected")
        elif cmd_name == "set" and len(args) >= 3:
            order = self._parse_order(args[1])
            if order is not None:
                self._commit(f"harmonic.{order}.amplitude", args[2:])
        elif cmd_name == "phase" and len(args) >= 3:
            order = self._parse_order(args[1])
            if order is not None:
                self._commit(f"harmonic.{order}.phase", args[2:])
        elif cmd_name == "mode" and len(args) >= 2:
            mode = HARM_MODE_ALIASES.get(args[1].lower())
            if mode is None:
                ColorPrinter.error(f"Mode must be one of: {sorted(HARM_MODE_ALIASES)}")
                return
            manager.set_amplitude_mode(mode)
        elif cmd_name == "show":
            self._show_harmonics()
        else:
            ColorPrinter.warning(f"Unknown harm command: {arg}. Type 'harm' for usage.")

    def _show_harmonics(self):
        manager = self.session.harmonics
        state = "ON" if manager.is_enabled else "OFF"
        ColorPrinter.cyan(f"CH{self.channel} harmonics {state} ({manager.amplitude_mode.value})")
        for order, enabled, text, unit, phase in manager.summary():
            mark = "x" if enabled else " "
            ColorPrinter.cyan(f"  [{mark}] H{order}  {text:>10} {unit:<3}  {format_min_decimals(phase, 1):>6} deg")

    def do_pulse(self, arg):
        "pulse <cmd>: pulse timing (freq, period, width, rise, fall, show)"
        args = self._parse_args(arg)
        args, help_flag = self._strip_help(args)
        if not args or help_flag:
            self._print_colored_usage(
                [
                    "# PULSE COMMANDS",
                    "",
                    "pulse freq <value> [µHz|mHz|Hz|kHz|MHz]",
                    "pulse period <value> [ps|ns|µs|ms|s]",
                    "pulse width <value> [ps|ns|µs|ms|s]",
                    "pulse rise <value> [ps|ns|µs|ms|s]",
                    "pulse fall <value> [ps|ns|µs|ms|s]",
                    "pulse show",
                    "  - freq/period choose which one is controlled; the other is derived",
                    "  - width is clamped to 0.9 * (period - 0.7 * (rise + fall))",
                    "  - example: pulse freq 10 kHz",
                    "  - example: pulse width 25 us",
                ]
            )
            return
        cmd_name = args[0].lower()
        if cmd_name in PULSE_FIELDS:
            self._commit(PULSE_FIELDS[cmd_name], args[1:])
        elif cmd_name == "show":
            self._show_pulse()
        else:
            ColorPrinter.warning(f"Unknown pulse command: {arg}. Type 'pulse' for usage.")

    def _show_pulse(self):
        shown = self.session.display()
        ColorPrinter.cyan(f"CH{self.channel} pulse ({shown['rate_mode']} controlled)")
        for name, text in shown["pulse"].items():
            ColorPrinter.cyan(f"  {name:<10} {text}")
        ColorPrinter.cyan(f"  {'duty':<10} {shown['duty_cycle']} %")

    def do_dual(self, arg):
        "dual <cmd>: dual-tone control (f1, f2, center, offset, sync, mode, show)"
        args = self._parse_args(arg)
        args, help_flag = self._strip_help(args)
        if not args or help_flag:
            self._print_colored_usage(
                [
                    "# DUAL TONE COMMANDS",
                    "",
                    "dual f1 <value> [unit]",
                    "dual f2 <value> [unit]",
                    "dual center <value> [unit]",
                    "dual offset <value> [unit]",
                    "dual sync on|off [ratio]",
                    "dual mode direct|center",
                    "dual show",
                    "  - offset is half the distance between the tones",
                    "  - with sync on, F2 = F1 * ratio (default 2)",
                    "  - example: dual center 1.5 kHz",
                ]
            )
            return
        controller = self.session.dual_tone
        cmd_name = args[0].lower()
        if cmd_name in DUAL_FIELDS:
            self._commit(DUAL_FIELDS[cmd_name], args[1:])
        elif cmd_name == "sync" and len(args) >= 2:
            state = self._parse_on_off(args[1])
            if state is None:
                return
            ratio = parse_number(args[2]) if len(args) > 2 else None
            controller.set_synchronized(state, ratio)
            if state:
                controller.apply()
        elif cmd_name == "mode" and len(args) >= 2:
            target = args[1].lower()
            if target not in ("direct", "center"):
                ColorPrinter.error("Mode must be 'direct' or 'center'")
                return
            controller.switch_mode(target == "direct")
            ColorPrinter.info(f"CH{self.channel}: dual tone entry mode {target}")
        elif cmd_name == "show":
            self._show_dual()
        else:
            ColorPrinter.warning(f"Unknown dual command: {arg}. Type 'dual' for usage.")

    def _show_dual(self):
        controller = self.session.dual_tone
        mode = "direct" if controller.direct_mode else "center/offset"
        sync = f", sync x{controller.ratio}" if controller.synchronized else ""
        ColorPrinter.cyan(f"CH{self.channel} dual tone ({mode}{sync})")
        for name, text in controller.display().items():
            ColorPrinter.cyan(f"  {name:<8} {text}")

    def do_refresh(self, arg):
        "refresh [all]: re-read the active channel (or both) from the instrument"
        args = self._parse_args(arg)
        channels = list(self.sessions) if args and args[0].lower() == "all" else [self.channel]
        for channel in channels:
            if self.sessions[channel].refresh():
                ColorPrinter.success(f"CH{channel}: refreshed")

    def do_show(self, arg):
        "show: print everything the engine knows about the active channel"
        shown = self.session.display()
        ColorPrinter.cyan(f"CH{self.channel} {shown['waveform']}, fundamental {shown['fundamental']}")
        self._show_harmonics()
        self._show_pulse()
        self._show_dual()

    def do_raw(self, arg):
        "raw <scpi>: send raw SCPI; if ends with ?, query and print"
        args = self._parse_args(arg)
        args, help_flag = self._strip_help(args)
        if not args or help_flag:
            self._print_colored_usage(
                [
                    "raw <scpi>",
                    "  - example: raw *IDN?",
                    "  - example: raw SOURce1:HARMonic:USER?",
                ]
            )
            return
        cmd_str = " ".join(args)
        try:
            if cmd_str.strip().endswith("?"):
                ColorPrinter.cyan(self.device.query(cmd_str))
            else:
                self.device.send_command(cmd_str)
        except TransportError as exc:
            ColorPrinter.error(str(exc))

    def do_level(self, arg):
        "level [debug|info|warning|error]: show or set log verbosity"
        args = self._parse_args(arg)
        if not args:
            current = [name for name, value in ColorPrinter.LEVELS.items() if value == ColorPrinter.threshold]
            ColorPrinter.cyan(f"Log level: {current[0]}")
            return
        try:
            ColorPrinter.set_level(args[0])
        except ValueError as exc:
            ColorPrinter.error(str(exc))

    def do_exit(self, arg):
        "exit: quit the REPL"
        return True

    def do_quit(self, arg):
        "quit: quit the REPL"
        return True

    def do_EOF(self, arg):
        print()
        return True

    def do_help(self, arg):
        "help [command]: show help for a command, or list all commands"
        if arg:
            try:
                doc = getattr(self, f"do_{arg}").__doc__
            except AttributeError:
                doc = None
            if doc:
                print(f"{ColorPrinter.CYAN}{doc.strip()}{ColorPrinter.RESET}")
            else:
                ColorPrinter.warning(f"No help for '{arg}'.")
            return

        C = ColorPrinter.CYAN
        Y = ColorPrinter.YELLOW
        B = ColorPrinter.BOLD
        R = ColorPrinter.RESET

        def section(title):
            print(f"\n{Y}{B}{title}{R}")

        def cmd_line(name, desc):
            print(f"  {C}{name:<12}{R} {desc}")

        print(f"{B}DG2072 control REPL{R}  -  type {C}help <command>{R} for details\n")

        section("GENERAL")
        cmd_line("chan", "select channel / switch output  (chan 2 on)")
        cmd_line("refresh", "re-read state from the instrument")
        cmd_line("show", "show the engine state of the active channel")
        cmd_line("raw", "send raw SCPI command or query")
        cmd_line("level", "set log verbosity")
        cmd_line("exit", "quit the REPL")

        section("WAVEFORMS")
        cmd_line("func", "waveform family  (sin, squ, ramp, puls, harm, dualt, ...)")
        cmd_line("fund", "fundamental amplitude")
        cmd_line("harm", "harmonics  (on, off, enable, disable, set, phase, mode, show)")
        cmd_line("pulse", "pulse timing  (freq, period, width, rise, fall, show)")
        cmd_line("dual", "dual tone  (f1, f2, center, offset, sync, mode, show)")

        print()

    def close(self):
        for session in self.sessions.values():
            session.close()


def main():
    args = sys.argv[1:]
    config = EngineConfig.from_env()

    if "--mock" in args:
        args = [a for a in args if a != "--mock"]
        from awg_control import mock_instruments

        transport = mock_instruments.get_mock_devices()["awg"]
    elif args:
        transport = VisaTransport(args[0], timeout_ms=config.visa_timeout_ms)
    else:
        ColorPrinter.error("Usage: awg-control <VISA resource> | --mock")
        sys.exit(2)

    try:
        transport.connect()
    except TransportError:
        sys.exit(1)

    device = RigolDG2072(transport)
    repl = AwgRepl(device, config)
    try:
        repl.cmdloop()
    finally:
        repl.close()
        transport.disconnect()


if __name__ == "__main__":
    main()
