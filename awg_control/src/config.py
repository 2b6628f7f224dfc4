"""
Engine configuration.

All timing constants and hardware limits live in one frozen dataclass so that
sessions, managers and transports receive them explicitly. Defaults reflect
the DG2000-series behaviour observed on the bench.
"""

import os
from dataclasses import dataclass, fields, replace

from .terminal import ColorPrinter

ENV_PREFIX = "AWG_CONTROL_"

DEBOUNCE_DELAY = 0.5
SETTLE_PATTERN = 0.05
SETTLE_HARMONIC = 0.03
SETTLE_STATE = 0.1
SETTLE_DEFAULT = 0.05
MIN_PULSE_WIDTH = 20e-9
DISPLAY_LOW = 0.1
DISPLAY_HIGH = 9999.0
VISA_TIMEOUT_MS = 5000


@dataclass(frozen=True)
class EngineConfig:
    debounce_delay: float = DEBOUNCE_DELAY
    settle_pattern: float = SETTLE_PATTERN
    settle_harmonic: float = SETTLE_HARMONIC
    settle_state: float = SETTLE_STATE
    settle_default: float = SETTLE_DEFAULT
    min_pulse_width: float = MIN_PULSE_WIDTH
    display_low: float = DISPLAY_LOW
    display_high: float = DISPLAY_HIGH
    visa_timeout_ms: int = VISA_TIMEOUT_MS

    @classmethod
    def from_env(cls, environ=None):
        """Build a config, overriding defaults from AWG_CONTROL_* variables.

        Malformed values are ignored with a warning.
        """
        environ = os.environ if environ is None else environ
        overrides = {}
        for field in fields(cls):
            key = ENV_PREFIX + field.name.upper()
            if key not in environ:
                continue
            raw = environ[key]
            try:
                overrides[field.name] = field.type(raw) if callable(field.type) else float(raw)
            except (TypeError, ValueError):
                ColorPrinter.warning(f"Ignoring {key}={raw!r}: not a valid {field.name}")
        return replace(cls(), **overrides)


DEFAULT_CONFIG = EngineConfig()
