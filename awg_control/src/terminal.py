"""Terminal utility for colored, level-tagged log output."""

import sys


class ColorPrinter:
    """
    Utility for printing colored log lines to the terminal using ANSI escape codes.

    Every component of the engine logs through this class. Messages below the
    current threshold (see set_level) are dropped.
    """

    # ANSI Color Codes
    HEADER = "\033[95m"
    BLUE = "\033[94m"
    CYAN = "\033[96m"
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    RED = "\033[91m"
    GREY = "\033[90m"
    RESET = "\033[0m"
    BOLD = "\033[1m"

    LEVELS = {"debug": 10, "info": 20, "success": 20, "warning": 30, "error": 40}

    threshold = LEVELS["info"]
    enabled = sys.stdout.isatty()

    @classmethod
    def set_level(cls, level):
        """Set the minimum level that gets printed (debug, info, warning, error)."""
        key = str(level).lower()
        if key not in cls.LEVELS:
            raise ValueError(f"Unknown log level '{level}'. Must be one of: {list(cls.LEVELS)}")
        cls.threshold = cls.LEVELS[key]

    @classmethod
    def _emit(cls, level, color, message):
        if cls.LEVELS[level] < cls.threshold:
            return
        tag = f"[{level.upper()}] {message}"
        if cls.enabled:
            print(f"{color}{tag}{cls.RESET}", flush=True)
        else:
            print(tag, flush=True)

    @classmethod
    def debug(cls, message):
        """Print a debug message in grey (wire traffic, dropped input)."""
        cls._emit("debug", cls.GREY, message)

    @classmethod
    def info(cls, message):
        """Print an informational message in blue."""
        cls._emit("info", cls.BLUE, message)

    @classmethod
    def success(cls, message):
        """Print a success message in green."""
        cls._emit("success", cls.GREEN, message)

    @classmethod
    def warning(cls, message):
        """Print a warning message in yellow."""
        cls._emit("warning", cls.YELLOW, message)

    @classmethod
    def error(cls, message):
        """Print an error message in red."""
        cls._emit("error", cls.RED, message)

    @classmethod
    def header(cls, message):
        """Print a bold section header in magenta."""
        if cls.enabled:
            print(f"\n{cls.HEADER}{cls.BOLD}{'='*60}")
            print(f"   {message.upper()}")
            print(f"{'='*60}{cls.RESET}\n")
        else:
            print(f"\n{'='*60}\n   {message.upper()}\n{'='*60}\n")

    @classmethod
    def cyan(cls, message):
        """Print a plain message in cyan (used for REPL tables)."""
        if cls.enabled:
            print(f"{cls.CYAN}{message}{cls.RESET}")
        else:
            print(message)
