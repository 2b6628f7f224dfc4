"""Per-key debouncing of user edits."""

import threading
from typing import Callable, Dict

from .config import DEBOUNCE_DELAY
from .terminal import ColorPrinter


class Debouncer:
    """
    Coalesces bursts of edits into one action per key.

    schedule(key, action) cancels whatever is pending under `key` and arms a
    new one-shot timer. Only the action that survives until its timer fires
    runs; earlier ones are dropped, not queued. Keys never share timers.

    `timer_factory` takes (delay, callback) and returns an object with
    start() and cancel(); threading.Timer by default.
    """

    def __init__(self, delay: float = DEBOUNCE_DELAY, timer_factory=threading.Timer):
        self.delay = delay
        self._timer_factory = timer_factory
        self._timers: Dict[str, object] = {}
        self._lock = threading.Lock()

    def schedule(self, key: str, action: Callable[[], None], delay: float = None):
        delay = self.delay if delay is None else delay
        with self._lock:
            pending = self._timers.pop(key, None)
            if pending is not None:
                pending.cancel()
            timer = self._timer_factory(delay, lambda: self._fire(key, timer, action))
            if hasattr(timer, "daemon"):
                timer.daemon = True
            self._timers[key] = timer
        timer.start()

    def _fire(self, key, timer, action):
        with self._lock:
            if self._timers.get(key) is not timer:
                return
            del self._timers[key]
        try:
            action()
        except Exception as exc:
            ColorPrinter.error(f"Debounced action '{key}' failed: {exc}")

    def cancel(self, key: str) -> bool:
        with self._lock:
            pending = self._timers.pop(key, None)
        if pending is None:
            return False
        pending.cancel()
        return True

    def cancel_all(self):
        with self._lock:
            pending = list(self._timers.values())
            self._timers.clear()
        for timer in pending:
            timer.cancel()

    def pending(self, key: str) -> bool:
        with self._lock:
            return key in self._timers
