"""Login attempt throttling.

Fixed-window counters: an identifier may make ``max_attempts`` calls per
window; the window restarts on the first call after it elapses. A burst that
straddles a window boundary can therefore reach ``2 * max_attempts``.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass

DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_WINDOW_SECONDS = 15 * 60


@dataclass
class _Window:
    count: int
    reset_at: float


class LoginThrottle:
    """Storage-agnostic throttle interface used by the login route."""

    def check(self, identifier: str) -> bool:
        raise NotImplementedError

    def cleanup(self) -> int:
        raise NotImplementedError


class MemoryLoginThrottle(LoginThrottle):
    """Process-local throttle. State does not survive restarts or span workers."""

    def __init__(
        self,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        clock=time.time,
    ):
        self.max_attempts = max_attempts
        self.window_seconds = window_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._windows: dict[str, _Window] = {}

    def init_app(self, app) -> None:
        self.configure(
            max_attempts=app.config["LOGIN_MAX_ATTEMPTS"],
            window_seconds=app.config["LOGIN_WINDOW_MINUTES"] * 60,
        )
        app.extensions["login_throttle"] = self

    def configure(self, max_attempts: int, window_seconds: float) -> None:
        with self._lock:
            self.max_attempts = max_attempts
            self.window_seconds = window_seconds
            self._windows.clear()

    def check(self, identifier: str) -> bool:
        now = self._clock()
        with self._lock:
            window = self._windows.get(identifier)
            if window is None or now > window.reset_at:
                window = _Window(count=0, reset_at=now + self.window_seconds)
                self._windows[identifier] = window
            if window.count >= self.max_attempts:
                return False
            window.count += 1
            return True

    def cleanup(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [key for key, w in self._windows.items() if now > w.reset_at]
            for key in expired:
                del self._windows[key]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._windows)
