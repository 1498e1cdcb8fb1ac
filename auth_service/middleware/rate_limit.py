import threading
import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Dict, List

from fastapi import Request

from auth_service.config import settings
from auth_service.exceptions import RateLimitError
from auth_service.utils.logger import get_logger

logger = get_logger("rate_limit")


@dataclass
class Window:
    started: float
    hits: int


class FixedWindowLimiter:
    """
    Allow at most 'max_hits' per client within each 'window'.
    """
    registry: List["FixedWindowLimiter"] = []

    def __init__(self, name: str, max_hits: int, window: timedelta, message: str):
        self.name = name
        self.max_hits = max_hits
        self.window_seconds = window.total_seconds()
        self.message = message
        self._windows: Dict[str, Window] = {}
        self._last_sweep = time.monotonic()
        self._lock = threading.Lock()
        FixedWindowLimiter.registry.append(self)

    def _sweep(self, now: float) -> None:
        # At most once per window, drop every client whose window has ended
        if now - self._last_sweep < self.window_seconds:
            return
        expired = [key for key, w in self._windows.items() if now - w.started >= self.window_seconds]
        for key in expired:
            del self._windows[key]
        self._last_sweep = now

    def _current(self, key: str, now: float) -> Window:
        self._sweep(now)
        w = self._windows.get(key)
        if w is None or now - w.started >= self.window_seconds:
            w = Window(started=now, hits=0)
            self._windows[key] = w
        return w

    def check(self, key: str) -> None:
        """Raise RateLimitError if the client has used up its window"""
        if not settings.RATE_LIMIT_ENABLED:
            return
        with self._lock:
            w = self._current(key, time.monotonic())
            if w.hits >= self.max_hits:
                retry_after = int(self.window_seconds - (time.monotonic() - w.started)) + 1
                logger.warning(f"Rate limit '{self.name}' exceeded for {key}")
                raise RateLimitError(self.message, details={"retry_after": retry_after})

    def hit(self, key: str) -> None:
        if not settings.RATE_LIMIT_ENABLED:
            return
        with self._lock:
            self._current(key, time.monotonic()).hits += 1

    def consume(self, key: str) -> None:
        """Check and count one request"""
        if not settings.RATE_LIMIT_ENABLED:
            return
        with self._lock:
            w = self._current(key, time.monotonic())
            if w.hits >= self.max_hits:
                logger.warning(f"Rate limit '{self.name}' exceeded for {key}")
                raise RateLimitError(self.message)
            w.hits += 1

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()

    @classmethod
    def reset_all(cls) -> None:
        for limiter in cls.registry:
            limiter.reset()


def client_key(request: Request) -> str:
    return request.client.host if request.client else "unknown"


register_limiter = FixedWindowLimiter(
    "register", 5, timedelta(minutes=15),
    "Too many registration attempts, please try again later",
)
# Only failed attempts are counted
login_limiter = FixedWindowLimiter(
    "login", 10, timedelta(minutes=10),
    "Too many login attempts, please try again later",
)
email_limiter = FixedWindowLimiter(
    "email", 3, timedelta(minutes=1),
    "Too many email requests, please try again later",
)


def limit_register(request: Request) -> None:
    register_limiter.consume(client_key(request))


def limit_email(request: Request) -> None:
    email_limiter.consume(client_key(request))
