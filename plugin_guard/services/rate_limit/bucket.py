import logging
import sys
import threading
import time
from typing import Callable, Optional, Tuple

from plugin_guard.models import RateLimitState


class RateLimitBucket:
    """
    Token bucket mirroring the remote service's request quota.

    The server is authoritative: every response carrying quota headers
    overwrites the local state through seed_from_headers(). Between reports
    the bucket refills to ``limit`` once the reset timestamp has passed.
    """

    def __init__(
        self,
        state: Optional[RateLimitState] = None,
        clock: Callable[[], float] = time.time,
    ):
        self._lock = threading.Lock()
        self._clock = clock
        self._state = state.model_copy() if state else RateLimitState()

    def _now(self) -> int:
        return int(self._clock())

    def snapshot(self) -> RateLimitState:
        with self._lock:
            return self._state.model_copy()

    def seed_from_headers(self, limit: int, remaining: int, reset_unix_seconds: int) -> None:
        with self._lock:
            now = self._now()
            state = self._state

            # Window length is only an estimate: time left until the new reset
            # plus time elapsed since the previous report.
            if reset_unix_seconds > now and state.reset_unix_seconds > 0:
                state.window_seconds = (reset_unix_seconds - now) + (
                    now - state.last_update_unix_seconds
                )

            state.limit = limit
            state.tokens = max(0, min(remaining, limit)) if limit > 0 else max(0, remaining)
            state.reset_unix_seconds = reset_unix_seconds
            state.last_update_unix_seconds = now

    def try_consume(self) -> Tuple[bool, int]:
        """Take one token. Returns (allowed, tokens remaining)."""
        with self._lock:
            if self._state.limit <= 0:
                return True, sys.maxsize

            self._refill_if_needed()

            if self._state.tokens <= 0:
                return False, 0

            self._state.tokens -= 1
            return True, self._state.tokens

    def _refill_if_needed(self) -> None:
        state = self._state
        if state.reset_unix_seconds == 0:
            return

        now = self._now()
        if now >= state.reset_unix_seconds:
            state.tokens = state.limit
            state.reset_unix_seconds = now + state.window_seconds
            state.last_update_unix_seconds = now
            logging.debug(
                f"Rate limit window reset: {state.tokens} tokens until {state.reset_unix_seconds}"
            )
