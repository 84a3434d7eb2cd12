"""
Per-request deadline checked at every store and publish boundary.
"""
from typing import Callable, Optional
import time


class DeadlineExceeded(Exception):
    def __init__(self, stage: str):
        super().__init__(f"deadline exceeded before {stage}")
        self.stage = stage


class Deadline:
    def __init__(self, seconds: Optional[float] = None, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._expires_at = None if seconds is None else clock() + seconds

    @classmethod
    def from_request(cls, default_seconds: float, header_ms: Optional[str] = None,
                     clock: Callable[[], float] = time.monotonic) -> "Deadline":
        """
        Build a deadline from the configured timeout, shortened by an
        ``X-Request-Timeout-Ms`` header when the caller sends a smaller one.
        """
        seconds = default_seconds
        if header_ms:
            try:
                requested = int(header_ms) / 1000.0
            except ValueError:
                requested = None
            if requested is not None and requested >= 0:
                seconds = min(seconds, requested)
        return cls(seconds, clock=clock)

    def remaining(self) -> Optional[float]:
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - self._clock())

    def expired(self) -> bool:
        return self._expires_at is not None and self._clock() >= self._expires_at

    def check(self, stage: str) -> None:
        if self.expired():
            raise DeadlineExceeded(stage)
