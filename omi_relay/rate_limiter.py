"""Per-user sliding-window rate limiting for the webhook."""

import time
from collections import deque
from dataclasses import asdict, dataclass

from omi_relay.errors import RateLimitExceeded


@dataclass
class RateLimitStatus:
    user_id: str
    limit: int
    window_seconds: float
    used: int
    remaining: int
    reset_in_seconds: float

    def to_dict(self) -> dict:
        return asdict(self)


class RateLimiter:
    """Allows ``max_requests`` hits per user within any ``window_seconds`` span.

    Args:
        max_requests: Hits allowed per window.
        window_seconds: Window length.
        clock: Returns the current time in seconds (``time.monotonic``).
    """

    def __init__(self, max_requests: int = 10, window_seconds: float = 60, clock=time.monotonic):
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._hits: dict[str, deque] = {}

    @classmethod
    def from_config(cls, config: dict) -> "RateLimiter":
        rl = config.get("rate_limit", {})
        return cls(max_requests=rl.get("max_requests", 10), window_seconds=rl.get("window_seconds", 60))

    def __len__(self) -> int:
        return len(self._hits)

    def _prune(self, user_id: str, now: float) -> deque:
        hits = self._hits.get(user_id)
        if hits is None:
            return deque()
        while hits and now - hits[0] >= self.window_seconds:
            hits.popleft()
        # Users whose window has fully expired are forgotten
        if not hits:
            del self._hits[user_id]
        return hits

    def check(self, user_id: str):
        """Record a hit for ``user_id``.

        Raises:
            RateLimitExceeded: when the window is already full. The hit is
                not recorded.
        """
        now = self._clock()
        hits = self._prune(user_id, now)
        if len(hits) >= self.max_requests:
            raise RateLimitExceeded(user_id, retry_after=self.window_seconds - (now - hits[0]))
        hits.append(now)
        self._hits[user_id] = hits

    def status(self, user_id: str) -> RateLimitStatus:
        now = self._clock()
        hits = self._prune(user_id, now)
        reset = self.window_seconds - (now - hits[0]) if hits else 0.0
        return RateLimitStatus(
            user_id=user_id,
            limit=self.max_requests,
            window_seconds=self.window_seconds,
            used=len(hits),
            remaining=max(0, self.max_requests - len(hits)),
            reset_in_seconds=round(reset, 1),
        )
