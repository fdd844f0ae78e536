# Time-bounded in-memory windows
# Per-sender chat rate limiting and per-viewer campaign view dedup.
# Both are caches, not sources of truth: losing them on restart is fine.

import time
import logging
from collections import deque
from typing import Callable, Deque, Dict

logger = logging.getLogger(__name__)


class SlidingWindowRateLimiter:
    """Allow at most ``max_events`` per key within any rolling ``window_seconds``."""

    def __init__(self, max_events: int, window_seconds: float, clock: Callable[[], float] = time.monotonic):
        if max_events < 1:
            raise ValueError("max_events must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.max_events = max_events
        self.window_seconds = window_seconds
        self._clock = clock
        self._events: Dict[str, Deque[float]] = {}

    def _prune(self, key: str, now: float) -> Deque[float]:
        events = self._events.get(key)
        if events is None:
            return deque()
        cutoff = now - self.window_seconds
        while events and events[0] <= cutoff:
            events.popleft()
        if not events:
            del self._events[key]
        return events

    def try_acquire(self, key: str) -> bool:
        """Record one event for ``key`` if the window has room."""
        now = self._clock()
        events = self._prune(key, now)
        if len(events) >= self.max_events:
            logger.info(f"Rate limit hit for {key}: {len(events)} events in {self.window_seconds}s")
            return False
        self._events.setdefault(key, events).append(now)
        return True

    def retry_after(self, key: str) -> float:
        """Seconds until ``key`` can acquire again (0 when it already can)."""
        now = self._clock()
        events = self._prune(key, now)
        if len(events) < self.max_events:
            return 0.0
        return max(0.0, events[0] + self.window_seconds - now)

    def remaining(self, key: str) -> int:
        events = self._prune(key, self._clock())
        return max(0, self.max_events - len(events))

    def reset(self, key: str = None):
        if key is None:
            self._events.clear()
        else:
            self._events.pop(key, None)


class ViewDedupCache:
    """Remember (campaign, viewer) pairs for ``ttl_seconds`` so repeat views are not counted."""

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic, max_entries: int = 100_000):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._seen: Dict[str, float] = {}

    def _evict_expired(self, now: float):
        expired = [key for key, expires_at in self._seen.items() if expires_at <= now]
        for key in expired:
            del self._seen[key]

    def first_seen(self, campaign_id: str, viewer_id: str) -> bool:
        """True if this viewer has not been seen for this campaign within the window; records it."""
        now = self._clock()
        key = f"{campaign_id}:{viewer_id}"
        expires_at = self._seen.get(key)
        if expires_at is not None and expires_at > now:
            return False
        # Re-insert so dict order stays expiry order
        self._seen.pop(key, None)
        if len(self._seen) >= self.max_entries:
            self._evict_expired(now)
        while len(self._seen) >= self.max_entries:
            del self._seen[next(iter(self._seen))]
        self._seen[key] = now + self.ttl_seconds
        return True

    def __len__(self):
        return len(self._seen)
