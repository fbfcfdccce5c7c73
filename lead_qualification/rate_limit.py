"""
Per-session message rate limiting.

Sliding-window counter keyed by session id.
"""

import logging
import threading
import time
from typing import Callable, Dict, List, Optional

from .errors import RateLimitExceededError

logger = logging.getLogger(__name__)


class SessionRateLimiter:
    """Sliding-window rate limiter shared by concurrent request handlers."""

    def __init__(
        self,
        max_messages: int = 15,
        window_seconds: int = 60,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.max_messages = max_messages
        self.window_seconds = window_seconds
        self._clock = clock or time.time
        self._requests: Dict[str, List[float]] = {}
        self._lock = threading.Lock()

    def hit(self, session_id: str) -> int:
        """
        Count one message for a session.

        Returns:
            Messages still allowed in the current window

        Raises:
            RateLimitExceededError: If the session is at its limit
        """
        with self._lock:
            now = self._clock()
            window = self._prune(session_id, now)

            if len(window) >= self.max_messages:
                oldest = window[0] if window else now
                retry_after = max(1, int(oldest + self.window_seconds - now + 0.999))
                logger.warning(f"Rate limit exceeded for session {session_id}")
                raise RateLimitExceededError(session_id, retry_after)

            window.append(now)
            self._requests[session_id] = window
            return self.max_messages - len(window)

    def remaining(self, session_id: str) -> int:
        with self._lock:
            window = self._prune(session_id, self._clock())
            return max(0, self.max_messages - len(window))

    def reset(self, session_id: str) -> None:
        with self._lock:
            self._requests.pop(session_id, None)

    def _prune(self, session_id: str, now: float) -> List[float]:
        # Clean old entries; sessions with an empty window are dropped
        window_start = now - self.window_seconds
        window = [t for t in self._requests.get(session_id, ()) if t > window_start]
        if window:
            self._requests[session_id] = window
        else:
            self._requests.pop(session_id, None)
        return window
