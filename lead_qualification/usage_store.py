"""
ReplyUsageStore protocol for quick reply analytics.

Abstracts usage storage so the engine can work with an in-memory
counter or an external backend.
"""

import threading
from collections import Counter, defaultdict
from typing import Any, Dict, List, Protocol, Tuple, runtime_checkable

MOST_USED_LIMIT = 10
ENGAGED_SESSION_REPLIES = 3


@runtime_checkable
class ReplyUsageStore(Protocol):
    """Protocol for quick reply usage persistence."""

    def record(self, session_id: str, reply: str) -> int:
        """Count one selection of a reply; returns the new count for the pair."""
        ...

    def counts(self) -> Dict[Tuple[str, str], int]:
        """Selection counts keyed by (session_id, reply)."""
        ...

    def clear(self) -> None:
        """Forget all recorded usage."""
        ...


class InMemoryReplyUsageStore:
    """Process-local usage store guarded by a lock."""

    def __init__(self):
        self._counts: Dict[Tuple[str, str], int] = defaultdict(int)
        self._lock = threading.Lock()

    def record(self, session_id: str, reply: str) -> int:
        with self._lock:
            self._counts[(session_id, reply)] += 1
            return self._counts[(session_id, reply)]

    def counts(self) -> Dict[Tuple[str, str], int]:
        with self._lock:
            return dict(self._counts)

    def clear(self) -> None:
        with self._lock:
            self._counts.clear()


def reply_analytics(store: ReplyUsageStore) -> Dict[str, Any]:
    """
    Summarize quick reply usage.

    Returns:
        mostUsed: top replies by total selections
        avgRepliesPerSession: distinct replies selected per session
        conversionRate: percent of sessions that selected more than three
            distinct replies
    """
    counts = store.counts()

    totals: Counter = Counter()
    per_session: Dict[str, int] = defaultdict(int)
    for (session_id, reply), count in counts.items():
        totals[reply] += count
        per_session[session_id] += 1

    # Ties keep first-recorded order
    most_used: List[Dict[str, Any]] = [
        {"reply": reply, "count": count}
        for reply, count in sorted(totals.items(), key=lambda item: -item[1])[:MOST_USED_LIMIT]
    ]

    analytics: Dict[str, Any] = {
        "mostUsed": most_used,
        "avgRepliesPerSession": 0.0,
        "conversionRate": 0.0,
    }
    if per_session:
        analytics["avgRepliesPerSession"] = sum(per_session.values()) / len(per_session)
        engaged = sum(1 for n in per_session.values() if n > ENGAGED_SESSION_REPLIES)
        analytics["conversionRate"] = engaged / len(per_session) * 100
    return analytics
