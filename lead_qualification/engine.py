"""
QualificationEngine: service wrapper around the per-turn pipeline.

Adds what the pure core leaves to its caller: settings, one in-flight
turn per session, per-session rate limiting, quick reply usage tracking,
metrics and logging.
"""

import logging
import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence

from config.settings import Settings, get_settings

from . import metrics
from .attribute_extractor import AttributeExtractor
from .context_analyzer import ContextAnalysis, analyze_context
from .errors import RateLimitExceededError
from .pipeline import TurnResult, run_turn
from .qualification_scorer import QualificationScorer
from .quick_replies import ReplyAction, generate_dynamic_replies, get_reply_action
from .rate_limit import SessionRateLimiter
from .recommendation_engine import generate_recommendations
from .schemas import state_from_dict, state_to_dict
from .stage_machine import transition_to
from .state import ConversationState
from .state_reducer import initialize
from .summary import build_summary_data
from .usage_store import InMemoryReplyUsageStore, ReplyUsageStore, reply_analytics

logger = logging.getLogger(__name__)


class _SessionLock:
    """A session's lock plus the number of turns holding or waiting on it."""

    def __init__(self):
        self.lock = threading.Lock()
        self.users = 0


class QualificationEngine:
    """
    Runs qualification turns for many sessions.

    The engine keeps no conversation state of its own: callers load the
    state, pass it in, and persist the state returned in the TurnResult.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        usage_store: Optional[ReplyUsageStore] = None,
        rate_limiter: Optional[SessionRateLimiter] = None,
        extractor: Optional[AttributeExtractor] = None,
    ):
        self.settings = settings or get_settings()
        self.scorer = QualificationScorer(
            qualification_threshold=self.settings.qualification_threshold,
            hot_threshold=self.settings.lead_tier_hot_threshold,
            warm_threshold=self.settings.lead_tier_warm_threshold,
        )
        self.extractor = extractor or AttributeExtractor()
        self.usage_store = usage_store or InMemoryReplyUsageStore()
        self.rate_limiter = rate_limiter or SessionRateLimiter(
            max_messages=self.settings.rate_limit_messages,
            window_seconds=self.settings.rate_limit_window_seconds,
        )
        self._session_locks: Dict[str, _SessionLock] = {}
        self._locks_guard = threading.Lock()

    @contextmanager
    def session_lock(self, session_id: str) -> Iterator[None]:
        """
        Serialize turns of one session.

        A session's lock lives only while some turn holds or waits on it.
        """
        with self._locks_guard:
            entry = self._session_locks.get(session_id)
            if entry is None:
                entry = self._session_locks[session_id] = _SessionLock()
            entry.users += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._locks_guard:
                entry.users -= 1
                if entry.users == 0:
                    del self._session_locks[session_id]

    def start_session(
        self,
        seed: Optional[Mapping[str, Any]] = None,
        now: Optional[datetime] = None,
    ) -> ConversationState:
        state = initialize(seed, now=now)
        logger.info(
            f"Started session {state.context.session_id}",
            extra={
                "session_id": state.context.session_id,
                "seeded_fields": list(state.collected_fields),
            },
        )
        return state

    def process_turn(
        self,
        session_id: str,
        state: ConversationState,
        utterance: str,
        now: Optional[datetime] = None,
    ) -> TurnResult:
        """
        Run one user turn for a session.

        Raises:
            RateLimitExceededError: If the session sent too many messages
                within the rate limit window
        """
        with self.session_lock(session_id):
            try:
                self.rate_limiter.hit(session_id)
            except RateLimitExceededError:
                if self.settings.enable_metrics:
                    metrics.record_rate_limit_rejection()
                raise

            result = run_turn(
                state,
                utterance,
                now=now,
                extractor=self.extractor,
                scorer=self.scorer,
                quick_reply_limit=self.settings.quick_reply_limit,
            )

        if self.settings.enable_metrics:
            self._record_metrics(result)

        logger.info(
            f"Session {session_id}: {result.state.stage.value} -> {result.action.type.value}",
            extra={
                "session_id": session_id,
                "stage": result.state.stage.value,
                "action": result.action.type.value,
                "score": result.qualification.score,
                "tier": result.qualification.tier.value,
                "extracted": sorted(result.extracted),
            },
        )
        return result

    def _record_metrics(self, result: TurnResult):
        metrics.record_action(result.action.type.value)
        metrics.record_qualification_score(result.qualification.score)
        if result.transitioned:
            from_stage, to_stage = result.transitioned
            metrics.record_stage_transition(from_stage.value, to_stage.value)
        for warning in result.warnings:
            metrics.record_validation_warning(warning.field)

    def complete_session(self, state: ConversationState, now: Optional[datetime] = None) -> ConversationState:
        """Close a conversation that has reached the summary stage."""
        completed = transition_to(state, "complete", now=now)
        if self.settings.enable_metrics:
            metrics.record_stage_transition(state.stage.value, completed.stage.value)
        return completed

    def select_quick_reply(self, session_id: str, reply: str) -> ReplyAction:
        """Track a quick reply selection and return the action it maps to."""
        count = self.usage_store.record(session_id, reply)
        action = get_reply_action(reply)

        logger.info(
            "Quick reply selected",
            extra={"session_id": session_id, "reply": reply, "count": count},
        )
        if self.settings.enable_metrics:
            metrics.record_quick_reply(action.type.value)
        return action

    def reply_analytics(self) -> Dict[str, Any]:
        return reply_analytics(self.usage_store)

    def suggest_replies(
        self,
        state: ConversationState,
        history: Sequence[Mapping[str, Any]],
    ) -> List[str]:
        """Context-aware quick replies over the recent history window."""
        recent = list(history)[-self.settings.history_window:]
        return generate_dynamic_replies(state, recent, limit=self.settings.quick_reply_limit)

    def analyze(self, history: Sequence[Mapping[str, Any]]) -> ContextAnalysis:
        if not isinstance(history, (list, tuple)):
            return analyze_context(history)
        return analyze_context(list(history)[-self.settings.history_window:])

    def summary_data(self, state: ConversationState, message_count: int = 0) -> Dict[str, Any]:
        recommendations = generate_recommendations(state.business_needs, state.organization_type)
        return build_summary_data(state, recommendations, message_count)

    @staticmethod
    def load_state(data: Any) -> ConversationState:
        return state_from_dict(data)

    @staticmethod
    def dump_state(state: ConversationState) -> Dict[str, Any]:
        return state_to_dict(state)
