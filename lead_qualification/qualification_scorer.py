"""
Qualification Scoring for the lead qualification engine.

Rule-based scoring of a conversation state into a normalized [0, 1]
score, a follow-up priority and a lead tier.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .state import Attribute, ConversationState, Priority, REQUIRED_FIELDS, is_present

logger = logging.getLogger(__name__)


class LeadTier(str, Enum):
    """Lead temperature derived from the qualification score."""
    HOT = "hot"      # Score >= hot threshold
    WARM = "warm"    # Score >= warm threshold
    COLD = "cold"    # Below warm threshold


@dataclass(frozen=True)
class QualificationResult:
    """Qualification verdict for a conversation state."""
    is_qualified: bool
    score: float
    reasons: Tuple[str, ...]
    priority: Priority
    tier: LeadTier

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isQualified": self.is_qualified,
            "score": self.score,
            "reasons": list(self.reasons),
            "priority": self.priority.value,
            "tier": self.tier.value,
        }


class QualificationScorer:
    """
    Scores a conversation state.

    Scoring Rules:
    - Base: required fields collected / 4 (email, organization type,
      business needs, timeline)
    - Fewer than 2 required fields: flat 0.2, reason incomplete_data
    - Budget 50000+: +0.3, high_budget, priority high
    - Budget 10000-25000: +0.2, budget_adequate
    - Timeline immediate/urgent: +0.2, timeline_urgent, priority high
    - Timeline 1-3 months: +0.1, timeline_urgent
    - Enterprise: +0.2, priority high
    - More than 2 business needs: +0.1, multiple_needs

    The 25000-50000 budget bracket earns no bonus.
    """

    SCORING_RULES = {
        "high_budget": 0.3,
        "budget_adequate": 0.2,
        "timeline_immediate": 0.2,
        "timeline_near_term": 0.1,
        "enterprise": 0.2,
        "multiple_needs": 0.1,
    }

    INCOMPLETE_SCORE = 0.2
    MIN_REQUIRED_FIELDS = 2
    MULTIPLE_NEEDS_MIN = 3

    # Thresholds
    QUALIFICATION_THRESHOLD = 0.6
    HOT_THRESHOLD = 0.8
    WARM_THRESHOLD = 0.5

    def __init__(
        self,
        qualification_threshold: Optional[float] = None,
        hot_threshold: Optional[float] = None,
        warm_threshold: Optional[float] = None,
    ):
        self.qualification_threshold = (
            self.QUALIFICATION_THRESHOLD if qualification_threshold is None else qualification_threshold
        )
        self.hot_threshold = self.HOT_THRESHOLD if hot_threshold is None else hot_threshold
        self.warm_threshold = self.WARM_THRESHOLD if warm_threshold is None else warm_threshold

    def evaluate(self, state: ConversationState) -> QualificationResult:
        """
        Score a conversation state.

        Args:
            state: Conversation state to evaluate

        Returns:
            QualificationResult with score, reasons, priority and tier
        """
        collected = state.collected
        required_collected = sum(1 for name in REQUIRED_FIELDS if is_present(collected.get(name)))

        if required_collected < self.MIN_REQUIRED_FIELDS:
            return self._result(self.INCOMPLETE_SCORE, ["incomplete_data"], Priority.MEDIUM)

        score = required_collected / len(REQUIRED_FIELDS)
        reasons: List[str] = []
        priority = Priority.MEDIUM

        budget = collected.get(Attribute.BUDGET.value)
        if budget == "50000+":
            score += self.SCORING_RULES["high_budget"]
            reasons.append("high_budget")
            priority = Priority.HIGH
        elif budget == "10000-25000":
            score += self.SCORING_RULES["budget_adequate"]
            reasons.append("budget_adequate")

        timeline = (collected.get(Attribute.TIMELINE.value) or "").lower()
        if "immediate" in timeline or "urgent" in timeline:
            score += self.SCORING_RULES["timeline_immediate"]
            reasons.append("timeline_urgent")
            priority = Priority.HIGH
        elif timeline == "1-3 months":
            score += self.SCORING_RULES["timeline_near_term"]
            reasons.append("timeline_urgent")

        if collected.get(Attribute.ORGANIZATION_TYPE.value) == "enterprise":
            score += self.SCORING_RULES["enterprise"]
            priority = Priority.HIGH

        if len(state.business_needs) >= self.MULTIPLE_NEEDS_MIN:
            score += self.SCORING_RULES["multiple_needs"]
            reasons.append("multiple_needs")

        return self._result(score, reasons, priority)

    def _result(self, score: float, reasons: List[str], priority: Priority) -> QualificationResult:
        score = round(max(0.0, min(score, 1.0)), 4)
        return QualificationResult(
            is_qualified=score > self.qualification_threshold,
            score=score,
            reasons=tuple(reasons),
            priority=priority,
            tier=self.tier_for(score),
        )

    def tier_for(self, score: float) -> LeadTier:
        if score >= self.hot_threshold:
            return LeadTier.HOT
        if score >= self.warm_threshold:
            return LeadTier.WARM
        return LeadTier.COLD


_default_scorer = QualificationScorer()


def evaluate_qualification(state: ConversationState) -> QualificationResult:
    """Score a state with the default thresholds."""
    return _default_scorer.evaluate(state)
