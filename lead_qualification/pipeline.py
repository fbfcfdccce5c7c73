"""
Per-turn data flow.

utterance -> extract -> reduce -> score -> advance stage -> arbitrate ->
recommendations and quick replies. Scoring runs before the stage step so
the stage machine sees this turn's qualification.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from .action_arbiter import Action, determine_next_action
from .attribute_extractor import AttributeExtractor
from .errors import ValidationWarning
from .qualification_scorer import QualificationResult, QualificationScorer
from .quick_replies import (
    MAX_QUICK_REPLIES,
    ReplyActionType,
    generate_quick_replies,
    get_reply_action,
    topic_for_action,
)
from .recommendation_engine import Recommendation, generate_recommendations
from .schemas import state_to_dict
from .stage_machine import advance
from .state import ConversationState, Stage
from .state_reducer import (
    apply_qualification,
    mark_engaged,
    mark_ready_for_summary,
    update_collected,
    validate_attributes,
)

logger = logging.getLogger(__name__)

_default_extractor = AttributeExtractor()
_default_scorer = QualificationScorer()


@dataclass(frozen=True)
class TurnResult:
    """Everything one user turn produces."""
    state: ConversationState
    action: Action
    recommendations: Tuple[Recommendation, ...]
    quick_replies: Tuple[str, ...]
    extracted: Dict[str, Any]
    warnings: Tuple[ValidationWarning, ...]
    qualification: QualificationResult
    transitioned: Optional[Tuple[Stage, Stage]] = None

    def to_dict(self) -> Dict[str, Any]:
        extracted = {
            key: list(value) if isinstance(value, tuple) else value
            for key, value in self.extracted.items()
        }
        return {
            "state": state_to_dict(self.state),
            "action": self.action.to_dict(),
            "recommendations": [rec.to_dict() for rec in self.recommendations],
            "quickReplies": list(self.quick_replies),
            "extracted": extracted,
            "warnings": [warning.to_dict() for warning in self.warnings],
            "qualification": self.qualification.to_dict(),
            "transitioned": (
                [stage.value for stage in self.transitioned] if self.transitioned else None
            ),
        }


def run_turn(
    state: ConversationState,
    utterance: str,
    now: Optional[datetime] = None,
    extractor: Optional[AttributeExtractor] = None,
    scorer: Optional[QualificationScorer] = None,
    quick_reply_limit: int = MAX_QUICK_REPLIES,
) -> TurnResult:
    """
    Process one user utterance against a state.

    Args:
        state: State before the turn (never modified)
        utterance: Raw user text
        now: Timestamp override for stage bookkeeping
        extractor: Attribute extractor (default shared instance)
        scorer: Qualification scorer (default thresholds)
        quick_reply_limit: Maximum quick replies returned

    Returns:
        TurnResult with the new state, next action and suggestions
    """
    extractor = extractor or _default_extractor
    scorer = scorer or _default_scorer

    extracted = extractor.extract(utterance)
    accepted, warnings = validate_attributes(extracted)

    new_state = update_collected(state, accepted)
    new_state = mark_engaged(new_state)
    if get_reply_action(utterance or "").type == ReplyActionType.GENERATE_SUMMARY:
        new_state = mark_ready_for_summary(new_state)

    qualification = scorer.evaluate(new_state)
    new_state = apply_qualification(new_state, qualification.is_qualified)

    previous_stage = new_state.stage
    new_state = advance(new_state, accepted, now=now)
    transitioned = None
    if new_state.stage != previous_stage:
        transitioned = (previous_stage, new_state.stage)

    action = determine_next_action(new_state)
    recommendations = generate_recommendations(new_state.business_needs, new_state.organization_type)
    quick_replies = generate_quick_replies(
        topic_for_action(action),
        new_state.organization_type,
        limit=quick_reply_limit,
    )

    logger.debug(
        f"Turn processed: stage={new_state.stage.value} action={action.type.value} "
        f"score={qualification.score}"
    )

    return TurnResult(
        state=new_state,
        action=action,
        recommendations=tuple(recommendations),
        quick_replies=tuple(quick_replies),
        extracted=extracted,
        warnings=tuple(warnings),
        qualification=qualification,
        transitioned=transitioned,
    )
