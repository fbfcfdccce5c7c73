"""
Stage machine for the qualification dialogue.

Stages only move along the edges of STAGE_GRAPH. There is no edge back to
greeting and complete is terminal.
"""

import logging
from dataclasses import replace
from datetime import datetime
from typing import Any, Dict, Mapping, Optional, Tuple

from .errors import InvalidTransitionError
from .state import Attribute, ConversationState, Stage, utcnow

logger = logging.getLogger(__name__)


STAGE_GRAPH: Dict[Stage, Tuple[Stage, ...]] = {
    Stage.GREETING: (Stage.DISCOVERY,),
    Stage.DISCOVERY: (Stage.QUALIFICATION, Stage.CLARIFICATION),
    Stage.CLARIFICATION: (Stage.DISCOVERY, Stage.QUALIFICATION),
    Stage.QUALIFICATION: (Stage.SCHEDULING, Stage.SUMMARY),
    Stage.SCHEDULING: (Stage.SUMMARY,),
    Stage.SUMMARY: (Stage.COMPLETE,),
    Stage.COMPLETE: (),
}

# Required fields the dialogue must gather before qualifying; email is
# handled by its own action
DISCOVERY_FIELDS = (
    Attribute.ORGANIZATION_TYPE.value,
    Attribute.BUSINESS_NEEDS.value,
    Attribute.TIMELINE.value,
)


def allowed_transitions(stage: Any) -> Tuple[Stage, ...]:
    return STAGE_GRAPH[Stage(stage)]


def can_transition(state: ConversationState, target: Any) -> bool:
    try:
        return Stage(target) in STAGE_GRAPH[state.stage]
    except ValueError:
        return False


def transition_to(
    state: ConversationState,
    target: Any,
    now: Optional[datetime] = None,
) -> ConversationState:
    """
    Move the conversation to a new stage.

    Args:
        state: Current state (left untouched)
        target: Stage to enter
        now: Timestamp override for lastTransition and qualifiedAt

    Returns:
        New state in the target stage

    Raises:
        InvalidTransitionError: If target is not an outgoing edge of the
            current stage
    """
    if not can_transition(state, target):
        raise InvalidTransitionError(state.stage.value, getattr(target, "value", target))

    target = Stage(target)
    now = now or utcnow()

    context = replace(
        state.context,
        stage_history=state.context.stage_history + (state.stage,),
        last_transition=now,
    )
    if target == Stage.SCHEDULING and state.flags.is_qualified:
        context = replace(context, qualified_at=now)

    logger.debug(f"Stage transition {state.stage.value} -> {target.value}")
    return replace(state, stage=target, context=context)


def _discovery_complete(state: ConversationState) -> bool:
    return all(state.has(name) for name in DISCOVERY_FIELDS)


def next_stage(state: ConversationState, extracted: Mapping[str, Any]) -> Optional[Stage]:
    """Stage the turn should move to, or None to stay put."""
    stage = state.stage

    if stage == Stage.GREETING:
        return Stage.DISCOVERY

    if stage in (Stage.DISCOVERY, Stage.CLARIFICATION):
        if _discovery_complete(state):
            return Stage.QUALIFICATION
        if stage == Stage.DISCOVERY and not extracted:
            return Stage.CLARIFICATION
        if stage == Stage.CLARIFICATION and extracted:
            return Stage.DISCOVERY
        return None

    if stage == Stage.QUALIFICATION:
        if state.flags.is_qualified:
            return Stage.SCHEDULING
        if state.flags.ready_for_summary or not any(state.pending.values()):
            return Stage.SUMMARY
        return None

    if stage == Stage.SCHEDULING and state.flags.ready_for_summary:
        return Stage.SUMMARY

    # summary and complete are closed by the caller
    return None


def advance(
    state: ConversationState,
    extracted: Mapping[str, Any],
    now: Optional[datetime] = None,
) -> ConversationState:
    """Apply at most one stage edge for the current user turn."""
    target = next_stage(state, extracted)
    if target is None:
        return state
    return transition_to(state, target, now=now)
