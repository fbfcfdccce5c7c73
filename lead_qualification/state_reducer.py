"""
State reducer for conversation state.

Every function here takes a ConversationState and returns a new one.
Rejected attribute values are logged and discarded; they never fail
the call.
"""

import re
import logging
from dataclasses import replace
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from .errors import ValidationWarning
from .state import (
    Attribute,
    BUDGET_RANGES,
    ConversationContext,
    ConversationState,
    ORGANIZATION_TYPES,
    PENDING_FIELDS,
    REQUIRED_FIELDS,
    Stage,
    TIMELINES,
    is_present,
    utcnow,
)

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r'^[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}$')

ENUM_FIELDS = {
    Attribute.ORGANIZATION_TYPE.value: ORGANIZATION_TYPES,
    Attribute.TIMELINE.value: TIMELINES,
    Attribute.BUDGET.value: BUDGET_RANGES,
}

# Milestones in the order a conversation reaches them
MILESTONES = (
    "collect_email",
    "identify_organization",
    "understand_needs",
    "collect_timeline",
    "qualify_lead",
    "generate_summary",
)


def initialize(
    seed: Optional[Mapping[str, Any]] = None,
    now: Optional[datetime] = None,
) -> ConversationState:
    """
    Create the starting state for a session.

    Args:
        seed: Known lead data (email, name, organizationName,
            organizationType) plus optional sessionId and leadId
        now: Start time override

    Returns:
        A greeting-stage state pre-filled from the seed
    """
    seed = dict(seed or {})
    context = ConversationContext(
        start_time=now or utcnow(),
        session_id=seed.pop("sessionId", None),
        lead_id=seed.pop("leadId", None),
    )
    state = ConversationState(stage=Stage.GREETING, context=context)

    seed = {key: value for key, value in seed.items() if value is not None}
    if seed:
        state = update_collected(state, seed)
    return state


def validate_attributes(attrs: Mapping[str, Any]) -> Tuple[Dict[str, Any], List[ValidationWarning]]:
    """
    Split an attribute map into accepted values and rejections.

    Accepted values are normalized (trimmed strings, business needs as a
    duplicate-free tuple). None values are ignored without a warning.
    """
    accepted: Dict[str, Any] = {}
    warnings: List[ValidationWarning] = []

    for key, value in attrs.items():
        if value is None:
            continue

        name = key.value if isinstance(key, Attribute) else key
        try:
            Attribute(name)
        except ValueError:
            warnings.append(ValidationWarning(str(name), value, "unknown attribute"))
            continue

        if name == Attribute.BUSINESS_NEEDS.value:
            needs, rejected = _normalize_needs(value)
            warnings.extend(rejected)
            if needs:
                accepted[name] = needs
            continue

        if not isinstance(value, str) or not value.strip():
            warnings.append(ValidationWarning(name, value, "expected a non-empty string"))
            continue
        value = value.strip()

        if name in ENUM_FIELDS and value not in ENUM_FIELDS[name]:
            warnings.append(ValidationWarning(name, value, f"not one of {list(ENUM_FIELDS[name])}"))
            continue

        if name == Attribute.EMAIL.value and not EMAIL_PATTERN.match(value):
            warnings.append(ValidationWarning(name, value, "malformed email address"))
            continue

        accepted[name] = value

    for warning in warnings:
        logger.warning(
            f"Discarding attribute {warning.field}: {warning.reason}",
            extra={"field": warning.field, "reason": warning.reason},
        )

    return accepted, warnings


def _normalize_needs(value: Any) -> Tuple[Tuple[str, ...], List[ValidationWarning]]:
    field = Attribute.BUSINESS_NEEDS.value
    if isinstance(value, str):
        items: Iterable[Any] = [value]
    elif isinstance(value, (list, tuple, set, frozenset)):
        # Sets carry no order; sort them so merges stay deterministic
        items = sorted(value, key=str) if isinstance(value, (set, frozenset)) else value
    else:
        return (), [ValidationWarning(field, value, "expected a string or a collection of strings")]

    needs: List[str] = []
    warnings: List[ValidationWarning] = []
    for item in items:
        if not isinstance(item, str):
            warnings.append(ValidationWarning(field, item, "business need must be a string"))
            continue
        item = item.strip()
        if item and item not in needs:
            needs.append(item)
    return tuple(needs), warnings


def update_collected(state: ConversationState, attrs: Mapping[str, Any]) -> ConversationState:
    """
    Merge attributes into the collected map.

    Single-valued attributes are overwritten; business needs are merged
    with the existing needs, keeping first-seen order. Pending flags are
    recomputed from what has been collected.
    """
    accepted, _ = validate_attributes(attrs)
    if not accepted:
        return state

    collected = dict(state.collected)
    for key, value in accepted.items():
        if key == Attribute.BUSINESS_NEEDS.value:
            existing = tuple(collected.get(key) or ())
            value = tuple(dict.fromkeys(existing + value))
        collected[key] = value

    pending = dict(state.pending)
    for key in PENDING_FIELDS:
        pending[key] = not is_present(collected.get(key))

    flags = state.flags
    if is_present(collected.get(Attribute.EMAIL.value)) and not flags.email_verified:
        flags = replace(flags, email_verified=True)

    return replace(state, collected=collected, pending=pending, flags=flags)


def get_completion_rate(state: ConversationState) -> float:
    """Fraction of required fields collected. Budget is not required."""
    present = sum(1 for name in REQUIRED_FIELDS if is_present(state.collected.get(name)))
    return present / len(REQUIRED_FIELDS)


def mark_engaged(state: ConversationState) -> ConversationState:
    if state.flags.has_engaged:
        return state
    return replace(state, flags=replace(state.flags, has_engaged=True))


def mark_ready_for_summary(state: ConversationState) -> ConversationState:
    if state.flags.ready_for_summary:
        return state
    return replace(state, flags=replace(state.flags, ready_for_summary=True))


def apply_qualification(state: ConversationState, is_qualified: bool) -> ConversationState:
    """Record the latest qualification verdict on the state flags."""
    if state.flags.is_qualified == is_qualified:
        return state
    return replace(state, flags=replace(state.flags, is_qualified=is_qualified))


def get_next_milestone(state: ConversationState) -> str:
    if not state.has(Attribute.EMAIL):
        return "collect_email"
    if state.is_pending(Attribute.ORGANIZATION_TYPE):
        return "identify_organization"
    if state.is_pending(Attribute.BUSINESS_NEEDS):
        return "understand_needs"
    if state.is_pending(Attribute.TIMELINE):
        return "collect_timeline"
    if not state.flags.is_qualified:
        return "qualify_lead"
    return "generate_summary"


def get_progress(state: ConversationState, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Snapshot of how far the conversation has come."""
    now = now or utcnow()
    duration = max(0.0, (now - state.context.start_time).total_seconds())
    return {
        "currentStage": state.stage.value,
        "completionRate": get_completion_rate(state),
        "duration": duration,
        "fieldsCollected": len(state.collected_fields),
        "fieldsPending": sum(1 for flag in state.pending.values() if flag),
        "nextMilestone": get_next_milestone(state),
    }
