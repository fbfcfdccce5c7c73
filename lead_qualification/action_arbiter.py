"""
Next-action arbitration.

determine_next_action is a strict priority cascade over the state: the
first matching rule wins and exactly one action is returned.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from .state import Attribute, ConversationState, PENDING_FIELDS, Priority
from .state_reducer import get_completion_rate

# Completion rate above which a qualified lead is ready for its summary
SUMMARY_COMPLETION = 0.8

# Completion rate above which an unqualified lead should be re-evaluated
EVALUATION_COMPLETION = 0.5


class ActionType(str, Enum):
    """Next steps the dialogue can take."""
    COLLECT_EMAIL = "collect_email"
    ASK_QUESTION = "ask_question"
    GENERATE_SUMMARY = "generate_summary"
    EVALUATE_QUALIFICATION = "evaluate_qualification"
    CONTINUE_DISCOVERY = "continue_discovery"


@dataclass(frozen=True)
class Action:
    """The single next step chosen for a conversation."""
    type: ActionType
    priority: Priority
    topic: Optional[str] = None
    data: Optional[Tuple[str, ...]] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"type": self.type.value, "priority": self.priority.value}
        if self.topic is not None:
            result["topic"] = self.topic
        if self.data is not None:
            result["data"] = list(self.data)
        return result


def determine_next_action(state: ConversationState) -> Action:
    """
    Select the next action for a conversation.

    Rules, first match wins:
    1. Email missing or unverified: collect_email (critical)
    2. A tracked field still pending: ask_question about the first one in
       organizationType, businessNeeds, timeline, budget order (high)
    3. Summary requested, or qualified with completion above 0.8:
       generate_summary with the collected field names (high)
    4. Not qualified with completion above 0.5: evaluate_qualification (medium)
    5. Otherwise: continue_discovery (low)
    """
    if not state.has(Attribute.EMAIL) or not state.flags.email_verified:
        return Action(type=ActionType.COLLECT_EMAIL, priority=Priority.CRITICAL)

    for name in PENDING_FIELDS:
        if state.pending.get(name):
            return Action(type=ActionType.ASK_QUESTION, priority=Priority.HIGH, topic=name)

    completion = get_completion_rate(state)

    if state.flags.ready_for_summary or (state.flags.is_qualified and completion > SUMMARY_COMPLETION):
        return Action(
            type=ActionType.GENERATE_SUMMARY,
            priority=Priority.HIGH,
            data=state.collected_fields,
        )

    if not state.flags.is_qualified and completion > EVALUATION_COMPLETION:
        return Action(type=ActionType.EVALUATE_QUALIFICATION, priority=Priority.MEDIUM)

    return Action(type=ActionType.CONTINUE_DISCOVERY, priority=Priority.LOW)
