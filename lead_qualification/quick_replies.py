"""
Quick reply generation.

Every topic has a template set, so generate_quick_replies always returns
between one and `limit` suggestions.
"""

import re
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from .action_arbiter import Action, ActionType
from .state import Attribute, ConversationState

logger = logging.getLogger(__name__)

MAX_QUICK_REPLIES = 5


class QuickReplyTopic(str, Enum):
    """Topics that carry a quick reply template set."""
    ORGANIZATION_TYPE = "organizationType"
    BUSINESS_NEEDS = "businessNeeds"
    TIMELINE = "timeline"
    BUDGET = "budget"
    CLOSING = "closing"
    DEFAULT = "default"


@dataclass(frozen=True)
class ReplyTemplate:
    """Default replies for a topic plus organization-type variants."""
    default: Tuple[str, ...]
    variants: Mapping[str, Tuple[str, ...]] = field(default_factory=dict)

    def for_organization(self, organization_type: Optional[str]) -> Tuple[str, ...]:
        return self.variants.get(organization_type, self.default) if organization_type else self.default

    def all_replies(self) -> Tuple[str, ...]:
        replies = list(self.default)
        for variant in self.variants.values():
            replies.extend(variant)
        return tuple(dict.fromkeys(replies))


DEFAULT_REPLIES = ("Tell me more", "Schedule a call", "See services", "Start over")

REPLY_TEMPLATES: Dict[QuickReplyTopic, ReplyTemplate] = {
    QuickReplyTopic.ORGANIZATION_TYPE: ReplyTemplate(
        default=(
            "For-profit business",
            "Nonprofit organization",
            "Government agency",
            "Startup",
            "Other",
        ),
    ),
    QuickReplyTopic.BUSINESS_NEEDS: ReplyTemplate(
        default=(
            "Website Development",
            "Digital Marketing",
            "Business Consulting",
            "Process Automation",
            "Other needs",
        ),
        variants={
            "nonprofit": (
                "Fundraising Support",
                "Volunteer Management",
                "Donor Database",
                "Website Development",
                "Other needs",
            ),
            "government": (
                "Citizen Portal",
                "Process Digitization",
                "Data Management",
                "Website Modernization",
                "Other needs",
            ),
        },
    ),
    QuickReplyTopic.TIMELINE: ReplyTemplate(
        default=(
            "Immediate (< 1 month)",
            "1-3 months",
            "3-6 months",
            "Just exploring",
            "Not sure yet",
        ),
    ),
    QuickReplyTopic.BUDGET: ReplyTemplate(
        default=(
            "Under $10k",
            "$10k - $25k",
            "$25k - $50k",
            "Over $50k",
            "Need guidance",
        ),
    ),
    QuickReplyTopic.CLOSING: ReplyTemplate(
        default=(
            "Get my summary",
            "Schedule consultation",
            "See pricing",
            "Start over",
            "Ask a question",
        ),
        variants={
            "nonprofit": (
                "Get my summary",
                "Schedule mission consultation",
                "See nonprofit pricing",
                "Discuss impact goals",
                "Ask a question",
            ),
        },
    ),
    QuickReplyTopic.DEFAULT: ReplyTemplate(default=DEFAULT_REPLIES),
}

# Follow-ups offered when the last user message names a specific subject
CONTENT_REPLIES = (
    ("website", ("Complete redesign", "Better SEO", "Performance issues", "Mobile responsiveness", "Other")),
    ("fundrais", ("Online donations", "Donor management", "Campaign tracking", "Automated receipts", "Other")),
)

SMART_SUGGESTIONS = (
    (("donor", "donation"), (
        "Donor database setup",
        "Automated thank-you emails",
        "Donation tracking",
        "Recurring donations",
        "Campaign management",
    )),
    (("asap", "urgent", "broken"), (
        "Emergency fix needed",
        "Temporary solution",
        "Full replacement",
        "Immediate consultation",
        "Priority support",
    )),
    (("affordable", "cheap", "budget"), (
        "Basic package",
        "Phased approach",
        "Payment plans available",
        "See all pricing",
        "Discuss options",
    )),
    (("automat", "integrat"), (
        "Workflow automation",
        "System integration",
        "API development",
        "Process optimization",
        "Custom solutions",
    )),
)

# Exact quick reply labels that select a business need
NEED_REPLIES = {
    "Website Development": "website_development",
    "Digital Marketing": "digital_marketing",
    "Business Consulting": "business_consulting",
    "Process Automation": "process_automation",
    "Fundraising Support": "fundraising",
    "Volunteer Management": "volunteer_management",
}

# "Under $10k", "over 50k"; a bare "Start over" is not a budget
BUDGET_BOUND_PATTERN = re.compile(r"\b(?:under|over)\s+\$?\d")


class ReplyActionType(str, Enum):
    """What selecting a quick reply asks the dialogue to do."""
    SCHEDULE_CALL = "schedule_call"
    SELECT_NEED = "select_need"
    SET_TIMELINE = "set_timeline"
    SET_BUDGET = "set_budget"
    GENERATE_SUMMARY = "generate_summary"
    CONTINUE_CONVERSATION = "continue_conversation"


@dataclass(frozen=True)
class ReplyAction:
    type: ReplyActionType
    data: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type.value, "data": dict(self.data)}


def resolve_topic(topic: Any) -> QuickReplyTopic:
    """Map a topic name onto a known topic; anything unknown is DEFAULT."""
    if isinstance(topic, QuickReplyTopic):
        return topic
    try:
        return QuickReplyTopic(topic)
    except ValueError:
        logger.debug(f"Unknown quick reply topic {topic!r}, using default replies")
        return QuickReplyTopic.DEFAULT


def generate_quick_replies(
    topic: Any,
    organization_type: Optional[str] = None,
    limit: int = MAX_QUICK_REPLIES,
) -> List[str]:
    """
    Suggested replies for a topic.

    Args:
        topic: Topic name or QuickReplyTopic; unknown topics use the default set
        organization_type: Selects a specialized variant when one exists
        limit: Maximum number of replies (at least one is always returned)

    Returns:
        List of reply strings
    """
    template = REPLY_TEMPLATES[resolve_topic(topic)]
    replies = template.for_organization(organization_type)
    return list(replies[:max(1, limit)])


def topic_for_action(action: Action) -> QuickReplyTopic:
    if action.type == ActionType.ASK_QUESTION:
        return resolve_topic(action.topic)
    if action.type == ActionType.GENERATE_SUMMARY:
        return QuickReplyTopic.CLOSING
    return QuickReplyTopic.DEFAULT


def last_user_message(history: Iterable[Mapping[str, Any]]) -> Optional[str]:
    for message in reversed(list(history or ())):
        if message.get("role") == "user":
            return message.get("content")
    return None


def next_step_replies(state: ConversationState, limit: int = MAX_QUICK_REPLIES) -> List[str]:
    """Replies for the first still-pending field."""
    for topic in (
        QuickReplyTopic.ORGANIZATION_TYPE,
        QuickReplyTopic.BUSINESS_NEEDS,
        QuickReplyTopic.TIMELINE,
        QuickReplyTopic.BUDGET,
    ):
        if state.pending.get(topic.value):
            return generate_quick_replies(topic, limit=limit)
    return generate_quick_replies(QuickReplyTopic.DEFAULT, limit=limit)


def generate_dynamic_replies(
    state: ConversationState,
    history: Optional[Iterable[Mapping[str, Any]]] = None,
    limit: int = MAX_QUICK_REPLIES,
) -> List[str]:
    """
    Replies chosen from the state and the latest user message.

    Closing replies once nothing is pending, then timeline or budget
    while those are open, then subject-specific follow-ups, and finally
    the next pending field.
    """
    if not any(state.pending.values()):
        return generate_quick_replies(QuickReplyTopic.CLOSING, state.organization_type, limit)

    if state.pending.get(Attribute.TIMELINE.value):
        return generate_quick_replies(QuickReplyTopic.TIMELINE, limit=limit)
    if state.pending.get(Attribute.BUDGET.value):
        return generate_quick_replies(QuickReplyTopic.BUDGET, limit=limit)

    message = (last_user_message(history or ()) or "").lower()
    for keyword, replies in CONTENT_REPLIES:
        if keyword in message:
            return list(replies[:max(1, limit)])

    return next_step_replies(state, limit)


def get_smart_suggestions(message: str, limit: int = MAX_QUICK_REPLIES) -> List[str]:
    """Suggestions keyed off words in a free-form message."""
    text = (message or "").lower()
    suggestions: List[str] = []
    for keywords, replies in SMART_SUGGESTIONS:
        if any(keyword in text for keyword in keywords):
            suggestions.extend(replies)

    if not suggestions:
        return generate_quick_replies(QuickReplyTopic.DEFAULT, limit=limit)
    return suggestions[:max(1, limit)]


def validate_reply(reply: Optional[str], topic: Any) -> bool:
    """Whether a reply belongs to a topic's templates. 'Other' fits any topic."""
    if not reply or not topic:
        return False
    if "Other" in reply:
        return True
    try:
        template = REPLY_TEMPLATES[QuickReplyTopic(topic)]
    except ValueError:
        return False
    return reply in template.all_replies()


def get_reply_action(reply: str) -> ReplyAction:
    """Translate a selected quick reply into a dialogue action."""
    lowered = (reply or "").lower()

    if "schedule" in lowered or "call" in lowered:
        return ReplyAction(ReplyActionType.SCHEDULE_CALL, {"source": "quick_reply"})

    if reply in NEED_REPLIES:
        return ReplyAction(ReplyActionType.SELECT_NEED, {"need": NEED_REPLIES[reply]})

    if "month" in lowered or "immediate" in lowered:
        return ReplyAction(ReplyActionType.SET_TIMELINE, {"timeline": reply})

    if "$" in lowered or BUDGET_BOUND_PATTERN.search(lowered):
        return ReplyAction(ReplyActionType.SET_BUDGET, {"budget": reply})

    if "summary" in lowered:
        return ReplyAction(ReplyActionType.GENERATE_SUMMARY, {"source": "quick_reply"})

    return ReplyAction(ReplyActionType.CONTINUE_CONVERSATION, {"reply": reply})


def generate_personalized_replies(
    organization_name: Optional[str] = None,
    limit: int = MAX_QUICK_REPLIES,
) -> List[str]:
    replies: List[str] = []
    if organization_name:
        replies.append(f"Tell me about {organization_name}'s needs")
        replies.append(f"{organization_name}'s current challenges")
    replies.extend(DEFAULT_REPLIES)
    return replies[:max(1, limit)]
