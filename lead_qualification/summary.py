"""
Structured executive-summary data.

Produces labels, insights and lead quality for the summary step. Turning
this into prose is left to the text-generation collaborator.
"""

from typing import Any, Dict, Iterable, List, Optional

from .recommendation_engine import Recommendation
from .state import Attribute, ConversationState, is_present

ORGANIZATION_TYPE_LABELS = {
    "for-profit": "For-Profit Business",
    "nonprofit": "Nonprofit Organization",
    "government": "Government Agency",
    "startup": "Startup",
    "enterprise": "Enterprise",
}

TIMELINE_LABELS = {
    "immediate": "Immediate",
    "< 1 month": "Within 1 month",
    "1-3 months": "1 to 3 months",
    "3-6 months": "3 to 6 months",
    "6+ months": "Over 6 months",
}

BUDGET_LABELS = {
    "< 5000": "Under $5,000",
    "5000-10000": "$5,000 - $10,000",
    "10000-25000": "$10,000 - $25,000",
    "25000-50000": "$25,000 - $50,000",
    "50000+": "Over $50,000",
}

# Midpoint estimate of each budget bucket, in dollars
BUDGET_VALUES = {
    "< 5000": 2500,
    "5000-10000": 7500,
    "10000-25000": 17500,
    "25000-50000": 37500,
    "50000+": 75000,
}

TO_BE_DETERMINED = "To be determined"

# Lead quality points
QUALITY_POINTS = {
    "budget": 30,
    "timeline": 20,
    "per_need": 10,
    "needs_max": 20,
    "per_message": 5,
    "engaged": 30,
}
ENGAGED_MESSAGE_COUNT = 6
HIGH_QUALITY = 70
MEDIUM_QUALITY = 40

# All five must be present for the conversation to count as complete
COMPLETE_FIELDS = (
    Attribute.ORGANIZATION_TYPE.value,
    Attribute.BUSINESS_NEEDS.value,
    Attribute.TIMELINE.value,
    Attribute.BUDGET.value,
    Attribute.EMAIL.value,
)


def format_organization_type(organization_type: Optional[str]) -> str:
    return ORGANIZATION_TYPE_LABELS.get(organization_type, "Organization")


def format_timeline(timeline: Optional[str]) -> str:
    if not timeline:
        return TO_BE_DETERMINED
    return TIMELINE_LABELS.get(timeline, timeline)


def format_budget(budget: Optional[str]) -> str:
    return BUDGET_LABELS.get(budget, TO_BE_DETERMINED)


def parse_budget_value(budget: Optional[str]) -> int:
    return BUDGET_VALUES.get(budget, 0)


def generate_insights(state: ConversationState) -> Dict[str, Any]:
    """Urgency, budget alignment, service match and follow-up priority."""
    timeline = state.get(Attribute.TIMELINE)
    if timeline in ("immediate", "< 1 month"):
        urgency = "High"
    elif timeline == "1-3 months":
        urgency = "Medium"
    else:
        urgency = "Standard"

    budget = state.get(Attribute.BUDGET)
    if not budget:
        budget_alignment = TO_BE_DETERMINED
    else:
        value = parse_budget_value(budget)
        if value >= 25000:
            budget_alignment = "Well-aligned for comprehensive solutions"
        elif value >= 10000:
            budget_alignment = "Suitable for targeted solutions"
        else:
            budget_alignment = "May require phased approach"

    service_match = min(len(state.business_needs) * 25, 100)

    if urgency == "High" and service_match >= 75:
        follow_up = "Immediate (within 24 hours)"
    elif urgency == "Medium" or service_match >= 50:
        follow_up = "High (within 48 hours)"
    else:
        follow_up = "Standard"

    return {
        "urgency": urgency,
        "budgetAlignment": budget_alignment,
        "serviceMatch": service_match,
        "followUpPriority": follow_up,
    }


def determine_lead_quality(state: ConversationState, message_count: int) -> str:
    """Bucket a lead into high, medium or low from data and engagement."""
    points = 0
    if state.has(Attribute.BUDGET):
        points += QUALITY_POINTS["budget"]
    if state.has(Attribute.TIMELINE):
        points += QUALITY_POINTS["timeline"]
    points += min(len(state.business_needs) * QUALITY_POINTS["per_need"], QUALITY_POINTS["needs_max"])

    if message_count >= ENGAGED_MESSAGE_COUNT:
        points += QUALITY_POINTS["engaged"]
    else:
        points += max(0, message_count) * QUALITY_POINTS["per_message"]

    if points >= HIGH_QUALITY:
        return "high"
    if points >= MEDIUM_QUALITY:
        return "medium"
    return "low"


def is_conversation_complete(state: ConversationState) -> bool:
    return all(is_present(state.collected.get(name)) for name in COMPLETE_FIELDS)


def build_summary_data(
    state: ConversationState,
    recommendations: Iterable[Recommendation] = (),
    message_count: int = 0,
) -> Dict[str, Any]:
    """
    Collect everything the summary step needs into one JSON-ready dict.

    Args:
        state: Current conversation state
        recommendations: Services recommended for the lead
        message_count: Messages exchanged so far

    Returns:
        Summary data with display labels, insights and lead quality
    """
    organization_type = state.organization_type
    recommended: List[Dict[str, Any]] = [rec.to_dict() for rec in recommendations]

    return {
        "sessionId": state.context.session_id,
        "leadId": state.context.lead_id,
        "organizationType": organization_type or "unknown",
        "organizationTypeLabel": format_organization_type(organization_type),
        "organizationName": state.get(Attribute.ORGANIZATION_NAME),
        "isNonprofit": organization_type == "nonprofit",
        "identifiedNeeds": list(state.business_needs),
        "recommendedServices": recommended,
        "timeline": format_timeline(state.get(Attribute.TIMELINE)),
        "budget": format_budget(state.get(Attribute.BUDGET)),
        "insights": generate_insights(state),
        "leadQuality": determine_lead_quality(state, message_count),
        "messageCount": message_count,
        "isComplete": is_conversation_complete(state),
    }
