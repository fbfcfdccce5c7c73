"""
Conversation state value types.

A ConversationState is created once per session and replaced, never
mutated, on every user turn. Attribute and stage names double as the
wire names used by the serialized JSON blob.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

from .errors import StateShapeError


class Stage(str, Enum):
    """Discrete phases of the qualification dialogue."""
    GREETING = "greeting"
    DISCOVERY = "discovery"
    CLARIFICATION = "clarification"
    QUALIFICATION = "qualification"
    SCHEDULING = "scheduling"
    SUMMARY = "summary"
    COMPLETE = "complete"


class Attribute(str, Enum):
    """Attributes collected about a prospective client."""
    EMAIL = "email"
    ORGANIZATION_TYPE = "organizationType"
    BUSINESS_NEEDS = "businessNeeds"
    TIMELINE = "timeline"
    BUDGET = "budget"
    ORGANIZATION_NAME = "organizationName"
    NAME = "name"


class Priority(str, Enum):
    """Priority levels shared by qualification results, actions and recommendations."""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


ORGANIZATION_TYPES = ("for-profit", "nonprofit", "enterprise", "startup", "government")

TIMELINES = ("immediate", "< 1 month", "1-3 months", "3-6 months", "6+ months")

BUDGET_RANGES = ("< 5000", "5000-10000", "10000-25000", "25000-50000", "50000+")

# Budget is intentionally left out so early-stage leads are not over-penalized
REQUIRED_FIELDS = (
    Attribute.EMAIL.value,
    Attribute.ORGANIZATION_TYPE.value,
    Attribute.BUSINESS_NEEDS.value,
    Attribute.TIMELINE.value,
)

# Fields carrying a pending flag, in the order they are asked
PENDING_FIELDS = (
    Attribute.ORGANIZATION_TYPE.value,
    Attribute.BUSINESS_NEEDS.value,
    Attribute.TIMELINE.value,
    Attribute.BUDGET.value,
)

ATTRIBUTE_ORDER = tuple(attr.value for attr in Attribute)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def is_present(value: Any) -> bool:
    """A collected value counts only when it is set and non-empty."""
    if value is None:
        return False
    if isinstance(value, (str, tuple, list, set, frozenset, dict)):
        return len(value) > 0
    return True


def default_pending() -> Dict[str, bool]:
    return {name: True for name in PENDING_FIELDS}


@dataclass(frozen=True)
class ConversationFlags:
    """Boolean progress markers for a conversation."""
    email_verified: bool = False
    has_engaged: bool = False
    is_qualified: bool = False
    ready_for_summary: bool = False


@dataclass(frozen=True)
class ConversationContext:
    """Timing and stage bookkeeping."""
    start_time: datetime = field(default_factory=utcnow)
    stage_history: Tuple[Stage, ...] = ()
    last_transition: Optional[datetime] = None
    qualified_at: Optional[datetime] = None
    session_id: Optional[str] = None
    lead_id: Optional[str] = None


@dataclass(frozen=True)
class ConversationState:
    """
    Immutable snapshot of a qualification conversation.

    `collected` maps attribute names to values (business needs are kept as
    an ordered, duplicate-free tuple); `pending` maps the tracked attribute
    names to True while they are unresolved.
    """
    stage: Stage = Stage.GREETING
    context: ConversationContext = field(default_factory=ConversationContext)
    collected: Mapping[str, Any] = field(default_factory=dict)
    pending: Mapping[str, bool] = field(default_factory=default_pending)
    flags: ConversationFlags = field(default_factory=ConversationFlags)

    def __post_init__(self):
        try:
            stage = Stage(self.stage)
        except ValueError:
            raise StateShapeError(f"Unknown conversation stage: {self.stage!r}")
        object.__setattr__(self, "stage", stage)
        # Read-only views over private copies of both maps
        object.__setattr__(self, "collected", MappingProxyType(dict(self.collected)))
        object.__setattr__(self, "pending", MappingProxyType(dict(self.pending)))

    def get(self, attribute: str, default: Any = None) -> Any:
        return self.collected.get(str(Attribute(attribute).value), default)

    def has(self, attribute: str) -> bool:
        return is_present(self.get(attribute))

    def is_pending(self, attribute: str) -> bool:
        return bool(self.pending.get(Attribute(attribute).value, False))

    @property
    def organization_type(self) -> Optional[str]:
        return self.collected.get(Attribute.ORGANIZATION_TYPE.value)

    @property
    def business_needs(self) -> Tuple[str, ...]:
        return tuple(self.collected.get(Attribute.BUSINESS_NEEDS.value) or ())

    @property
    def collected_fields(self) -> Tuple[str, ...]:
        """Names of present collected attributes in canonical order."""
        return tuple(name for name in ATTRIBUTE_ORDER if is_present(self.collected.get(name)))
