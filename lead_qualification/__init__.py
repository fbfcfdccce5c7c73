"""
Lead Qualification Engine.

This package drives a multi-turn qualification dialogue:
- Attribute extraction (organization type, needs, timeline, budget, email)
- Immutable conversation state with a validated stage graph
- Qualification scoring (0-1 scale) with priority and lead tier
- Next-action arbitration
- Service recommendations and quick reply suggestions
"""

from .action_arbiter import Action, ActionType, determine_next_action
from .attribute_extractor import AttributeExtractor, extract
from .context_analyzer import ContextAnalysis, ContextAnalyzer, analyze_context
from .engine import QualificationEngine
from .errors import (
    InvalidTransitionError,
    QualificationError,
    RateLimitExceededError,
    StateShapeError,
    ValidationWarning,
)
from .pipeline import TurnResult, run_turn
from .qualification_scorer import LeadTier, QualificationResult, QualificationScorer, evaluate_qualification
from .quick_replies import QuickReplyTopic, generate_quick_replies
from .recommendation_engine import Recommendation, generate_recommendations
from .schemas import state_from_dict, state_to_dict
from .stage_machine import STAGE_GRAPH, advance, transition_to
from .state import Attribute, ConversationState, Priority, Stage
from .state_reducer import get_completion_rate, initialize, update_collected
from .usage_store import InMemoryReplyUsageStore, ReplyUsageStore

__all__ = [
    "Action",
    "ActionType",
    "determine_next_action",
    "AttributeExtractor",
    "extract",
    "ContextAnalysis",
    "ContextAnalyzer",
    "analyze_context",
    "QualificationEngine",
    "InvalidTransitionError",
    "QualificationError",
    "RateLimitExceededError",
    "StateShapeError",
    "ValidationWarning",
    "TurnResult",
    "run_turn",
    "LeadTier",
    "QualificationResult",
    "QualificationScorer",
    "evaluate_qualification",
    "QuickReplyTopic",
    "generate_quick_replies",
    "Recommendation",
    "generate_recommendations",
    "state_from_dict",
    "state_to_dict",
    "STAGE_GRAPH",
    "advance",
    "transition_to",
    "Attribute",
    "ConversationState",
    "Priority",
    "Stage",
    "get_completion_rate",
    "initialize",
    "update_collected",
    "InMemoryReplyUsageStore",
    "ReplyUsageStore",
]
