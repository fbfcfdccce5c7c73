"""
Serialization boundary for ConversationState.

The transport layer stores the state as an opaque JSON blob. Everything
crossing that boundary is validated here so malformed input fails fast
instead of deep inside the reducer or scorer.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from .errors import StateShapeError
from .state import (
    ConversationContext,
    ConversationFlags,
    ConversationState,
    PENDING_FIELDS,
    Stage,
    is_present,
)

logger = logging.getLogger(__name__)

OrganizationType = Literal["for-profit", "nonprofit", "enterprise", "startup", "government"]
TimelineBucket = Literal["immediate", "< 1 month", "1-3 months", "3-6 months", "6+ months"]
BudgetBucket = Literal["< 5000", "5000-10000", "10000-25000", "25000-50000", "50000+"]


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")


class FlagsModel(_CamelModel):
    email_verified: bool = Field(default=False, alias="emailVerified")
    has_engaged: bool = Field(default=False, alias="hasEngaged")
    is_qualified: bool = Field(default=False, alias="isQualified")
    ready_for_summary: bool = Field(default=False, alias="readyForSummary")


class ContextModel(_CamelModel):
    start_time: datetime = Field(..., alias="startTime")
    stage_history: List[Stage] = Field(default_factory=list, alias="stageHistory")
    last_transition: Optional[datetime] = Field(default=None, alias="lastTransition")
    qualified_at: Optional[datetime] = Field(default=None, alias="qualifiedAt")
    session_id: Optional[str] = Field(default=None, alias="sessionId")
    lead_id: Optional[str] = Field(default=None, alias="leadId")


class CollectedModel(_CamelModel):
    email: Optional[str] = None
    organization_type: Optional[OrganizationType] = Field(default=None, alias="organizationType")
    business_needs: Optional[List[str]] = Field(default=None, alias="businessNeeds")
    timeline: Optional[TimelineBucket] = None
    budget: Optional[BudgetBucket] = None
    organization_name: Optional[str] = Field(default=None, alias="organizationName")
    name: Optional[str] = None


class PendingModel(_CamelModel):
    organization_type: bool = Field(default=True, alias="organizationType")
    business_needs: bool = Field(default=True, alias="businessNeeds")
    timeline: bool = True
    budget: bool = True


class ConversationStateModel(_CamelModel):
    """Wire shape of a conversation state."""

    stage: Stage
    collected: CollectedModel = Field(default_factory=CollectedModel)
    pending: PendingModel = Field(default_factory=PendingModel)
    flags: FlagsModel = Field(default_factory=FlagsModel)
    context: ContextModel

    @model_validator(mode="after")
    def check_pending_agreement(self):
        collected = self.collected.model_dump(by_alias=True)
        pending = self.pending.model_dump(by_alias=True)
        for key in PENDING_FIELDS:
            if pending[key] == is_present(collected.get(key)):
                raise ValueError(
                    f"pending.{key}={pending[key]} disagrees with collected.{key}"
                )
        return self


def state_to_dict(state: ConversationState) -> Dict[str, Any]:
    """Serialize a state into a JSON-compatible dict with camelCase keys."""
    collected = {}
    for key, value in state.collected.items():
        if isinstance(value, (tuple, list)):
            value = list(value)
        collected[key] = value

    context = state.context
    return {
        "stage": state.stage.value,
        "collected": collected,
        "pending": dict(state.pending),
        "flags": {
            "emailVerified": state.flags.email_verified,
            "hasEngaged": state.flags.has_engaged,
            "isQualified": state.flags.is_qualified,
            "readyForSummary": state.flags.ready_for_summary,
        },
        "context": {
            "startTime": context.start_time.isoformat(),
            "stageHistory": [stage.value for stage in context.stage_history],
            "lastTransition": _isoformat(context.last_transition),
            "qualifiedAt": _isoformat(context.qualified_at),
            "sessionId": context.session_id,
            "leadId": context.lead_id,
        },
    }


def state_from_dict(data: Any) -> ConversationState:
    """
    Rebuild a state from its serialized form.

    Raises:
        StateShapeError: If the blob does not match the wire shape, uses
            unknown enum values, or violates the pending/collected agreement.
    """
    try:
        model = ConversationStateModel.model_validate(data)
    except ValidationError as e:
        logger.error(f"Rejected malformed conversation state: {e.error_count()} error(s)")
        raise StateShapeError("Malformed conversation state", errors=e.errors()) from e

    collected = {}
    for key, value in model.collected.model_dump(by_alias=True, exclude_none=True).items():
        if key == "businessNeeds":
            value = tuple(dict.fromkeys(value))
        collected[key] = value

    ctx = model.context
    return ConversationState(
        stage=model.stage,
        collected=collected,
        pending=model.pending.model_dump(by_alias=True),
        flags=ConversationFlags(
            email_verified=model.flags.email_verified,
            has_engaged=model.flags.has_engaged,
            is_qualified=model.flags.is_qualified,
            ready_for_summary=model.flags.ready_for_summary,
        ),
        context=ConversationContext(
            start_time=ctx.start_time,
            stage_history=tuple(ctx.stage_history),
            last_transition=ctx.last_transition,
            qualified_at=ctx.qualified_at,
            session_id=ctx.session_id,
            lead_id=ctx.lead_id,
        ),
    )


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None
