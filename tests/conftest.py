"""Shared fixtures for lead qualification tests."""

from dataclasses import replace
from datetime import datetime, timezone

import pytest

from config.settings import Settings
from lead_qualification.engine import QualificationEngine
from lead_qualification.state import Stage
from lead_qualification.state_reducer import initialize, update_collected
from lead_qualification.usage_store import InMemoryReplyUsageStore


@pytest.fixture
def now():
    return datetime(2026, 1, 15, 9, 30, tzinfo=timezone.utc)


@pytest.fixture
def make_state(now):
    """Build a state with the given collected attributes, optionally placed in a stage."""
    def _make(stage=Stage.GREETING, **collected):
        state = initialize({"sessionId": "sess-1"}, now=now)
        if collected:
            state = update_collected(state, collected)
        if Stage(stage) != state.stage:
            state = replace(state, stage=Stage(stage))
        return state
    return _make


@pytest.fixture
def qualified_attributes():
    return {
        "email": "jo@example.org",
        "organizationType": "nonprofit",
        "businessNeeds": ["fundraising"],
        "timeline": "1-3 months",
        "budget": "10000-25000",
    }


@pytest.fixture
def settings():
    return Settings(enable_metrics=False, rate_limit_messages=50, history_window=3)


@pytest.fixture
def engine(settings):
    return QualificationEngine(settings=settings, usage_store=InMemoryReplyUsageStore())
