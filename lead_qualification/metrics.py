"""
Prometheus metrics for the lead qualification engine.

Only the engine records metrics; the pure core never touches them.
"""

from prometheus_client import Counter, Histogram


ACTION_COUNT = Counter(
    "lead_qualification_actions_total",
    "Next actions chosen by the arbiter",
    ["action_type"],
)
STAGE_TRANSITIONS = Counter(
    "lead_qualification_stage_transitions_total",
    "Conversation stage transitions",
    ["from_stage", "to_stage"],
)
QUALIFICATION_SCORE_HIST = Histogram(
    "lead_qualification_score",
    "Qualification score distribution",
    buckets=[0.1, 0.2, 0.3, 0.4, 0.5, 0.6, 0.7, 0.8, 0.9, 1.0],
)
RATE_LIMIT_REJECTIONS = Counter(
    "lead_qualification_rate_limit_rejections_total",
    "Turns rejected by the per-session rate limiter",
)
QUICK_REPLY_SELECTIONS = Counter(
    "lead_qualification_quick_reply_selections_total",
    "Quick reply selections by resulting action",
    ["reply_action"],
)
VALIDATION_WARNINGS = Counter(
    "lead_qualification_validation_warnings_total",
    "Attribute values discarded during validation",
    ["field"],
)


def record_action(action_type: str):
    """Record a chosen next action."""
    ACTION_COUNT.labels(action_type=action_type).inc()


def record_stage_transition(from_stage: str, to_stage: str):
    """Record a stage transition."""
    STAGE_TRANSITIONS.labels(from_stage=from_stage, to_stage=to_stage).inc()


def record_qualification_score(score: float):
    """Record a qualification score."""
    QUALIFICATION_SCORE_HIST.observe(score)


def record_rate_limit_rejection():
    RATE_LIMIT_REJECTIONS.inc()


def record_quick_reply(reply_action: str):
    QUICK_REPLY_SELECTIONS.labels(reply_action=reply_action).inc()


def record_validation_warning(field: str):
    VALIDATION_WARNINGS.labels(field=field).inc()
