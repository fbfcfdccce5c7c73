"""Tests for conversation state, the reducer, the stage machine and serialization."""

import json
import logging
from dataclasses import replace
from datetime import timedelta

import pytest

from lead_qualification.errors import InvalidTransitionError, StateShapeError, ValidationWarning
from lead_qualification.schemas import state_from_dict, state_to_dict
from lead_qualification.stage_machine import (
    STAGE_GRAPH,
    advance,
    allowed_transitions,
    can_transition,
    transition_to,
)
from lead_qualification.state import PENDING_FIELDS, ConversationState, Stage, is_present
from lead_qualification.state_reducer import (
    MILESTONES,
    apply_qualification,
    get_completion_rate,
    get_next_milestone,
    get_progress,
    initialize,
    mark_engaged,
    mark_ready_for_summary,
    update_collected,
    validate_attributes,
)


def assert_pending_agrees(state):
    for key in PENDING_FIELDS:
        assert state.pending[key] == (not is_present(state.collected.get(key)))


# ── Initialize ────────────────────────────────────────

class TestInitialize:
    def test_default_state(self, now):
        state = initialize(now=now)
        assert state.stage == Stage.GREETING
        assert state.collected == {}
        assert all(state.pending[key] for key in PENDING_FIELDS)
        assert not state.flags.email_verified
        assert not state.flags.is_qualified
        assert state.context.start_time == now
        assert state.context.stage_history == ()
        assert state.context.last_transition is None

    def test_seeded_state(self, now):
        state = initialize({
            "email": "jane@techcorp.com",
            "name": "Jane Doe",
            "organizationName": "Tech Corp",
            "organizationType": "for-profit",
            "sessionId": "sess-9",
            "leadId": "lead-3",
        }, now=now)
        assert state.collected["email"] == "jane@techcorp.com"
        assert state.collected["organizationName"] == "Tech Corp"
        assert state.flags.email_verified
        assert state.pending["organizationType"] is False
        assert state.pending["businessNeeds"] is True
        assert state.context.session_id == "sess-9"
        assert state.context.lead_id == "lead-3"

    def test_invalid_seed_type_is_discarded(self, now, caplog):
        with caplog.at_level(logging.WARNING):
            state = initialize({"organizationType": "charity"}, now=now)
        assert "organizationType" not in state.collected
        assert state.pending["organizationType"] is True
        assert "organizationType" in caplog.text

    def test_none_seed_values_are_ignored(self, now):
        state = initialize({"email": None, "name": None}, now=now)
        assert state.collected == {}

    def test_unknown_stage_rejected(self):
        with pytest.raises(StateShapeError):
            ConversationState(stage="archived")


# ── Update Collected ──────────────────────────────────

class TestUpdateCollected:
    def test_clears_pending(self, make_state):
        state = update_collected(make_state(), {"timeline": "3-6 months"})
        assert state.collected["timeline"] == "3-6 months"
        assert state.pending["timeline"] is False

    def test_does_not_mutate_input(self, make_state):
        before = make_state()
        snapshot = state_to_dict(before)
        update_collected(before, {"organizationType": "startup", "businessNeeds": ["seo"]})
        assert state_to_dict(before) == snapshot

    def test_rejects_unknown_enum_values(self, make_state):
        state = make_state()
        updated = update_collected(state, {"organizationType": "cooperative", "budget": "lots"})
        assert updated is state

    def test_valid_and_invalid_in_one_call(self, make_state):
        state = update_collected(make_state(), {"timeline": "someday", "budget": "50000+"})
        assert "timeline" not in state.collected
        assert state.collected["budget"] == "50000+"

    def test_sets_email_verified(self, make_state):
        state = update_collected(make_state(), {"email": "sam@example.com"})
        assert state.flags.email_verified

    def test_business_needs_merge_in_first_seen_order(self, make_state):
        state = update_collected(make_state(), {"businessNeeds": ["seo"]})
        state = update_collected(state, {"businessNeeds": ["website_redesign", "seo", "crm"]})
        assert state.business_needs == ("seo", "website_redesign", "crm")

    def test_business_needs_from_set_are_sorted(self, make_state):
        state = update_collected(make_state(), {"businessNeeds": {"seo", "crm"}})
        assert state.business_needs == ("crm", "seo")

    def test_single_valued_attributes_overwrite(self, make_state):
        state = make_state(organizationType="startup")
        state = update_collected(state, {"organizationType": "enterprise"})
        assert state.collected["organizationType"] == "enterprise"

    @pytest.mark.parametrize("attrs", [
        {"email": "not-an-email"},
        {"favoriteColor": "blue"},
        {"businessNeeds": [42]},
        {"businessNeeds": 42},
        {"name": ""},
        {"timeline": 3},
    ])
    def test_invalid_values_produce_warnings(self, attrs):
        accepted, warnings = validate_attributes(attrs)
        assert accepted == {}
        assert len(warnings) == 1
        assert isinstance(warnings[0], ValidationWarning)

    def test_warning_details(self):
        _, warnings = validate_attributes({"organizationType": "cooperative"})
        assert warnings[0].field == "organizationType"
        assert warnings[0].value == "cooperative"
        assert warnings[0].to_dict()["field"] == "organizationType"

    def test_pending_tracks_collected(self, make_state):
        updates = [
            {"organizationType": "government"},
            {"businessNeeds": "crm"},
            {"timeline": "bogus"},
            {"budget": "< 5000", "email": "x@y.gov"},
            {"timeline": "immediate"},
        ]
        state = make_state()
        assert_pending_agrees(state)
        for attrs in updates:
            state = update_collected(state, attrs)
            assert_pending_agrees(state)

    @pytest.mark.parametrize("attrs", [
        {"email": "a@b.co"},
        {"organizationType": "nonprofit"},
        {"businessNeeds": ["seo"]},
        {"timeline": "6+ months"},
        {"budget": "50000+"},
        {"name": "Sam"},
    ])
    def test_completion_rate_never_decreases(self, make_state, attrs):
        states = [
            make_state(),
            make_state(email="a@b.co", timeline="immediate"),
            make_state(email="a@b.co", organizationType="startup", businessNeeds=["crm"], timeline="immediate"),
        ]
        for state in states:
            assert get_completion_rate(update_collected(state, attrs)) >= get_completion_rate(state)


# ── Completion & Progress ─────────────────────────────

class TestProgress:
    def test_completion_rate_excludes_budget(self, make_state):
        assert get_completion_rate(make_state(budget="50000+")) == 0.0
        assert get_completion_rate(make_state(email="a@b.co", timeline="immediate")) == 0.5

    def test_full_completion(self, make_state, qualified_attributes):
        assert get_completion_rate(make_state(**qualified_attributes)) == 1.0

    def test_milestones_in_order(self, make_state):
        state = make_state()
        seen = [get_next_milestone(state)]
        for attrs in (
            {"email": "a@b.co"},
            {"organizationType": "startup"},
            {"businessNeeds": ["seo"]},
            {"timeline": "immediate"},
        ):
            state = update_collected(state, attrs)
            seen.append(get_next_milestone(state))
        state = apply_qualification(state, True)
        seen.append(get_next_milestone(state))
        assert tuple(seen) == MILESTONES

    def test_progress_snapshot(self, make_state, now):
        state = make_state(email="a@b.co", businessNeeds=["seo"])
        progress = get_progress(state, now=now + timedelta(seconds=90))
        assert progress == {
            "currentStage": "greeting",
            "completionRate": 0.5,
            "duration": 90.0,
            "fieldsCollected": 2,
            "fieldsPending": 3,
            "nextMilestone": "identify_organization",
        }

    def test_flag_setters_return_new_values(self, make_state):
        state = make_state()
        engaged = mark_engaged(state)
        ready = mark_ready_for_summary(engaged)
        assert engaged.flags.has_engaged and not state.flags.has_engaged
        assert ready.flags.ready_for_summary and not engaged.flags.ready_for_summary
        assert mark_engaged(engaged) is engaged


# ── Stage Machine ─────────────────────────────────────

class TestStageMachine:
    def test_graph(self):
        assert allowed_transitions("greeting") == (Stage.DISCOVERY,)
        assert set(allowed_transitions(Stage.DISCOVERY)) == {Stage.QUALIFICATION, Stage.CLARIFICATION}
        assert set(allowed_transitions(Stage.CLARIFICATION)) == {Stage.DISCOVERY, Stage.QUALIFICATION}
        assert set(allowed_transitions(Stage.QUALIFICATION)) == {Stage.SCHEDULING, Stage.SUMMARY}
        assert allowed_transitions(Stage.SCHEDULING) == (Stage.SUMMARY,)
        assert allowed_transitions(Stage.SUMMARY) == (Stage.COMPLETE,)
        assert allowed_transitions(Stage.COMPLETE) == ()

    def test_no_edge_back_to_greeting(self):
        assert all(Stage.GREETING not in targets for targets in STAGE_GRAPH.values())

    def test_transition_records_history(self, make_state, now):
        state = transition_to(make_state(), "discovery", now=now)
        state = transition_to(state, Stage.CLARIFICATION, now=now)
        assert state.stage == Stage.CLARIFICATION
        assert state.context.stage_history == (Stage.GREETING, Stage.DISCOVERY)
        assert state.context.last_transition == now

    @pytest.mark.parametrize("stage", list(Stage))
    def test_every_non_edge_raises(self, make_state, stage):
        state = make_state(stage=stage)
        snapshot = state_to_dict(state)
        for target in list(Stage) + ["archived", None]:
            if target in STAGE_GRAPH[stage]:
                continue
            with pytest.raises(InvalidTransitionError):
                transition_to(state, target)
            assert not can_transition(state, target)
        assert state_to_dict(state) == snapshot

    def test_error_message(self, make_state):
        with pytest.raises(InvalidTransitionError) as exc_info:
            transition_to(make_state(), "summary")
        assert str(exc_info.value) == "Invalid state transition from greeting to summary"
        assert exc_info.value.current == "greeting"
        assert exc_info.value.target == "summary"

    def test_qualified_at_stamped_for_qualified_leads(self, make_state, now):
        state = apply_qualification(make_state(stage=Stage.QUALIFICATION), True)
        scheduled = transition_to(state, Stage.SCHEDULING, now=now)
        assert scheduled.context.qualified_at == now

    def test_qualified_at_not_stamped_otherwise(self, make_state, now):
        scheduled = transition_to(make_state(stage=Stage.QUALIFICATION), Stage.SCHEDULING, now=now)
        assert scheduled.context.qualified_at is None
        summary = transition_to(
            apply_qualification(make_state(stage=Stage.QUALIFICATION), True), Stage.SUMMARY, now=now,
        )
        assert summary.context.qualified_at is None


# ── Stage Advance ─────────────────────────────────────

class TestAdvance:
    def test_greeting_moves_to_discovery(self, make_state):
        assert advance(make_state(), {}).stage == Stage.DISCOVERY

    def test_discovery_without_extraction_needs_clarification(self, make_state):
        assert advance(make_state(stage=Stage.DISCOVERY), {}).stage == Stage.CLARIFICATION

    def test_clarification_back_to_discovery(self, make_state):
        state = make_state(stage=Stage.CLARIFICATION, organizationType="startup")
        assert advance(state, {"organizationType": "startup"}).stage == Stage.DISCOVERY

    def test_discovery_stays_while_collecting(self, make_state):
        state = make_state(stage=Stage.DISCOVERY, organizationType="startup")
        assert advance(state, {"organizationType": "startup"}).stage == Stage.DISCOVERY

    def test_qualification_once_discovery_fields_collected(self, make_state):
        state = make_state(
            stage=Stage.CLARIFICATION,
            organizationType="startup",
            businessNeeds=["seo"],
            timeline="3-6 months",
        )
        assert advance(state, {}).stage == Stage.QUALIFICATION

    def test_qualified_lead_moves_to_scheduling(self, make_state, now):
        state = apply_qualification(make_state(stage=Stage.QUALIFICATION), True)
        advanced = advance(state, {}, now=now)
        assert advanced.stage == Stage.SCHEDULING
        assert advanced.context.qualified_at == now

    def test_summary_request_from_qualification(self, make_state):
        state = mark_ready_for_summary(make_state(stage=Stage.QUALIFICATION))
        assert advance(state, {}).stage == Stage.SUMMARY

    def test_qualification_waits_while_fields_pending(self, make_state):
        state = make_state(stage=Stage.QUALIFICATION)
        assert advance(state, {}) is state

    def test_scheduling_to_summary(self, make_state):
        state = make_state(stage=Stage.SCHEDULING)
        assert advance(state, {}) is state
        assert advance(mark_ready_for_summary(state), {}).stage == Stage.SUMMARY

    @pytest.mark.parametrize("stage", [Stage.SUMMARY, Stage.COMPLETE])
    def test_closing_stages_do_not_move(self, make_state, stage):
        state = mark_ready_for_summary(make_state(stage=stage))
        assert advance(state, {"timeline": "immediate"}) is state


# ── Serialization ─────────────────────────────────────

class TestSerialization:
    def test_round_trip(self, make_state, qualified_attributes, now):
        state = make_state(**qualified_attributes, name="Jo", organizationName="Helping Hands")
        state = transition_to(state, Stage.DISCOVERY, now=now)
        state = mark_engaged(state)
        assert state_from_dict(state_to_dict(state)) == state

    def test_round_trip_through_json(self, make_state, now):
        state = transition_to(make_state(email="a@b.co", businessNeeds=["seo", "crm"]), "discovery", now=now)
        blob = json.loads(json.dumps(state_to_dict(state)))
        assert state_from_dict(blob) == state

    def test_wire_shape(self, make_state, now):
        data = state_to_dict(make_state(email="a@b.co", businessNeeds=["seo"]))
        assert data["stage"] == "greeting"
        assert data["collected"] == {"email": "a@b.co", "businessNeeds": ["seo"]}
        assert data["pending"] == {
            "organizationType": True,
            "businessNeeds": False,
            "timeline": True,
            "budget": True,
        }
        assert data["flags"] == {
            "emailVerified": True,
            "hasEngaged": False,
            "isQualified": False,
            "readyForSummary": False,
        }
        assert data["context"]["startTime"] == now.isoformat()
        assert data["context"]["stageHistory"] == []
        assert data["context"]["sessionId"] == "sess-1"

    def test_missing_context_rejected(self, make_state):
        data = state_to_dict(make_state())
        del data["context"]
        with pytest.raises(StateShapeError) as exc_info:
            state_from_dict(data)
        assert exc_info.value.errors

    @pytest.mark.parametrize("mutate", [
        lambda d: d.update(stage="archived"),
        lambda d: d["collected"].update(budget="a lot"),
        lambda d: d["collected"].update(favoriteColor="blue"),
        lambda d: d["pending"].update(timeline=False),
        lambda d: d["flags"].update(emailVerified="maybe"),
        lambda d: d["context"].update(stageHistory=["lobby"]),
    ])
    def test_malformed_state_rejected(self, make_state, mutate):
        data = state_to_dict(make_state())
        mutate(data)
        with pytest.raises(StateShapeError):
            state_from_dict(data)

    def test_not_a_mapping(self):
        with pytest.raises(StateShapeError):
            state_from_dict(["greeting"])

    def test_frozen(self, make_state):
        state = make_state()
        with pytest.raises(Exception):
            state.stage = Stage.COMPLETE
        assert replace(state, stage=Stage.DISCOVERY).stage == Stage.DISCOVERY

    def test_collected_and_pending_are_read_only(self, make_state):
        state = make_state(email="jo@example.org")
        with pytest.raises(TypeError):
            state.collected["email"] = "other@example.org"
        with pytest.raises(TypeError):
            state.pending["timeline"] = False
        assert state.collected["email"] == "jo@example.org"

    def test_derived_states_do_not_share_maps(self, make_state, now):
        before = make_state(email="jo@example.org")
        after = transition_to(before, Stage.DISCOVERY, now=now)
        assert after.collected is not before.collected

        source = {"email": "jo@example.org"}
        state = replace(before, collected=source)
        source["email"] = "other@example.org"
        assert state.collected["email"] == "jo@example.org"
