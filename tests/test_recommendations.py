"""Tests for recommendations, quick replies and reply usage analytics."""

import threading

import pytest

from lead_qualification.quick_replies import (
    DEFAULT_REPLIES,
    REPLY_TEMPLATES,
    QuickReplyTopic,
    ReplyActionType,
    generate_dynamic_replies,
    generate_personalized_replies,
    generate_quick_replies,
    get_reply_action,
    get_smart_suggestions,
    validate_reply,
)
from lead_qualification.recommendation_engine import Recommendation, generate_recommendations
from lead_qualification.state import Priority
from lead_qualification.usage_store import InMemoryReplyUsageStore, ReplyUsageStore, reply_analytics


# ── Recommendations ───────────────────────────────────

class TestRecommendations:
    def test_maps_needs_to_services(self):
        recs = generate_recommendations(["website_redesign", "seo"], "for-profit")
        assert recs == [
            Recommendation("Web Development Package", "Complete website redesign", Priority.HIGH),
            Recommendation("Digital Marketing Package", "SEO optimization", Priority.MEDIUM),
        ]

    def test_deduplicates_by_service(self):
        recs = generate_recommendations(["seo", "digital_marketing", "marketing_automation"])
        assert [r.service for r in recs] == ["Digital Marketing Package"]
        assert recs[0].reason == "SEO optimization"

    def test_nonprofit_keeps_first_seen_order(self):
        recs = generate_recommendations(
            ["website_redesign", "fundraising", "volunteer_management"], "nonprofit",
        )
        assert [r.service for r in recs] == [
            "Web Development Package",
            "Nonprofit Fundraising Platform",
            "Nonprofit Volunteer Management System",
        ]
        assert recs[1].priority == Priority.HIGH
        assert recs[2].priority == Priority.MEDIUM

    def test_fundraising_priority_only_raised_for_nonprofits(self):
        recs = generate_recommendations(["fundraising"], "for-profit")
        assert recs[0].priority == Priority.MEDIUM

    def test_unknown_needs_skipped(self):
        assert generate_recommendations(["quantum_teleportation"]) == []

    def test_no_needs(self):
        assert generate_recommendations([]) == []
        assert generate_recommendations(None) == []

    def test_to_dict(self):
        rec = generate_recommendations(["crm"])[0]
        assert rec.to_dict() == {
            "service": "CRM Implementation",
            "reason": "Customer relationship tracking",
            "priority": "medium",
        }


# ── Quick Replies ─────────────────────────────────────

class TestQuickReplies:
    def test_nonprofit_business_needs(self):
        replies = generate_quick_replies("businessNeeds", "nonprofit")
        assert "Fundraising Support" in replies
        assert "Volunteer Management" in replies
        assert len(replies) <= 5

    def test_default_business_needs(self):
        replies = generate_quick_replies("businessNeeds", "startup")
        assert replies[0] == "Website Development"
        assert "Fundraising Support" not in replies

    @pytest.mark.parametrize("topic", list(QuickReplyTopic))
    def test_every_topic_has_replies(self, topic):
        assert topic in REPLY_TEMPLATES
        replies = generate_quick_replies(topic)
        assert 1 <= len(replies) <= 5

    @pytest.mark.parametrize("topic", ["weather", None, 42])
    def test_unknown_topic_uses_default(self, topic):
        assert generate_quick_replies(topic) == list(DEFAULT_REPLIES)

    def test_limit(self):
        assert generate_quick_replies("timeline", limit=2) == ["Immediate (< 1 month)", "1-3 months"]
        assert len(generate_quick_replies("timeline", limit=0)) == 1

    def test_nonprofit_closing(self):
        replies = generate_quick_replies("closing", "nonprofit")
        assert "See nonprofit pricing" in replies


# ── Dynamic & Smart Replies ───────────────────────────

class TestDynamicReplies:
    def test_timeline_first_while_pending(self, make_state):
        replies = generate_dynamic_replies(make_state(organizationType="startup"))
        assert replies == list(REPLY_TEMPLATES[QuickReplyTopic.TIMELINE].default)

    def test_budget_while_pending(self, make_state):
        replies = generate_dynamic_replies(make_state(timeline="3-6 months"))
        assert replies[0] == "Under $10k"

    def test_content_follow_up(self, make_state):
        state = make_state(timeline="3-6 months", budget="< 5000")
        history = [
            {"role": "user", "content": "Our website is slow"},
            {"role": "assistant", "content": "Sorry to hear that"},
        ]
        assert generate_dynamic_replies(state, history)[0] == "Complete redesign"

    def test_next_pending_field(self, make_state):
        state = make_state(timeline="3-6 months", budget="< 5000")
        assert generate_dynamic_replies(state, [])[0] == "For-profit business"

    def test_closing_when_nothing_pending(self, make_state, qualified_attributes):
        replies = generate_dynamic_replies(make_state(**qualified_attributes))
        assert "Schedule mission consultation" in replies

    def test_smart_suggestions(self):
        assert get_smart_suggestions("We need donor tracking ASAP")[0] == "Donor database setup"
        assert get_smart_suggestions("Is there something cheap?")[0] == "Basic package"
        assert get_smart_suggestions("hello") == list(DEFAULT_REPLIES)

    def test_personalized(self):
        assert generate_personalized_replies("Acme") == [
            "Tell me about Acme's needs",
            "Acme's current challenges",
            "Tell me more",
            "Schedule a call",
            "See services",
        ]
        assert generate_personalized_replies() == list(DEFAULT_REPLIES)


# ── Reply Validation & Actions ────────────────────────

class TestReplyActions:
    @pytest.mark.parametrize("reply,topic,expected", [
        ("Startup", "organizationType", True),
        ("Fundraising Support", "businessNeeds", True),
        ("Other needs", "budget", True),
        ("Startup", "timeline", False),
        ("Startup", "weather", False),
        ("", "timeline", False),
    ])
    def test_validate_reply(self, reply, topic, expected):
        assert validate_reply(reply, topic) is expected

    @pytest.mark.parametrize("reply,action_type", [
        ("Schedule consultation", ReplyActionType.SCHEDULE_CALL),
        ("Schedule a call", ReplyActionType.SCHEDULE_CALL),
        ("Fundraising Support", ReplyActionType.SELECT_NEED),
        ("1-3 months", ReplyActionType.SET_TIMELINE),
        ("Immediate (< 1 month)", ReplyActionType.SET_TIMELINE),
        ("$10k - $25k", ReplyActionType.SET_BUDGET),
        ("Under $10k", ReplyActionType.SET_BUDGET),
        ("Get my summary", ReplyActionType.GENERATE_SUMMARY),
        ("Start over", ReplyActionType.CONTINUE_CONVERSATION),
        ("Tell me more", ReplyActionType.CONTINUE_CONVERSATION),
    ])
    def test_reply_action_types(self, reply, action_type):
        assert get_reply_action(reply).type == action_type

    def test_reply_action_data(self):
        assert get_reply_action("Volunteer Management").to_dict() == {
            "type": "select_need",
            "data": {"need": "volunteer_management"},
        }
        assert get_reply_action("Over $50k").data == {"budget": "Over $50k"}


# ── Usage Analytics ───────────────────────────────────

class TestReplyUsage:
    def test_store_satisfies_protocol(self):
        assert isinstance(InMemoryReplyUsageStore(), ReplyUsageStore)

    def test_analytics(self):
        store = InMemoryReplyUsageStore()
        for reply in ("Tell me more", "Tell me more", "See services", "Startup", "1-3 months"):
            store.record("s1", reply)
        store.record("s2", "Tell me more")

        analytics = reply_analytics(store)
        assert analytics["mostUsed"][0] == {"reply": "Tell me more", "count": 3}
        assert analytics["avgRepliesPerSession"] == 2.5
        assert analytics["conversionRate"] == 50.0

    def test_empty_store(self):
        assert reply_analytics(InMemoryReplyUsageStore()) == {
            "mostUsed": [],
            "avgRepliesPerSession": 0.0,
            "conversionRate": 0.0,
        }

    def test_clear(self):
        store = InMemoryReplyUsageStore()
        store.record("s1", "Startup")
        store.clear()
        assert store.counts() == {}

    def test_concurrent_records(self):
        store = InMemoryReplyUsageStore()

        def worker():
            for _ in range(200):
                store.record("s1", "Tell me more")

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert store.counts() == {("s1", "Tell me more"): 1600}
