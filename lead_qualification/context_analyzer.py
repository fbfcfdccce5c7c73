"""
Conversation context analysis.

Deterministic keyword heuristics over the user side of a message
history: intent, topics, sentiment, urgency and a clarity estimate.
"""

import re
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Sequence, Tuple

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ContextAnalysis:
    """Result of analyzing a message history."""
    intent: str = "unknown"
    topics: Tuple[str, ...] = field(default_factory=tuple)
    sentiment: str = "neutral"
    urgency: str = "medium"
    clarity: float = 0.5

    def to_dict(self) -> Dict[str, Any]:
        return {
            "intent": self.intent,
            "topics": list(self.topics),
            "sentiment": self.sentiment,
            "urgency": self.urgency,
            "clarity": self.clarity,
        }


class ContextAnalyzer:
    """Keyword-driven analyzer for conversation histories."""

    # Checked in order, first match wins
    INTENT_KEYWORDS: List[Tuple[str, Tuple[str, ...]]] = [
        ("emergency_support", ("urgent", "asap", "down")),
        ("website_help", ("website", "redesign")),
        ("automation", ("automat", "process")),
        ("consulting", ("consult", "advice")),
    ]

    TOPIC_KEYWORDS: Dict[str, Tuple[str, ...]] = {
        "website": ("website", "site", "web", "homepage"),
        "redesign": ("redesign", "refresh", "update", "modernize"),
        "seo": ("seo", "search", "ranking", "optimization"),
        "automation": ("automat", "workflow", "process"),
        "sales": ("sales", "revenue", "conversion"),
        "crm": ("customer", "tracking", "crm", "relationship"),
        "marketing": ("marketing", "campaign", "promotion"),
        "development": ("develop", "build", "create", "code"),
    }

    POSITIVE_WORDS = ("great", "excellent", "love", "excited", "wonderful")
    NEGATIVE_WORDS = ("frustrated", "angry", "disappointed", "problem", "issue")

    URGENT_WORDS = ("urgent", "asap", "immediately", "now", "emergency", "down")

    def __init__(self):
        # Whole words so "now" does not fire on "know"
        self.urgent_pattern = re.compile(
            r"\b(?:" + "|".join(self.URGENT_WORDS) + r")\b", re.IGNORECASE
        )

    def analyze(self, messages: Sequence[Mapping[str, Any]]) -> ContextAnalysis:
        """
        Analyze the user messages of a conversation.

        Args:
            messages: History entries with "role" and "content" keys

        Returns:
            ContextAnalysis; the neutral default when the input is not a
            list of messages
        """
        if not isinstance(messages, (list, tuple)):
            logger.error(f"Context analysis needs a list of messages, got {type(messages).__name__}")
            return ContextAnalysis()

        user_text = " ".join(
            str(message.get("content") or "")
            for message in messages
            if isinstance(message, Mapping) and message.get("role") == "user"
        )
        lowered = user_text.lower()

        return ContextAnalysis(
            intent=self.detect_intent(lowered),
            topics=self.extract_topics(lowered),
            sentiment=self.analyze_sentiment(lowered),
            urgency=self.detect_urgency(lowered),
            clarity=self.calculate_clarity(user_text),
        )

    def detect_intent(self, text: str) -> str:
        for intent, keywords in self.INTENT_KEYWORDS:
            if any(keyword in text for keyword in keywords):
                return intent
        return "general_inquiry"

    def extract_topics(self, text: str) -> Tuple[str, ...]:
        return tuple(
            topic for topic, keywords in self.TOPIC_KEYWORDS.items()
            if any(keyword in text for keyword in keywords)
        )

    def analyze_sentiment(self, text: str) -> str:
        positive = sum(1 for word in self.POSITIVE_WORDS if word in text)
        negative = sum(1 for word in self.NEGATIVE_WORDS if word in text)
        if positive > negative:
            return "positive"
        if negative > positive:
            return "negative"
        return "neutral"

    def detect_urgency(self, text: str) -> str:
        return "high" if self.urgent_pattern.search(text) else "medium"

    @staticmethod
    def calculate_clarity(text: str) -> float:
        """
        Clarity heuristic in [0.3, 1.0].

        Under 10 characters scores 0.3. Otherwise start at 0.5 and add
        0.2 for 6-99 words, 0.2 for an average word length strictly
        between 3 and 10 characters, and 0.1 for a question mark.
        """
        if not text or len(text) < 10:
            return 0.3

        words = text.split()
        word_count = len(words) or 1
        avg_word_length = len(text) / word_count

        clarity = 0.5
        if 5 < word_count < 100:
            clarity += 0.2
        if 3 < avg_word_length < 10:
            clarity += 0.2
        if "?" in text:
            clarity += 0.1
        return round(min(clarity, 1.0), 4)


_default_analyzer = ContextAnalyzer()


def analyze_context(messages: Sequence[Mapping[str, Any]]) -> ContextAnalysis:
    return _default_analyzer.analyze(messages)
