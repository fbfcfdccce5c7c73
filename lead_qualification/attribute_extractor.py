"""
Attribute Extraction for the lead qualification engine.

Extracts structured attributes from free-form user messages:
- Organization type
- Timeline (bucketed)
- Budget (bucketed)
- Business needs (tag set)
- Email address

Matching is deterministic keyword/pattern matching. A category that does
not match is simply absent from the result.
"""

import re
import logging
from typing import Any, Dict, List, Optional, Tuple

from .state import Attribute

logger = logging.getLogger(__name__)


# Spelled-out quantities accepted in duration phrases
NUMBER_WORDS = {
    "a": 1, "an": 1, "one": 1, "two": 2, "three": 3, "four": 4, "five": 5,
    "six": 6, "seven": 7, "eight": 8, "nine": 9, "ten": 10, "eleven": 11,
    "twelve": 12, "couple": 2, "couple of": 2, "few": 3,
}

_QUANTITY = (
    r"(\d+(?:\.\d+)?|couple\s+of|couple|few|an|a|one|two|three|four|five|six"
    r"|seven|eight|nine|ten|eleven|twelve)"
)


class AttributeExtractor:
    """
    Extracts qualification attributes from user messages.

    Single-valued categories are first-match-wins in table order; business
    needs collect every matching tag, in table order.
    """

    # Checked in order; nonprofit must precede the generic business words
    ORGANIZATION_TYPE_PATTERNS: List[Tuple[str, str]] = [
        ("nonprofit", r"\bnon[\s-]?profit|\bcharit(?:y|ies|able)\b|\bngos?\b|\b501\s*\(?c\)?"),
        ("enterprise", r"\benterprise|\bcorporation"),
        ("startup", r"\bstart[\s-]?ups?\b"),
        ("government", r"\bgovernment|\bagenc(?:y|ies)\b|\bmunicipal"),
        ("for-profit", r"\bfor[\s-]profit\b|\bbusiness(?!\s+(?:consult|strateg|intelligence))|\bcompany\b|\bcompanies\b"),
    ]

    BUSINESS_NEED_PATTERNS: List[Tuple[str, str]] = [
        ("website_redesign", r"\bweb\s?sites?\b|\bredesign|\bhomepage|\blanding pages?\b|\bweb development"),
        ("seo", r"\bseo\b|\bsearch engine|\bsearch rankings?\b"),
        ("digital_marketing", r"\bdigital marketing|\bmarketing\b|\bsocial media|\badvertising"),
        ("process_automation", r"\bautomat|\bworkflows?\b|\bdigitiz"),
        ("fundraising", r"\bfundrais|\bdonors?\b|\bdonations?\b|\bgrants?\b"),
        ("volunteer_management", r"\bvolunteer"),
        ("crm", r"\bcrm\b|\bcustomer relationship"),
        ("data_analytics", r"\banalytics|\breporting\b|\bdashboards?\b|\bbusiness intelligence|\bdata management|\bdatabases?\b"),
        ("ai_integration", r"\bai\b|\bartificial intelligence|\bmachine learning|\bchatbots?\b"),
        ("cloud_infrastructure", r"\bcloud\b|\bhosting\b|\bservers?\b"),
        ("compliance_security", r"\bcompliance|\bsecurity\b|\bhipaa\b|\bgdpr\b"),
        ("business_consulting", r"\bconsult|\bstrategy\b|\bstrategic\b|\badvice\b|\bguidance\b"),
        ("software_development", r"\bsoftware\b|\bmobile apps?\b|\bcustom apps?\b|\bportals?\b"),
    ]

    IMMEDIATE_PATTERN = (
        r"\basap\b|\burgent(?:ly)?\b|\bimmediate(?:ly)?\b|\bright away\b"
        r"|\bright now\b|\bas soon as possible\b"
    )

    UNIT_MONTHS = {"week": 0.25, "month": 1.0, "year": 12.0}

    def __init__(self):
        self._build_patterns()

    def _build_patterns(self):
        """Compile regex patterns used by the extractor."""
        self.email_pattern = re.compile(
            r'\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Z|a-z]{2,}\b'
        )

        self.organization_patterns = [
            (org_type, re.compile(pattern, re.IGNORECASE))
            for org_type, pattern in self.ORGANIZATION_TYPE_PATTERNS
        ]
        self.need_patterns = [
            (tag, re.compile(pattern, re.IGNORECASE))
            for tag, pattern in self.BUSINESS_NEED_PATTERNS
        ]

        self.immediate_pattern = re.compile(self.IMMEDIATE_PATTERN, re.IGNORECASE)

        # "2 months", "1-3 months", "two weeks", "a couple of months", "6+ months"
        self.duration_pattern = re.compile(
            rf"\b(?:{_QUANTITY}\s*(?:-|–|to|or)\s*)?{_QUANTITY}(\+)?\s*"
            r"(weeks?|wks?|months?|mos?|years?|yrs?)\b",
            re.IGNORECASE,
        )

        # "$15,000", "10k", "1.5 million", "under $10k"
        self.amount_pattern = re.compile(
            r"(?:\b(under|less than|below)\s+(?:about\s+|around\s+|roughly\s+)?)?"
            r"\$?\s*(\d{1,3}(?:,\d{3})+|\d+(?:\.\d+)?)\s*"
            r"(k|thousand|m|mm|million)?\b",
            re.IGNORECASE,
        )

    def extract(self, message: str) -> Dict[str, Any]:
        """
        Extract all attributes from a message.

        Args:
            message: User message

        Returns:
            Partial attribute map keyed by attribute name
        """
        if not isinstance(message, str) or not message.strip():
            return {}

        attributes: Dict[str, Any] = {}

        email = self._extract_email(message)
        if email:
            attributes[Attribute.EMAIL.value] = email

        # Email domains must not feed keyword or amount matching
        text = self.email_pattern.sub(" ", message)

        organization_type = self._extract_organization_type(text)
        if organization_type:
            attributes[Attribute.ORGANIZATION_TYPE.value] = organization_type

        needs = self._extract_business_needs(text)
        if needs:
            attributes[Attribute.BUSINESS_NEEDS.value] = needs

        timeline = self._extract_timeline(text)
        if timeline:
            attributes[Attribute.TIMELINE.value] = timeline

        budget = self._extract_budget(text)
        if budget:
            attributes[Attribute.BUDGET.value] = budget

        if attributes:
            logger.debug(f"Extracted attributes: {sorted(attributes)}")
        return attributes

    def _extract_email(self, message: str) -> Optional[str]:
        match = self.email_pattern.search(message)
        return match.group(0) if match else None

    def _extract_organization_type(self, text: str) -> Optional[str]:
        for org_type, pattern in self.organization_patterns:
            if pattern.search(text):
                return org_type
        return None

    def _extract_business_needs(self, text: str) -> Tuple[str, ...]:
        return tuple(tag for tag, pattern in self.need_patterns if pattern.search(text))

    def _extract_timeline(self, text: str) -> Optional[str]:
        """Bucket the first urgency cue or duration phrase."""
        if self.immediate_pattern.search(text):
            return "immediate"

        for match in self.duration_pattern.finditer(text):
            months = self._duration_in_months(match)
            if months is not None:
                return self.bucket_timeline(months)
        return None

    def _duration_in_months(self, match: "re.Match") -> Optional[float]:
        # Ranges are bucketed by their upper bound
        _, high, plus, unit = match.groups()
        quantity = self._parse_quantity(high)
        if quantity is None:
            return None

        unit = unit.lower()
        if unit.startswith("w"):
            factor = self.UNIT_MONTHS["week"]
        elif unit.startswith("y"):
            factor = self.UNIT_MONTHS["year"]
        else:
            factor = self.UNIT_MONTHS["month"]

        months = quantity * factor
        # "6+ months" means strictly more than six
        if plus:
            months += 0.5
        return months

    @staticmethod
    def _parse_quantity(token: Optional[str]) -> Optional[float]:
        if token is None:
            return None
        token = " ".join(token.lower().split())
        if token in NUMBER_WORDS:
            return float(NUMBER_WORDS[token])
        try:
            return float(token)
        except ValueError:
            return None

    @staticmethod
    def bucket_timeline(months: float) -> str:
        if months <= 1:
            return "< 1 month"
        if months <= 3:
            return "1-3 months"
        if months <= 6:
            return "3-6 months"
        return "6+ months"

    def _extract_budget(self, text: str) -> Optional[str]:
        """Bucket the first dollar amount that is not part of a duration."""
        text = self.duration_pattern.sub(" ", text)

        match = self.amount_pattern.search(text)
        if not match:
            return None

        bound, number, suffix = match.groups()
        try:
            amount = float(number.replace(",", ""))
        except ValueError:
            return None

        suffix = (suffix or "").lower()
        if suffix in ("k", "thousand"):
            amount *= 1000
        elif suffix in ("m", "mm", "million"):
            amount *= 1000000

        # "under $10k" sits strictly below the stated figure
        if bound:
            amount -= 1

        return self.bucket_budget(amount)

    @staticmethod
    def bucket_budget(amount: float) -> str:
        if amount < 5000:
            return "< 5000"
        if amount < 10000:
            return "5000-10000"
        if amount < 25000:
            return "10000-25000"
        if amount < 50000:
            return "25000-50000"
        return "50000+"


_default_extractor = AttributeExtractor()


def extract(utterance: str) -> Dict[str, Any]:
    """Extract attributes using the shared default extractor."""
    return _default_extractor.extract(utterance)
