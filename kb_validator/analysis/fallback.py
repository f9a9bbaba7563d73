"""Generic best-effort extraction for text that matches no known scenario.

Every confidence here is a fixed constant from :data:`CONFIDENCE`, not a
computed score.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone

from kb_validator.analysis.response import (
    ExtractedItem,
    KBMatch,
    KnowledgeGap,
    StructuredResponse,
)

CONFIDENCE = {
    "email": 0.95,
    "value": 0.7,
    "intent": 0.75,
    "routing": 0.68,
    "overall": 0.75,
    "kb_general_faq": 0.65,
    "gap_manual_review": 0.88,
    "gap_routing_rules": 0.72,
}

DEFAULT_ROUTING = "Customer Support > General Team"
DEFAULT_INTENT = "General Inquiry"
MAX_VALUE_ITEMS = 3

_EMAIL_RE = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
_VALUE_RE = re.compile(
    r"\$[0-9,]+|[0-9]+\s*(?:units|pieces|items|employees|users)",
    re.IGNORECASE,
)

# First group with any keyword present wins.
_INTENT_KEYWORDS: tuple[tuple[tuple[str, ...], str], ...] = (
    (("quote", "pricing", "cost"), "Pricing Inquiry"),
    (("support", "help", "issue"), "Support Request"),
    (("information", "details", "specifications"), "Information Request"),
    (("order", "purchase", "buy"), "Purchase Intent"),
    (("meeting", "consultation", "discuss"), "Consultation Request"),
)


def extract_contact(text: str) -> ExtractedItem | None:
    """Return an item for the first email address in *text*, if any."""
    match = _EMAIL_RE.search(text)
    if not match:
        return None
    address = match.group(0)
    return ExtractedItem(
        sku="EMAIL-CONTACT",
        description=address,
        quantity=1,
        category="Contact Information",
        confidence=CONFIDENCE["email"],
        extraction_source=f"Email address found: {address}",
    )


def extract_values(text: str, limit: int = MAX_VALUE_ITEMS) -> list[ExtractedItem]:
    """Currency amounts and counted nouns, left to right, capped at *limit*."""
    items: list[ExtractedItem] = []
    for index, match in enumerate(_VALUE_RE.finditer(text), start=1):
        if index > limit:
            break
        value = match.group(0)
        items.append(
            ExtractedItem(
                sku=f"ITEM-{index}",
                description=value,
                quantity=1,
                category="Extracted Value",
                confidence=CONFIDENCE["value"],
                extraction_source=f"Numerical value detected: {value}",
            )
        )
    return items


def detect_intent(text: str) -> str:
    text_lower = text.lower()
    for keywords, intent in _INTENT_KEYWORDS:
        if any(keyword in text_lower for keyword in keywords):
            return intent
    return DEFAULT_INTENT


def count_words(text: str) -> int:
    """Whitespace-delimited tokens; empty and blank text count as zero words."""
    return len(text.split())


def extract(text: str, now: datetime | None = None) -> StructuredResponse:
    """Synthesize a structured response for unrecognized *text*.

    Args:
        text: The raw submitted text (may be empty).
        now: Extraction timestamp; defaults to the current UTC time.

    Returns:
        A new :class:`StructuredResponse` with generic routing, a single
        FAQ knowledge-base match and two fixed knowledge gaps.
    """
    if now is None:
        now = datetime.now(timezone.utc)

    items: list[ExtractedItem] = []
    contact = extract_contact(text)
    if contact is not None:
        items.append(contact)
    items.extend(extract_values(text))

    return StructuredResponse(
        intent=detect_intent(text),
        intent_confidence=CONFIDENCE["intent"],
        routing=DEFAULT_ROUTING,
        routing_confidence=CONFIDENCE["routing"],
        confidence=CONFIDENCE["overall"],
        items=items,
        kb_matches=[
            KBMatch(
                title="General FAQ",
                section="Common Questions",
                confidence=CONFIDENCE["kb_general_faq"],
                relevance="Medium",
                row_start=1,
                row_end=15,
                match_reason="No specific knowledge base matches found for this input type",
            )
        ],
        knowledge_gaps=[
            KnowledgeGap(
                description="Input content requires manual review for proper classification",
                confidence=CONFIDENCE["gap_manual_review"],
                gap_reason="Content doesn't match any known scenario patterns",
            ),
            KnowledgeGap(
                description="No specific routing rules defined for this type of inquiry",
                confidence=CONFIDENCE["gap_routing_rules"],
                gap_reason="Routing logic needs expansion for this content type",
            ),
        ],
        extracted_metadata={
            "input_length": len(text),
            "detected_type": "general",
            "processing_time": now.isoformat(),
            "word_count": count_words(text),
        },
    )
