"""Keyword scenario classification: ordered first-match rules over lower-cased text."""

from __future__ import annotations

import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Data types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ClassificationRule:
    """Maps to *scenario_id* when any keyword of any group appears in the text."""

    scenario_id: str
    keyword_groups: tuple[tuple[str, ...], ...]

    def first_hit(self, text_lower: str) -> str | None:
        """Return the first keyword found in *text_lower*, or None."""
        for group in self.keyword_groups:
            for keyword in group:
                if keyword in text_lower:
                    return keyword
        return None


@dataclass(frozen=True)
class ScenarioMatch:
    """Result of a successful classification."""

    scenario_id: str
    keyword: str


# ---------------------------------------------------------------------------
# Rules: evaluated top to bottom, most specific domain first
# ---------------------------------------------------------------------------

# The order is load-bearing: text mentioning both "stainless steel" and
# "project management" must land on manufacturing, not the enterprise RFP.
CLASSIFICATION_RULES: tuple[ClassificationRule, ...] = (
    ClassificationRule(
        "manufacturing-custom-fabrication",
        (
            ("penn stainless",),
            ("stainless steel", "fabrication", "tanks", "asme"),
            ("316l", "pressure vessel", "welding"),
        ),
    ),
    ClassificationRule(
        "construction-project-bid",
        (
            ("tiny's construction",),
            ("construction", "bidding", "retail addition"),
            ("concrete foundation", "steel frame", "shopping center"),
        ),
    ),
    ClassificationRule(
        "energy-renewable-project",
        (
            ("novitium energy",),
            ("250 mw", "solar farm", "battery energy storage"),
            ("photovoltaic", "grid interconnection", "138kv"),
        ),
    ),
    ClassificationRule(
        "legal-compliance-inquiry",
        (
            ("globaltech",),
            ("eu ai act", "compliance", "chatbot"),
            ("ce marking", "dpia", "conformity assessment"),
        ),
    ),
    ClassificationRule(
        "emergency-service-request",
        (
            ("metro transit",),
            ("urgent", "water main break", "flooded"),
            ("union station", "tunnel", "50,000 gallons"),
        ),
    ),
    ClassificationRule(
        "support-billing",
        (
            ("acc-789456",),
            ("invoice", "charged $299", "basic plan"),
            ("downgraded", "refund", "account number"),
        ),
    ),
    ClassificationRule(
        "technical-support",
        (
            ("app-2024-x71",),
            ("api integration", "403 forbidden", "1,200+ users"),
            ("sync user data", "stopped working", "app id"),
        ),
    ),
    ClassificationRule(
        "rfp-enterprise",
        (
            ("500-employee", "comprehensive software"),
            ("project management", "crm", "enterprise security"),
            ("annual licensing", "api integrations"),
        ),
    ),
)


# ---------------------------------------------------------------------------
# Public entry points
# ---------------------------------------------------------------------------


def classify_with_match(
    text: str,
    rules: tuple[ClassificationRule, ...] = CLASSIFICATION_RULES,
) -> ScenarioMatch | None:
    """Classify *text* and report which keyword decided it.

    Returns None when no rule fires, signalling that the generic
    fallback extractor should be used.
    """
    text_lower = text.lower()
    for rule in rules:
        keyword = rule.first_hit(text_lower)
        if keyword is not None:
            logger.debug("Rule %s fired on keyword %r", rule.scenario_id, keyword)
            return ScenarioMatch(scenario_id=rule.scenario_id, keyword=keyword)
    return None


def classify(
    text: str,
    rules: tuple[ClassificationRule, ...] = CLASSIFICATION_RULES,
) -> str | None:
    """Return the id of the first scenario whose rule fires on *text*, or None."""
    match = classify_with_match(text, rules)
    return match.scenario_id if match else None
