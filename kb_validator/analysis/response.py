"""Structured analysis response: the contract shared by the simulated engine and the live agent."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any


class ResponseFormatError(ValueError):
    """Raised when a payload does not match the structured response contract."""


# ---------------------------------------------------------------------------
# Data types
# ---------------------------------------------------------------------------


@dataclass
class ExtractedItem:
    """A line item pulled out of the submitted text."""

    sku: str
    description: str
    quantity: int
    category: str
    confidence: float | None = None
    extraction_source: str | None = None  # quoted provenance


@dataclass
class KBMatch:
    """A knowledge-base section judged relevant to the input."""

    title: str
    section: str
    confidence: float
    relevance: str  # High | Medium | Low (case-insensitive)
    row_start: int | None = None
    row_end: int | None = None
    match_reason: str | None = None

    @property
    def row_label(self) -> str | None:
        """``Row N`` or ``Row N-M``; a single row is never shown as a range."""
        if not self.row_start:
            return None
        if self.row_end and self.row_end != self.row_start:
            return f"Row {self.row_start}-{self.row_end}"
        return f"Row {self.row_start}"


@dataclass
class KnowledgeGap:
    """A deficiency in the available reference material."""

    description: str
    confidence: float | None = None
    gap_reason: str | None = None


@dataclass
class StructuredResponse:
    """Full analysis result for one piece of submitted text."""

    intent: str
    routing: str
    confidence: float
    intent_confidence: float | None = None
    routing_confidence: float | None = None
    items: list[ExtractedItem] = field(default_factory=list)
    kb_matches: list[KBMatch] = field(default_factory=list)
    knowledge_gaps: list[KnowledgeGap] = field(default_factory=list)
    extracted_metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def effective_intent_confidence(self) -> float:
        if self.intent_confidence:
            return self.intent_confidence
        return self.confidence

    @property
    def effective_routing_confidence(self) -> float:
        if self.routing_confidence:
            return self.routing_confidence
        return self.confidence

    def copy(self) -> StructuredResponse:
        return copy.deepcopy(self)

    # ── Serialization ────────────────────────────────────────────────

    @classmethod
    def from_dict(cls, data: Any) -> StructuredResponse:
        """Parse a JSON object into a response.

        Legacy knowledge gaps given as plain strings are normalized here
        into :class:`KnowledgeGap` records; nothing downstream sees the
        string form.

        Raises:
            ResponseFormatError: If a required field is missing, has the
                wrong type, or a confidence lies outside [0, 1].
        """
        if not isinstance(data, dict):
            raise ResponseFormatError(
                f"Expected a JSON object, got {type(data).__name__}"
            )

        return cls(
            intent=_require_str(data, "intent"),
            routing=_require_str(data, "routing"),
            confidence=_require_confidence(data, "confidence"),
            intent_confidence=_optional_confidence(data, "intent_confidence"),
            routing_confidence=_optional_confidence(data, "routing_confidence"),
            items=[_parse_item(raw) for raw in _require_list(data, "items")],
            kb_matches=[_parse_kb_match(raw) for raw in _require_list(data, "kb_matches")],
            knowledge_gaps=[
                _parse_gap(raw) for raw in _require_list(data, "knowledge_gaps")
            ],
            extracted_metadata=_parse_metadata(data.get("extracted_metadata")),
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the JSON contract, omitting optional fields that are unset."""
        result: dict[str, Any] = {"intent": self.intent}
        if self.intent_confidence is not None:
            result["intent_confidence"] = self.intent_confidence
        result["routing"] = self.routing
        if self.routing_confidence is not None:
            result["routing_confidence"] = self.routing_confidence
        result["confidence"] = self.confidence
        result["items"] = [_compact(item.__dict__) for item in self.items]
        result["kb_matches"] = [_compact(match.__dict__) for match in self.kb_matches]
        result["knowledge_gaps"] = [_compact(gap.__dict__) for gap in self.knowledge_gaps]
        result["extracted_metadata"] = copy.deepcopy(self.extracted_metadata)
        return result


# ---------------------------------------------------------------------------
# Field helpers
# ---------------------------------------------------------------------------


def _compact(values: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in values.items() if value is not None}


def _require(data: dict[str, Any], key: str) -> Any:
    if key not in data or data[key] is None:
        raise ResponseFormatError(f"Missing required field '{key}'")
    return data[key]


def _require_str(data: dict[str, Any], key: str) -> str:
    value = _require(data, key)
    if not isinstance(value, str):
        raise ResponseFormatError(f"Field '{key}' must be a string")
    return value


def _require_list(data: dict[str, Any], key: str) -> list:
    value = _require(data, key)
    if not isinstance(value, list):
        raise ResponseFormatError(f"Field '{key}' must be a list")
    return value


def _to_confidence(key: str, value: Any) -> float:
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ResponseFormatError(f"Field '{key}' must be a number")
    if not 0.0 <= value <= 1.0:
        raise ResponseFormatError(f"Field '{key}' must lie in [0, 1], got {value}")
    return float(value)


def _require_confidence(data: dict[str, Any], key: str) -> float:
    return _to_confidence(key, _require(data, key))


def _optional_confidence(data: dict[str, Any], key: str) -> float | None:
    value = data.get(key)
    if value is None:
        return None
    return _to_confidence(key, value)


def _optional_int(data: dict[str, Any], key: str) -> int | None:
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ResponseFormatError(f"Field '{key}' must be an integer")
    return value


def _optional_str(data: dict[str, Any], key: str) -> str | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ResponseFormatError(f"Field '{key}' must be a string")
    return value


def _parse_item(raw: Any) -> ExtractedItem:
    if not isinstance(raw, dict):
        raise ResponseFormatError("Each item must be a JSON object")
    quantity = raw.get("quantity", 1)
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
        raise ResponseFormatError("Field 'quantity' must be an integer >= 1")
    return ExtractedItem(
        sku=_require_str(raw, "sku"),
        description=_require_str(raw, "description"),
        quantity=quantity,
        category=_require_str(raw, "category"),
        confidence=_optional_confidence(raw, "confidence"),
        extraction_source=_optional_str(raw, "extraction_source"),
    )


def _parse_kb_match(raw: Any) -> KBMatch:
    if not isinstance(raw, dict):
        raise ResponseFormatError("Each kb_match must be a JSON object")
    return KBMatch(
        title=_require_str(raw, "title"),
        section=_require_str(raw, "section"),
        confidence=_require_confidence(raw, "confidence"),
        relevance=_require_str(raw, "relevance"),
        row_start=_optional_int(raw, "row_start"),
        row_end=_optional_int(raw, "row_end"),
        match_reason=_optional_str(raw, "match_reason"),
    )


def _parse_gap(raw: Any) -> KnowledgeGap:
    # Legacy shape: a bare description string
    if isinstance(raw, str):
        return KnowledgeGap(description=raw)
    if not isinstance(raw, dict):
        raise ResponseFormatError("Each knowledge gap must be a string or JSON object")
    return KnowledgeGap(
        description=_require_str(raw, "description"),
        confidence=_optional_confidence(raw, "confidence"),
        gap_reason=_optional_str(raw, "gap_reason"),
    )


def _parse_metadata(raw: Any) -> dict[str, Any]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ResponseFormatError("Field 'extracted_metadata' must be a JSON object")
    return copy.deepcopy(raw)
