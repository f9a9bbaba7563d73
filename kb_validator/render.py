"""Plain-text rendering and JSON export of structured responses."""

from __future__ import annotations

import json
from pathlib import Path

from kb_validator.analysis.response import StructuredResponse

PROCESSING_TEXT = (
    "Agent Analysis\n"
    "Analyzing content...\n"
    "Extracting intent, routing, and matching knowledge base"
)
IDLE_TEXT = (
    "Agent Analysis\n"
    "Ready to analyze\n"
    "Paste content and click analyze to get started"
)

_RELEVANCE_TIERS = ("high", "medium", "low")


def confidence_tier(confidence: float) -> str:
    if confidence >= 0.9:
        return "high"
    if confidence >= 0.7:
        return "medium"
    return "low"


def relevance_tier(relevance: str) -> str:
    """Normalize a relevance label; anything unrecognized is ``neutral``."""
    tier = relevance.strip().lower()
    return tier if tier in _RELEVANCE_TIERS else "neutral"


def format_percent(confidence: float) -> str:
    return f"{round(confidence * 100)}%"


def _confidence_badge(confidence: float) -> str:
    return f"{format_percent(confidence)} confidence ({confidence_tier(confidence)})"


def render_text(response: StructuredResponse | None, is_processing: bool = False) -> str:
    """Render *response* as a readable multi-section report.

    While *is_processing* is set the processing banner is shown instead,
    and a ``None`` response renders the idle banner.
    """
    if is_processing:
        return PROCESSING_TEXT
    if response is None:
        return IDLE_TEXT

    lines: list[str] = ["Agent Analysis", ""]

    lines.append(f"Intent: {response.intent}")
    lines.append(f"  {_confidence_badge(response.effective_intent_confidence)}")
    lines.append(f"Suggested Routing: {response.routing}")
    lines.append(f"  {_confidence_badge(response.effective_routing_confidence)}")
    lines.append("")

    lines.append(f"Extracted Items ({len(response.items)})")
    for item in response.items:
        lines.append(f"  - {item.description} [{item.category}]")
        lines.append(f"    SKU: {item.sku}")
        if item.quantity > 1:
            lines.append(f"    Qty: {item.quantity}")
        if item.confidence:
            lines.append(f"    Confidence: {format_percent(item.confidence)}")
        if item.extraction_source:
            lines.append(f'    "{item.extraction_source}"')
    lines.append("")

    lines.append(f"Knowledge Base Matches ({len(response.kb_matches)})")
    for match in response.kb_matches:
        lines.append(
            f"  - {match.title} [{match.relevance}, {relevance_tier(match.relevance)}]"
            f" {format_percent(match.confidence)}"
        )
        lines.append(f"    {match.section}")
        row_label = match.row_label
        if row_label:
            lines.append(f"    {row_label}")
        if match.match_reason:
            lines.append(f"    Match reason: {match.match_reason}")
    lines.append("")

    lines.append(f"Knowledge Gaps ({len(response.knowledge_gaps)})")
    for gap in response.knowledge_gaps:
        suffix = f" ({format_percent(gap.confidence)})" if gap.confidence else ""
        lines.append(f"  ! {gap.description}{suffix}")
        if gap.gap_reason:
            lines.append(f"    Reason: {gap.gap_reason}")

    if response.extracted_metadata:
        lines.append("")
        lines.append("Metadata")
        for key, value in response.extracted_metadata.items():
            lines.append(f"  {key}: {value}")

    return "\n".join(lines)


def export_json(response: StructuredResponse) -> str:
    return json.dumps(response.to_dict(), indent=2, ensure_ascii=False)


def write_export(response: StructuredResponse, path: Path) -> Path:
    """Write the JSON export of *response* to *path* and return the path."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(export_json(response) + "\n", encoding="utf-8")
    return path
