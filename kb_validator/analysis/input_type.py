"""Coarse input-type badge shown next to the submitted text."""

from __future__ import annotations

MIN_DETECT_LENGTH = 10


def detect_input_type(text: str) -> str | None:
    """Guess what kind of document *text* is.

    Returns None for text shorter than ten characters; otherwise one of
    ``RFP``, ``Support Email``, ``Technical Support``, ``Sales Inquiry``
    or ``General Inquiry``.
    """
    if len(text) < MIN_DETECT_LENGTH:
        return None

    lower = text.lower()
    if "rfp" in lower or "proposal" in lower:
        return "RFP"
    if "@" in text and ("invoice" in lower or "billing" in lower):
        return "Support Email"
    if "api" in lower or "integration" in lower:
        return "Technical Support"
    if "quote" in lower or "pricing" in lower:
        return "Sales Inquiry"
    return "General Inquiry"
