# src/similarity/parsing.py - v2
"""Prompt escaping and lenient parsing of language-model judgments.

Malformed answers never fail a call: they are logged and mapped to the
lowest confidence band (0.5).
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from distiller.core.errors import MalformedClassifierResponse
from distiller.similarity.base_oracle import SimilarityJudgment

logger = logging.getLogger(__name__)

CONFIDENCE_BANDS: dict[str, float] = {
    "high": 0.9,
    "medium": 0.7,
    "low": 0.5,
}
LOWEST_BAND = CONFIDENCE_BANDS["low"]

_BAND_SYNONYMS: dict[str, str] = {
    "moderate": "medium",
    "partial": "medium",
}

_REFUSAL_PATTERNS = (
    "cannot compare",
    "unable to determine",
    "not enough information",
    "i cannot",
    "i'm unable",
)

_NO_CONFLICT_ANSWERS = (
    "none",
    "no tension",
    "no conflict",
    "compatible",
    "aligned",
    "no",
)

_JSON_OBJECT = re.compile(r"\{[^{}]*\}", re.DOTALL)
_YES = re.compile(r"^(yes|true|equivalent|same|match)\b", re.IGNORECASE)
_NO = re.compile(r"^(no|false|different|not equivalent|not the same)\b", re.IGNORECASE)


def escape_for_prompt(text: str) -> str:
    """Quote untrusted text so it cannot break out of its prompt slot."""
    escaped = (
        text.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("\r", "\\r")
    )
    return f'"{escaped}"'


def parse_confidence(value: Any) -> float:
    """Map a categorical or numeric confidence onto [0, 1]."""
    try:
        return _strict_confidence(value)
    except MalformedClassifierResponse as e:
        logger.warning("Unparseable confidence, using lowest band: %s", e)
        return LOWEST_BAND


def _strict_confidence(value: Any) -> float:
    if isinstance(value, bool):
        raise MalformedClassifierResponse(f"boolean confidence {value!r}")
    if isinstance(value, (int, float)):
        return min(1.0, max(0.0, float(value)))
    if not isinstance(value, str):
        raise MalformedClassifierResponse(f"confidence of type {type(value).__name__}")

    normalized = value.strip().lower()
    normalized = _BAND_SYNONYMS.get(normalized, normalized)
    if normalized in CONFIDENCE_BANDS:
        return CONFIDENCE_BANDS[normalized]
    try:
        return min(1.0, max(0.0, float(normalized)))
    except ValueError as e:
        raise MalformedClassifierResponse(f"confidence {value[:50]!r}") from e


def _extract_json_object(response: str) -> dict[str, Any]:
    match = _JSON_OBJECT.search(response)
    if match is None:
        raise MalformedClassifierResponse("no JSON object in response")
    try:
        parsed = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise MalformedClassifierResponse(f"invalid JSON: {e.msg}") from e
    if not isinstance(parsed, dict):
        raise MalformedClassifierResponse("JSON payload is not an object")
    return parsed


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes")
    return False


def parse_equivalence_response(response: str) -> SimilarityJudgment:
    """Parse ``{"equivalent": bool, "confidence": "high"|"medium"|"low"}``.

    Falls back to refusal detection and leading yes/no words before giving
    up with a non-equivalent, lowest-band judgment.
    """
    trimmed = response.strip()

    try:
        payload = _extract_json_object(trimmed)
    except MalformedClassifierResponse:
        payload = None

    if payload is not None and "equivalent" in payload:
        return SimilarityJudgment(
            equivalent=_as_bool(payload["equivalent"]),
            confidence=parse_confidence(payload.get("confidence")),
        )

    lowered = trimmed.lower()
    if any(p in lowered for p in _REFUSAL_PATTERNS):
        logger.warning("Backend declined to compare, using lowest band: %r", trimmed[:100])
        return SimilarityJudgment(equivalent=False, confidence=LOWEST_BAND)

    if _NO.match(trimmed):
        return SimilarityJudgment(equivalent=False, confidence=CONFIDENCE_BANDS["medium"])
    if _YES.match(trimmed):
        return SimilarityJudgment(equivalent=True, confidence=CONFIDENCE_BANDS["medium"])

    logger.warning("Could not parse equivalence response: %r", trimmed[:100])
    return SimilarityJudgment(equivalent=False, confidence=LOWEST_BAND)


def parse_conflict_response(response: str) -> str | None:
    """Return the conflict description, or None when the answer means "no conflict"."""
    trimmed = response.strip()
    if not trimmed:
        logger.warning("Empty conflict response, treating as no conflict")
        return None

    lowered = trimmed.lower().strip("\"'")
    for answer in _NO_CONFLICT_ANSWERS:
        if lowered == answer or lowered.startswith((answer + " ", answer + ".", answer + ",")):
            return None
    return trimmed
