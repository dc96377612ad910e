"""Safety notices added to answers during the final polish."""

from __future__ import annotations

import re

from ayudost.services.prompts import CONTEXT_END, CONTEXT_START, DISCLAIMER

EMERGENCY_KEYWORDS = (
    "emergency",
    "severe pain",
    "chest pain",
    "can't breathe",
    "difficulty breathing",
    "unconscious",
    "bleeding heavily",
    "stroke",
    "heart attack",
    "suicide",
)

PROFESSIONAL_KEYWORDS = (
    "chronic",
    "persistent",
    "worsening",
    "severe",
    "diagnosed",
    "medication",
    "prescription",
)

EMERGENCY_NOTICE = (
    "⚠️ Based on your message, this may be a medical emergency. Please seek immediate professional "
    "medical attention by calling emergency services or visiting the nearest emergency room."
)

PROFESSIONAL_NOTE = (
    "💡 For personalized treatment, I recommend consulting with a certified Ayurvedic practitioner "
    "who can assess your unique constitution and needs."
)

_LEADING_LABEL_RE = re.compile(r"^\s*(?:\*\*)?(?:answer|response)\s*:(?:\*\*)?\s*", re.IGNORECASE)
_BLANK_RUN_RE = re.compile(r"\n{3,}")


def is_emergency(query: str) -> bool:
    lowered = query.lower()
    return any(keyword in lowered for keyword in EMERGENCY_KEYWORDS)


def needs_professional(query: str) -> bool:
    lowered = query.lower()
    return any(keyword in lowered for keyword in PROFESSIONAL_KEYWORDS)


def strip_artifacts(answer: str) -> str:
    cleaned = _LEADING_LABEL_RE.sub("", answer.strip(), count=1)
    for marker in (CONTEXT_START, CONTEXT_END, "=== USER QUESTION ===", "Provide your answer now:"):
        cleaned = cleaned.replace(marker, "")
    return _BLANK_RUN_RE.sub("\n\n", cleaned).strip()


def polish(answer: str, query: str) -> str:
    """Clean the generated answer and attach the safety notices it lacks."""

    polished = strip_artifacts(answer)
    lowered = polished.lower()
    if needs_professional(query) and "consult" not in lowered and "practitioner" not in lowered:
        polished += f"\n\n{PROFESSIONAL_NOTE}"
    lowered = polished.lower()
    if "disclaimer" not in lowered and "consult" not in lowered:
        polished += f"\n\n{DISCLAIMER}"
    if is_emergency(query):
        polished = f"{EMERGENCY_NOTICE}\n\n{polished}"
    return polished
