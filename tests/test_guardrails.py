from __future__ import annotations

from ayudost.services.guardrails import (
    DISCLAIMER,
    EMERGENCY_NOTICE,
    PROFESSIONAL_NOTE,
    is_emergency,
    polish,
    strip_artifacts,
)
from ayudost.services.prompts import CONTEXT_END


def test_polish_adds_disclaimer_when_missing() -> None:
    assert polish("Ginger kindles Agni.", "Is ginger good?") == f"Ginger kindles Agni.\n\n{DISCLAIMER}"


def test_polish_keeps_answers_that_already_advise_consultation() -> None:
    answer = "Ginger kindles Agni. Consult a Vaidya before long use."

    assert polish(answer, "Is ginger good?") == answer


def test_polish_recommends_professional_for_chronic_conditions() -> None:
    polished = polish("Triphala may help.", "I have chronic constipation")

    assert PROFESSIONAL_NOTE in polished
    assert DISCLAIMER not in polished


def test_polish_prepends_emergency_notice() -> None:
    polished = polish("Rest and hydrate.", "Emergency: my father is unconscious")

    assert is_emergency("Emergency: my father is unconscious")
    assert polished.startswith(EMERGENCY_NOTICE)


def test_strip_artifacts_removes_labels_and_markers() -> None:
    raw = f"**Answer:** Neem is bitter.\n\n\n\n{CONTEXT_END}"

    assert strip_artifacts(raw) == "Neem is bitter."
