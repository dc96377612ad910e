from __future__ import annotations

import pytest

from ayudost.models import ChatMessage, Mode
from ayudost.services import prompts


@pytest.mark.parametrize("mode", list(Mode))
def test_every_mode_carries_rules_and_refusal(mode: Mode) -> None:
    prompt = prompts.build_answer_prompt(mode, "What is Ojas?", "Ojas is vital essence.", ())

    assert prompts.MODEL_REFUSAL_MESSAGE in prompt
    assert "NEVER say" in prompt
    assert "Disclaimer" in prompt
    assert prompts.CONTEXT_START in prompt
    assert prompt.rstrip().endswith("Provide your answer now:")


def test_modes_use_distinct_personas() -> None:
    rendered = {prompts.build_answer_prompt(mode, "q", "", ()) for mode in Mode}

    assert len(rendered) == len(Mode)


def test_missing_context_asks_for_internal_knowledge() -> None:
    prompt = prompts.gyaan_prompt("What is Ama?", "   ", ())

    assert "NO CONTEXT RETRIEVED" in prompt
    assert prompts.CONTEXT_START not in prompt


def test_history_block_is_rendered_in_order() -> None:
    history = (
        ChatMessage(role="user", content="I feel anxious"),
        ChatMessage(role="assistant", content="That may be Vata aggravation."),
    )

    prompt = prompts.vaidya_prompt("What should I eat?", "", history)

    assert "User: I feel anxious\n\nAssistant: That may be Vata aggravation." in prompt
    assert prompt.index("CONVERSATION HISTORY") < prompt.index("USER QUESTION")


def test_hallucination_prompt_truncates_inputs() -> None:
    prompt = prompts.hallucination_prompt("a" * 600, "c" * 1200, context_chars=1000, answer_chars=500)

    assert "c" * 1000 in prompt and "c" * 1001 not in prompt
    assert "a" * 500 in prompt and "a" * 501 not in prompt


def test_entity_prompt_lists_categories() -> None:
    prompt = prompts.entity_prompt("Ashwagandha for stress")

    assert "herbs, doshas, diseases, symptoms" in prompt
