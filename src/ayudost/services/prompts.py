"""Prompt templates for every model call the pipeline makes.

Answer prompts vary by :class:`~ayudost.models.Mode`; ``ANSWER_BUILDERS``
maps each mode to its builder and ``build_answer_prompt`` dispatches once.
All answer prompts share the same rule set so that refusals, fallback
behaviour and answer structure stay identical across modes.
"""

from __future__ import annotations

from typing import Callable, Mapping, Sequence

from ayudost.models import ENTITY_CATEGORIES, ChatMessage, Mode

REFUSAL_MESSAGE = (
    "I'm AyuDost AI, specialized in Ayurvedic wellness. I can only answer questions related to Ayurveda. "
    "For general queries or other topics, please use a general-purpose AI or search engine."
)

# Shorter form the model is told to use inside generated answers.
MODEL_REFUSAL_MESSAGE = (
    "I'm AyuDost AI, specialized in Ayurvedic wellness. I can only answer questions related to Ayurveda."
)

DISCLAIMER = (
    "**Disclaimer**: This information is for educational purposes only. "
    "Please consult a qualified Ayurvedic practitioner for personalized advice."
)

CONTEXT_START = "=== RETRIEVED KNOWLEDGE BASE CONTEXT ==="
CONTEXT_END = "=== END OF CONTEXT ==="

_RULES = f"""Rules:
1. If RAG context is available -> use it first.
2. If RAG context is missing OR incomplete -> use your own internal Ayurvedic knowledge to answer.
3. NEVER say "context not provided", "can't find information", or "no data available."
4. NEVER invent non-Ayurvedic content.
5. ALWAYS answer with correct Ayurvedic principles (herbs, doshas, tridosha theory, classical knowledge).
6. If user asks non-Ayurvedic -> politely refuse with: "{MODEL_REFUSAL_MESSAGE}"

Answer structure:
- Clear explanation
- Ayurvedic perspective (dosha, guna, virya)
- Benefits / indications
- Simple guidance
- Safety note
- Disclaimer"""

_PERSONAS: Mapping[Mode, str] = {
    Mode.GYAAN: (
        "SYSTEM INSTRUCTION (Ayurveda Gyaan Mode):\n\n"
        'You are "AyuDost Ayurveda Expert AI."\n'
        "You must ALWAYS answer Ayurvedic questions even if NO context is found."
    ),
    Mode.VAIDYA: (
        "SYSTEM INSTRUCTION (Vaidya Consultation Mode):\n\n"
        'You are "AyuDost Vaidya", a caring Ayurvedic consultant.\n'
        "Relate your answer to the user's likely constitution (prakriti) and current imbalance (vikriti) "
        "using what they have shared in the conversation.\n"
        "If important details are missing, end with at most two short clarifying questions."
    ),
    Mode.DRISHTI: (
        "SYSTEM INSTRUCTION (Drishti Observation Mode):\n\n"
        'You are "AyuDost Drishti", an Ayurvedic observation assistant.\n'
        "The user describes a visual observation (tongue, skin, nails, eyes). "
        "Interpret the signs through Ayurvedic assessment (darshana pariksha) and name the doshas they suggest.\n"
        "Never present an interpretation as a medical diagnosis."
    ),
    Mode.LEGACY: (
        "You are an AI assistant specialized in Ayurvedic wellness and natural health practices. "
        "Your role is to provide guidance based on ancient Ayurvedic wisdom combined with modern understanding.\n\n"
        "IMPORTANT GUIDELINES:\n"
        "1. Always emphasize that you are providing educational information, not medical diagnosis\n"
        "2. If symptoms suggest a medical emergency, immediately recommend seeking professional medical care\n"
        "3. Recommend professional Ayurvedic practitioner consultation for complex conditions\n"
        "4. Never claim to diagnose, treat, or cure any disease"
    ),
}


def domain_check_prompt(query: str) -> str:
    return f'Is this query related to Ayurveda? Answer only "yes" or "no".\n\nQuery: {query}'


def rewrite_prompt(query: str) -> str:
    return (
        "Rewrite this query to be more specific for Ayurvedic knowledge retrieval. "
        "Add relevant Ayurvedic context. Keep it concise.\n\n"
        f"Original: {query}\n\nRewritten:"
    )


def entity_prompt(query: str) -> str:
    keys = ", ".join(ENTITY_CATEGORIES)
    return (
        f"Extract Ayurvedic entities from this query. Return as JSON with keys: {keys}.\n\n"
        f"Query: {query}\n\nJSON:"
    )


def hallucination_prompt(answer: str, context: str, *, context_chars: int = 1000, answer_chars: int = 500) -> str:
    return (
        'Does this answer contain information NOT found in the context? Answer "yes" or "no".\n\n'
        f"Context: {context[:context_chars]}\n\n"
        f"Answer: {answer[:answer_chars]}\n\n"
        "Contains unsupported claims?"
    )


def format_history(history: Sequence[ChatMessage]) -> str:
    return "\n\n".join(
        f"{'User' if message.role == 'user' else 'Assistant'}: {message.content}" for message in history
    )


def _context_block(context: str) -> str:
    if context and context.strip():
        return f"{CONTEXT_START}\n{context}\n{CONTEXT_END}\n\nUse the above context as your PRIMARY source."
    return (
        "=== NO CONTEXT RETRIEVED ===\n\n"
        "Use your comprehensive internal Ayurvedic knowledge to provide a detailed answer."
    )


def _compose(mode: Mode, query: str, context: str, history: Sequence[ChatMessage]) -> str:
    history_text = format_history(history)
    history_block = (
        f"=== CONVERSATION HISTORY ===\n{history_text}\n=== END OF HISTORY ===\n\n" if history_text else ""
    )
    return (
        f"{_PERSONAS[mode]}\n\n{_RULES}\n\n{_context_block(context)}\n\n"
        f"{history_block}=== USER QUESTION ===\n{query}\n\nProvide your answer now:"
    )


def gyaan_prompt(query: str, context: str, history: Sequence[ChatMessage]) -> str:
    return _compose(Mode.GYAAN, query, context, history)


def vaidya_prompt(query: str, context: str, history: Sequence[ChatMessage]) -> str:
    return _compose(Mode.VAIDYA, query, context, history)


def drishti_prompt(query: str, context: str, history: Sequence[ChatMessage]) -> str:
    return _compose(Mode.DRISHTI, f"Observation: {query}", context, history)


def legacy_prompt(query: str, context: str, history: Sequence[ChatMessage]) -> str:
    return _compose(Mode.LEGACY, query, context, history)


AnswerPromptBuilder = Callable[[str, str, Sequence[ChatMessage]], str]

ANSWER_BUILDERS: Mapping[Mode, AnswerPromptBuilder] = {
    Mode.GYAAN: gyaan_prompt,
    Mode.VAIDYA: vaidya_prompt,
    Mode.DRISHTI: drishti_prompt,
    Mode.LEGACY: legacy_prompt,
}


def build_answer_prompt(mode: Mode, query: str, context: str, history: Sequence[ChatMessage]) -> str:
    return ANSWER_BUILDERS[mode](query, context, history)
