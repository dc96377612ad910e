"""Generation backends for AyuDost."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Protocol

from ayudost.config import Settings
from ayudost.errors import GenerationError

LOGGER = logging.getLogger(__name__)

EMPTY_RESPONSE_FALLBACK = "I'm having trouble generating a response. Please try again."

DEFAULT_GENERATOR_MODELS = {
    "gemini": "gemini-2.5-flash",
    "transformers": "Qwen/Qwen2.5-1.5B-Instruct",
}


@dataclass(frozen=True)
class GenerationConfig:
    """Configuration for answer generation."""

    model: str = DEFAULT_GENERATOR_MODELS["gemini"]
    max_new_tokens: int = 1024
    temperature: float = 0.3
    device: str | None = None
    api_key: str | None = None


class GenerationBackend(Protocol):
    """Protocol describing generation behaviour."""

    def generate(self, prompt: str) -> str:
        """Return the model completion for ``prompt``."""


class GeminiGenerator:
    """Generator backed by the Gemini API through ``google-genai``."""

    def __init__(self, config: GenerationConfig | None = None, client: object | None = None) -> None:
        self._config = config or GenerationConfig()
        self._client = client
        self._lock = threading.Lock()

    def _get_client(self):
        if self._client is not None:
            return self._client
        with self._lock:
            if self._client is None:
                if not self._config.api_key:
                    raise GenerationError("AYUDOST_GEMINI_API_KEY is required for generation")
                from google import genai

                LOGGER.info("Initializing Gemini client for %s", self._config.model)
                self._client = genai.Client(api_key=self._config.api_key)
        return self._client

    def generate(self, prompt: str) -> str:
        from google.genai import types

        client = self._get_client()
        try:
            response = client.models.generate_content(
                model=self._config.model,
                contents=prompt,
                config=types.GenerateContentConfig(
                    temperature=self._config.temperature,
                    max_output_tokens=self._config.max_new_tokens,
                ),
            )
        except Exception as exc:
            raise GenerationError(f"Gemini generation failed: {exc}") from exc
        # Blocked or empty candidates come back without text.
        text = getattr(response, "text", None)
        return text.strip() if text else EMPTY_RESPONSE_FALLBACK


class TransformersGenerator:
    """Generator running a local Hugging Face causal LM."""

    def __init__(self, config: GenerationConfig | None = None) -> None:
        self._config = config or GenerationConfig(model=DEFAULT_GENERATOR_MODELS["transformers"])
        from transformers import AutoModelForCausalLM, AutoTokenizer

        self._tokenizer = AutoTokenizer.from_pretrained(self._config.model, trust_remote_code=True)
        self._model = AutoModelForCausalLM.from_pretrained(self._config.model, trust_remote_code=True)
        if self._tokenizer.pad_token is None and self._tokenizer.eos_token is not None:
            self._tokenizer.pad_token = self._tokenizer.eos_token
        if getattr(self._model.config, "pad_token_id", None) is None and self._tokenizer.pad_token_id is not None:
            self._model.config.pad_token_id = self._tokenizer.pad_token_id
        if self._config.device:
            self._model.to(self._config.device)
        self._lock = threading.Lock()
        LOGGER.info("Loaded generation model %s", self._config.model)

    def generate(self, prompt: str) -> str:
        import torch

        if hasattr(self._tokenizer, "apply_chat_template"):
            prompt = self._tokenizer.apply_chat_template(
                [{"role": "user", "content": prompt}],
                tokenize=False,
                add_generation_prompt=True,
            )
        tokenized = self._tokenizer(prompt, return_tensors="pt", padding=True)
        input_ids = tokenized.input_ids
        attention_mask = tokenized.attention_mask
        prompt_length = input_ids.shape[1]
        if self._config.device:
            input_ids = input_ids.to(self._config.device)
            attention_mask = attention_mask.to(self._config.device)
        # One forward pass at a time; the model is shared across runs.
        with self._lock, torch.no_grad():
            output = self._model.generate(
                input_ids,
                attention_mask=attention_mask,
                max_new_tokens=self._config.max_new_tokens,
                temperature=self._config.temperature,
                do_sample=self._config.temperature > 0,
            )
        generated = self._tokenizer.decode(output[0][prompt_length:], skip_special_tokens=True)
        return generated.strip() or EMPTY_RESPONSE_FALLBACK


def build_generator(settings: Settings) -> GenerationBackend:
    config = GenerationConfig(
        model=settings.generator_model or DEFAULT_GENERATOR_MODELS[settings.generator_provider],
        max_new_tokens=settings.generator_max_new_tokens,
        temperature=settings.generator_temperature,
        api_key=settings.gemini_api_key,
    )
    if settings.generator_provider == "transformers":
        return TransformersGenerator(config)
    return GeminiGenerator(config)
