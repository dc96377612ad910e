"""Runtime configuration for the AyuDost pipeline."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed configuration model."""

    model_config = SettingsConfigDict(env_prefix="ayudost_", env_file=".env", case_sensitive=False)

    environment: Literal["dev", "test", "prod"] = "dev"

    # Retrieval knobs
    vector_top_k: int = 5
    keyword_limit: int = 5
    rank_top_n: int = 5
    context_max_chars: int = 8000
    history_turns: int = 5
    hallucination_context_chars: int = 1000
    hallucination_answer_chars: int = 500

    default_mode: Literal["gyaan", "vaidya", "drishti", "legacy"] = "gyaan"

    # Vector index / document store
    chroma_persist_dir: Path = Path("./.chroma")
    chroma_collection: str = "ayurveda-bot"
    chroma_host: str | None = None
    chroma_port: int | None = None
    chroma_ssl: bool = False
    keyword_collections: tuple[str, ...] | str = ("herbs", "diseases", "remedies", "general")

    embedding_provider: Literal["hash", "huggingface", "gemini"] = "hash"
    embedding_model: str | None = None
    embedding_dim: int = 768

    generator_provider: Literal["gemini", "transformers"] = "gemini"
    generator_model: str | None = None
    generator_max_new_tokens: int = 1024
    generator_temperature: float = 0.3
    gemini_api_key: str | None = None

    # CORS
    cors_allow_origins: tuple[str, ...] = ()
    cors_allow_credentials: bool = False
    cors_allow_methods: tuple[str, ...] = ("GET", "POST", "OPTIONS")
    cors_allow_headers: tuple[str, ...] = ("*",)

    # Security
    api_key: str | None = None  # if set, required in X-API-Key header

    @property
    def is_test(self) -> bool:
        return self.environment == "test"

    @property
    def keyword_collections_tuple(self) -> tuple[str, ...]:
        value = self.keyword_collections
        if isinstance(value, tuple):
            return value
        if isinstance(value, str):
            parts = [p.strip() for p in value.split(",") if p.strip()]
            return tuple(parts) if parts else ("general",)
        return ("general",)


@lru_cache(maxsize=1)
def _cached_settings() -> Settings:
    return Settings()


def get_settings(override: Optional[dict[str, object]] = None) -> Settings:
    """Return settings, optionally overriding values without mutating cache."""

    if override:
        return Settings(**override)
    return _cached_settings()
