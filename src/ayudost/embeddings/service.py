"""Embedding backends for AyuDost."""

from __future__ import annotations

import hashlib
import logging
import math
import threading
from dataclasses import dataclass
from typing import Protocol, Tuple

from langchain_community.embeddings import HuggingFaceEmbeddings
from langchain_core.embeddings import Embeddings as LangChainEmbeddings

from ayudost.config import Settings
from ayudost.errors import EmbeddingError

LOGGER = logging.getLogger(__name__)

DEFAULT_EMBEDDING_MODELS = {
    "gemini": "text-embedding-004",
    "huggingface": "BAAI/bge-base-en-v1.5",
}


@dataclass(frozen=True)
class EmbeddingConfig:
    """Configuration for embedding backends."""

    model: str = DEFAULT_EMBEDDING_MODELS["gemini"]
    dim: int = 768
    device: str | None = None
    normalize: bool = True
    cache_folder: str | None = None
    api_key: str | None = None


class EmbeddingBackend(Protocol):
    """Protocol describing embedding behaviour."""

    def embed_query(self, query: str) -> Tuple[float, ...]:
        """Return embedding vector for a query string."""


def _normalize(vector: Tuple[float, ...], enabled: bool) -> Tuple[float, ...]:
    if not enabled:
        return vector
    norm = math.sqrt(sum(value * value for value in vector)) or 1.0
    return tuple(value / norm for value in vector)


class HashEmbeddingBackend:
    """Deterministic lightweight embedding used for tests and offline environments."""

    def __init__(self, config: EmbeddingConfig | None = None) -> None:
        self._config = config or EmbeddingConfig()

    def embed_query(self, query: str) -> Tuple[float, ...]:
        digest = hashlib.sha256(query.encode("utf-8")).digest()
        repeat = (self._config.dim + len(digest) - 1) // len(digest)
        raw = (digest * repeat)[: self._config.dim]
        return _normalize(tuple(byte / 255.0 for byte in raw), self._config.normalize)


class HuggingFaceEmbeddingBackend:
    """Sentence-embedding model loaded through LangChain."""

    def __init__(self, config: EmbeddingConfig | None = None) -> None:
        self._config = config or EmbeddingConfig(model=DEFAULT_EMBEDDING_MODELS["huggingface"])
        model_kwargs = {"device": self._config.device} if self._config.device else {}
        self._client: LangChainEmbeddings = HuggingFaceEmbeddings(
            model_name=self._config.model,
            model_kwargs=model_kwargs,
            cache_folder=self._config.cache_folder,
            encode_kwargs={"normalize_embeddings": self._config.normalize},
        )
        LOGGER.info("Loaded embedding model %s", self._config.model)

    def embed_query(self, query: str) -> Tuple[float, ...]:
        vector = tuple(self._client.embed_query(query))
        if vector and len(vector) != self._config.dim:
            LOGGER.warning(
                "Embedding dim mismatch: configured=%d, actual=%d",
                self._config.dim,
                len(vector),
            )
        return _normalize(vector, self._config.normalize)


class GeminiEmbeddingBackend:
    """Gemini embedding model (``text-embedding-004`` by default)."""

    def __init__(self, config: EmbeddingConfig | None = None, client: object | None = None) -> None:
        self._config = config or EmbeddingConfig()
        self._client = client
        self._lock = threading.Lock()

    def _get_client(self):
        if self._client is not None:
            return self._client
        with self._lock:
            if self._client is None:
                if not self._config.api_key:
                    raise EmbeddingError("AYUDOST_GEMINI_API_KEY is required for Gemini embeddings")
                from google import genai

                LOGGER.info("Initializing Gemini embedding client")
                self._client = genai.Client(api_key=self._config.api_key)
        return self._client

    def embed_query(self, query: str) -> Tuple[float, ...]:
        client = self._get_client()
        try:
            response = client.models.embed_content(model=self._config.model, contents=query)
        except Exception as exc:
            raise EmbeddingError(f"Failed to generate embedding: {exc}") from exc
        embeddings = getattr(response, "embeddings", None) or []
        if not embeddings or not embeddings[0].values:
            raise EmbeddingError("Embedding response contained no vector")
        return _normalize(tuple(float(v) for v in embeddings[0].values), self._config.normalize)


def build_embedding_backend(settings: Settings) -> EmbeddingBackend:
    default_model = DEFAULT_EMBEDDING_MODELS.get(settings.embedding_provider, DEFAULT_EMBEDDING_MODELS["gemini"])
    config = EmbeddingConfig(
        model=settings.embedding_model or default_model,
        dim=settings.embedding_dim,
        api_key=settings.gemini_api_key,
    )
    if settings.embedding_provider == "gemini":
        return GeminiEmbeddingBackend(config)
    if settings.embedding_provider == "huggingface":
        return HuggingFaceEmbeddingBackend(config)
    return HashEmbeddingBackend(config)
