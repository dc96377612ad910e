"""Embedding services."""

from .service import (
    EmbeddingBackend,
    EmbeddingConfig,
    EmbeddingError,
    GeminiEmbeddingBackend,
    HashEmbeddingBackend,
    HuggingFaceEmbeddingBackend,
    build_embedding_backend,
)

__all__ = [
    "EmbeddingBackend",
    "EmbeddingConfig",
    "EmbeddingError",
    "GeminiEmbeddingBackend",
    "HashEmbeddingBackend",
    "HuggingFaceEmbeddingBackend",
    "build_embedding_backend",
]
