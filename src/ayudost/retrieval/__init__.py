"""Retrieval components."""

from .client import get_chroma_client, reset_chroma_client
from .keyword import ChromaKeywordSearch, KeywordSearch
from .ranking import TRUNCATION_MARKER, ContextRanker, RankingConfig
from .vector import ChromaVectorSearch, VectorSearch

__all__ = [
    "ChromaKeywordSearch",
    "ChromaVectorSearch",
    "ContextRanker",
    "KeywordSearch",
    "RankingConfig",
    "TRUNCATION_MARKER",
    "VectorSearch",
    "get_chroma_client",
    "reset_chroma_client",
]
