"""BM25 keyword search across the topical knowledge-base collections."""

from __future__ import annotations

import re
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Protocol, Sequence

from chromadb.api import ClientAPI
from rank_bm25 import BM25Plus

from ayudost.metrics.observability import get_logger
from ayudost.models import DocumentSource, RetrievedDocument

_TOKEN_RE = re.compile(r"[\w']+", re.UNICODE)


def tokenize(text: str) -> list[str]:
    return _TOKEN_RE.findall(text.lower())


class KeywordSearch(Protocol):
    """Full-text search over the knowledge-base document store."""

    def search(self, text: str, limit: int) -> Sequence[RetrievedDocument]:
        """Return up to ``limit`` documents sorted by descending relevance."""


@dataclass(frozen=True)
class _PartitionIndex:
    bm25: BM25Plus
    ids: list[str]
    documents: list[str]
    metadatas: list[Mapping[str, Any]]
    vocabularies: list[frozenset[str]]


class ChromaKeywordSearch:
    """Keyword adapter over one Chroma collection per topic.

    Each partition gets an in-memory BM25 index built from the stored
    documents the first time it is searched. Missing collections are created
    empty, so an unseeded store degrades to no results rather than errors.
    Any store failure is logged and answered with an empty result.
    """

    def __init__(
        self,
        partitions: Sequence[str] = ("herbs", "diseases", "remedies", "general"),
        *,
        client: ClientAPI | None = None,
        client_factory: Callable[[], ClientAPI] | None = None,
    ) -> None:
        if client is None and client_factory is None:
            raise ValueError("Either client or client_factory is required")
        self._client_factory = client_factory or (lambda: client)
        self._partitions = tuple(partitions)
        self._indexes: Dict[str, _PartitionIndex | None] = {}
        self._lock = threading.Lock()
        self._logger = get_logger("retrieval.keyword")

    def refresh(self) -> None:
        """Drop cached indexes so the next search rebuilds them."""

        with self._lock:
            self._indexes.clear()

    def search(self, text: str, limit: int) -> Sequence[RetrievedDocument]:
        if limit <= 0 or not text.strip():
            return []
        try:
            query_tokens = tokenize(text)
            results: list[RetrievedDocument] = []
            for partition in self._partitions:
                results.extend(self._search_partition(partition, query_tokens, limit))
        except Exception as exc:
            self._logger.warning("keyword.search_failed", error=str(exc))
            return []
        results.sort(key=lambda doc: doc.score, reverse=True)
        ranked = results[:limit]
        self._logger.info("keyword.search", limit=limit, matches=len(ranked))
        return ranked

    def _search_partition(self, partition: str, query_tokens: list[str], limit: int) -> list[RetrievedDocument]:
        index = self._ensure_index(partition)
        if index is None or not query_tokens:
            return []
        # BM25Plus scores every document above zero, so matches are selected by shared tokens.
        wanted = set(query_tokens)
        matching = [i for i, vocabulary in enumerate(index.vocabularies) if wanted & vocabulary]
        if not matching:
            return []
        scores = index.bm25.get_scores(query_tokens)
        ranked = sorted(matching, key=lambda i: scores[i], reverse=True)[:limit]
        category = _singular(partition)
        hits: list[RetrievedDocument] = []
        for i in ranked:
            metadata: Dict[str, Any] = dict(index.metadatas[i] or {})
            metadata.setdefault("title", metadata.get("name") or "Untitled")
            metadata["text"] = metadata.get("content") or index.documents[i]
            metadata["category"] = category
            metadata["collection"] = partition
            hits.append(
                RetrievedDocument(
                    id=index.ids[i],
                    score=float(scores[i]),
                    source=DocumentSource.KEYWORD,
                    metadata=metadata,
                ),
            )
        return hits

    def _ensure_index(self, partition: str) -> _PartitionIndex | None:
        if partition in self._indexes:
            return self._indexes[partition]
        with self._lock:
            if partition in self._indexes:
                return self._indexes[partition]
            collection = self._client_factory().get_or_create_collection(name=partition)
            batch = collection.get(include=["documents", "metadatas"])
            ids = [str(i) for i in batch.get("ids") or []]
            documents = [doc or "" for doc in batch.get("documents") or []]
            metadatas = list(batch.get("metadatas") or [{} for _ in ids])
            index: _PartitionIndex | None = None
            if ids:
                corpus = [tokenize(self._searchable_text(doc, md)) for doc, md in zip(documents, metadatas)]
                index = _PartitionIndex(
                    bm25=BM25Plus(corpus),
                    ids=ids,
                    documents=documents,
                    metadatas=metadatas,
                    vocabularies=[frozenset(tokens) for tokens in corpus],
                )
            self._indexes[partition] = index
            self._logger.info("keyword.index_built", partition=partition, documents=len(ids))
            return index

    @staticmethod
    def _searchable_text(document: str, metadata: Mapping[str, Any] | None) -> str:
        metadata = metadata or {}
        parts = [str(metadata.get("title") or ""), document, str(metadata.get("keywords") or "")]
        return " ".join(part for part in parts if part)


def _singular(partition: str) -> str:
    return partition[:-1] if partition.endswith("s") else partition
