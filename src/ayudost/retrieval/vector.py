"""Nearest-neighbour search over the Chroma vector index."""

from __future__ import annotations

import json
import threading
from typing import Any, Callable, Dict, Iterable, Mapping, Protocol, Sequence

from chromadb.api import ClientAPI
from chromadb.api.models.Collection import Collection

from ayudost.metrics.observability import get_logger
from ayudost.models import DocumentSource, RetrievedDocument


class VectorSearch(Protocol):
    """Query a nearest-neighbour index with an embedding."""

    def query(self, vector: Sequence[float], top_k: int) -> Sequence[RetrievedDocument]:
        """Return up to ``top_k`` documents sorted by descending similarity."""


class ChromaVectorSearch:
    """Vector adapter backed by a Chroma collection using cosine distance."""

    def __init__(
        self,
        collection_name: str = "ayurveda-bot",
        *,
        client: ClientAPI | None = None,
        client_factory: Callable[[], ClientAPI] | None = None,
    ) -> None:
        if client is None and client_factory is None:
            raise ValueError("Either client or client_factory is required")
        self._client_factory = client_factory or (lambda: client)
        self._collection_name = collection_name
        self._collection: Collection | None = None
        self._lock = threading.Lock()
        self._logger = get_logger("retrieval.vector")

    def _get_collection(self) -> Collection:
        if self._collection is None:
            with self._lock:
                if self._collection is None:
                    client = self._client_factory()
                    self._collection = client.get_or_create_collection(
                        name=self._collection_name,
                        metadata={"hnsw:space": "cosine"},
                    )
        return self._collection

    def count(self) -> int:
        return self._get_collection().count()

    def query(self, vector: Sequence[float], top_k: int) -> Sequence[RetrievedDocument]:
        if top_k <= 0:
            return []
        collection = self._get_collection()
        available = collection.count()
        if available == 0:
            self._logger.info("vector.query", top_k=top_k, matches=0)
            return []
        results = collection.query(
            query_embeddings=[list(vector)],
            n_results=min(top_k, available),
            include=["documents", "metadatas", "distances"],
        )
        documents = self._deserialize_results(results)
        documents.sort(key=lambda doc: doc.score, reverse=True)
        self._logger.info("vector.query", top_k=top_k, matches=len(documents))
        return documents

    def _deserialize_results(self, results: Mapping[str, object]) -> list[RetrievedDocument]:
        ids = list(self._first(results.get("ids", [])))
        documents = list(self._first(results.get("documents", [])))
        metadatas = list(self._first(results.get("metadatas", [])))
        distances = list(self._first(results.get("distances", [])))
        retrieved: list[RetrievedDocument] = []
        for index, doc_id in enumerate(ids):
            text = documents[index] if index < len(documents) else None
            metadata = metadatas[index] if index < len(metadatas) else None
            distance = distances[index] if index < len(distances) else None
            retrieved.append(self._deserialize_match(str(doc_id), text, metadata, distance))
        return retrieved

    def _deserialize_match(
        self,
        doc_id: str,
        document: str | None,
        metadata: Mapping[str, object] | None,
        distance: float | None,
    ) -> RetrievedDocument:
        payload: Dict[str, Any] = {}
        for key, value in (metadata or {}).items():
            payload[key] = self._maybe_json(value)
        if document and not payload.get("text"):
            payload["text"] = document
        score = 1.0 - float(distance) if distance is not None else 0.0
        return RetrievedDocument(id=doc_id, score=score, source=DocumentSource.VECTOR, metadata=payload)

    @staticmethod
    def _first(value: object) -> Iterable:
        if isinstance(value, list):
            return value[0] if value and value[0] is not None else []
        return []

    @staticmethod
    def _maybe_json(value: object) -> object:
        if isinstance(value, str) and value[:1] in ("{", "["):
            try:
                return json.loads(value)
            except json.JSONDecodeError:
                return value
        return value
