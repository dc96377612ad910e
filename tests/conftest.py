from __future__ import annotations

import time
from typing import Callable, Sequence

import pytest

from ayudost.models import DocumentSource, RetrievedDocument
from ayudost.services.pipeline import RAGPipeline


def make_doc(doc_id: str, score: float, source: DocumentSource, **metadata: object) -> RetrievedDocument:
    metadata.setdefault("text", f"text of {doc_id}")
    return RetrievedDocument(id=doc_id, score=score, source=source, metadata=metadata)


class ScriptedGenerator:
    """Answers prompts by matching on their opening phrase."""

    def __init__(
        self,
        *,
        domain: str = "yes",
        rewrite: str = "Ashwagandha benefits in Ayurveda",
        entities: str = '{"herbs": ["Ashwagandha"], "doshas": [], "diseases": [], "symptoms": []}',
        answer: str = "Ashwagandha is a rasayana that balances Vata.",
        hallucination: str = "no",
        fail_on: str | None = None,
    ) -> None:
        self.replies = {
            "domain": domain,
            "rewrite": rewrite,
            "entities": entities,
            "answer": answer,
            "hallucination": hallucination,
        }
        self.fail_on = fail_on
        self.prompts: list[tuple[str, str]] = []

    @staticmethod
    def classify(prompt: str) -> str:
        if prompt.startswith("Is this query related to Ayurveda?"):
            return "domain"
        if prompt.startswith("Rewrite this query"):
            return "rewrite"
        if prompt.startswith("Extract Ayurvedic entities"):
            return "entities"
        if prompt.startswith("Does this answer contain information NOT found"):
            return "hallucination"
        return "answer"

    def generate(self, prompt: str) -> str:
        kind = self.classify(prompt)
        self.prompts.append((kind, prompt))
        if kind == self.fail_on:
            raise RuntimeError(f"{kind} backend unavailable")
        return self.replies[kind]

    def prompts_of(self, kind: str) -> list[str]:
        return [prompt for k, prompt in self.prompts if k == kind]


class FakeEmbedder:
    def __init__(self, dim: int = 8, error: Exception | None = None) -> None:
        self.dim = dim
        self.error = error
        self.calls: list[str] = []

    def embed_query(self, query: str) -> tuple[float, ...]:
        self.calls.append(query)
        if self.error is not None:
            raise self.error
        return tuple(0.1 for _ in range(self.dim))


class FakeVectorSearch:
    def __init__(
        self,
        documents: Sequence[RetrievedDocument] = (),
        *,
        delay: float = 0.0,
        error: Exception | None = None,
    ) -> None:
        self.documents = list(documents)
        self.delay = delay
        self.error = error
        self.calls: list[tuple[Sequence[float], int]] = []
        self.window: tuple[float, float] | None = None

    def query(self, vector: Sequence[float], top_k: int) -> Sequence[RetrievedDocument]:
        start = time.perf_counter()
        self.calls.append((vector, top_k))
        if self.delay:
            time.sleep(self.delay)
        self.window = (start, time.perf_counter())
        if self.error is not None:
            raise self.error
        return self.documents[:top_k]

    def count(self) -> int:
        return len(self.documents)


class FakeKeywordSearch:
    def __init__(
        self,
        documents: Sequence[RetrievedDocument] = (),
        *,
        delay: float = 0.0,
        error: Exception | None = None,
    ) -> None:
        self.documents = list(documents)
        self.delay = delay
        self.error = error
        self.calls: list[tuple[str, int]] = []
        self.window: tuple[float, float] | None = None

    def search(self, text: str, limit: int) -> Sequence[RetrievedDocument]:
        start = time.perf_counter()
        self.calls.append((text, limit))
        if self.delay:
            time.sleep(self.delay)
        self.window = (start, time.perf_counter())
        if self.error is not None:
            raise self.error
        return self.documents[:limit]


@pytest.fixture
def vector_docs() -> list[RetrievedDocument]:
    return [
        make_doc("v1", 0.92, DocumentSource.VECTOR, title="Ashwagandha", category="herb"),
        make_doc("v2", 0.81, DocumentSource.VECTOR, title="Rasayana therapy", category="general"),
    ]


@pytest.fixture
def keyword_docs() -> list[RetrievedDocument]:
    return [make_doc("k1", 0.85, DocumentSource.KEYWORD, title="Withania somnifera", category="herb")]


@pytest.fixture
def pipeline_factory() -> Callable[..., RAGPipeline]:
    def build(
        generator: ScriptedGenerator | None = None,
        embedder: FakeEmbedder | None = None,
        vector: FakeVectorSearch | None = None,
        keyword: FakeKeywordSearch | None = None,
        **kwargs: object,
    ) -> RAGPipeline:
        return RAGPipeline(
            generator=generator or ScriptedGenerator(),
            embedder=embedder or FakeEmbedder(),
            vector_search=vector or FakeVectorSearch(),
            keyword_search=keyword or FakeKeywordSearch(),
            **kwargs,
        )

    return build
