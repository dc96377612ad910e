"""Merging, rendering and truncation of retrieved context."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from ayudost.models import DocumentSource, EntityBundle, RetrievedDocument

TRUNCATION_MARKER = "\n\n[Context truncated for brevity...]"
SECTION_SEPARATOR = "\n\n---\n\n"


@dataclass(frozen=True)
class RankingConfig:
    """Configuration for context ranking and compression."""

    top_n: int = 5
    max_chars: int = 8000


class ContextRanker:
    """Merges both search result lists into a bounded prompt context."""

    def __init__(self, config: RankingConfig | None = None) -> None:
        self._config = config or RankingConfig()

    @property
    def config(self) -> RankingConfig:
        return self._config

    def rank(
        self,
        vector_docs: Sequence[RetrievedDocument],
        keyword_docs: Sequence[RetrievedDocument],
        entities: EntityBundle | None = None,
    ) -> list[RetrievedDocument]:
        # sorted() is stable: equal scores keep vector-before-keyword order.
        merged = sorted([*vector_docs, *keyword_docs], key=lambda doc: doc.score, reverse=True)
        seen: set[tuple[str, str]] = set()
        ranked: list[RetrievedDocument] = []
        for doc in merged:
            key = (doc.source.value, doc.id)
            if key in seen:
                continue
            seen.add(key)
            ranked.append(doc)
            if len(ranked) >= self._config.top_n:
                break
        return ranked

    def render(self, documents: Sequence[RetrievedDocument]) -> str:
        sections = []
        for source in (DocumentSource.VECTOR, DocumentSource.KEYWORD):
            block = self._format_group([doc for doc in documents if doc.source is source])
            if block:
                sections.append(block)
        return SECTION_SEPARATOR.join(sections)

    def compress(self, context: str, max_chars: int | None = None) -> str:
        limit = self._config.max_chars if max_chars is None else max_chars
        if len(context) > limit:
            return context[:limit] + TRUNCATION_MARKER
        return context

    @staticmethod
    def _format_group(documents: Sequence[RetrievedDocument]) -> str:
        parts = []
        for index, doc in enumerate(documents, start=1):
            title = doc.title or f"Document {index}"
            header = f"[{title} - {doc.category}]" if doc.category else f"[{title}]"
            parts.append(f"{header}\n{doc.text}")
        return SECTION_SEPARATOR.join(parts)
