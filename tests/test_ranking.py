from __future__ import annotations

from conftest import make_doc

from ayudost.models import DocumentSource
from ayudost.retrieval.ranking import SECTION_SEPARATOR, TRUNCATION_MARKER, ContextRanker, RankingConfig

V = DocumentSource.VECTOR
K = DocumentSource.KEYWORD


def test_rank_is_deterministic_and_prefers_vector_on_ties() -> None:
    ranker = ContextRanker()
    vector = [make_doc("a", 0.5, V), make_doc("b", 0.9, V)]
    keyword = [make_doc("c", 0.5, K), make_doc("d", 0.7, K)]

    first = ranker.rank(vector, keyword, None)
    second = ranker.rank(vector, keyword, None)

    assert [doc.id for doc in first] == ["b", "d", "a", "c"]
    assert first == second


def test_rank_keeps_top_n() -> None:
    ranker = ContextRanker(RankingConfig(top_n=5))
    vector = [make_doc(f"v{i}", i / 10, V) for i in range(5)]
    keyword = [make_doc(f"k{i}", i / 10 + 0.05, K) for i in range(5)]

    ranked = ranker.rank(vector, keyword)

    assert [doc.id for doc in ranked] == ["k4", "v4", "k3", "v3", "k2"]


def test_rank_drops_duplicate_ids_within_a_source() -> None:
    ranker = ContextRanker()
    ranked = ranker.rank([make_doc("a", 0.9, V), make_doc("a", 0.8, V)], [make_doc("a", 0.7, K)])

    assert [(doc.source, doc.id) for doc in ranked] == [(V, "a"), (K, "a")]


def test_render_groups_by_source() -> None:
    ranker = ContextRanker()
    docs = [
        make_doc("k1", 0.95, K, title="Turmeric", category="herb", text="Haridra reduces Kapha."),
        make_doc("v1", 0.90, V, category="general", text="Agni governs digestion."),
    ]

    rendered = ranker.render(docs)

    vector_block, keyword_block = rendered.split(SECTION_SEPARATOR)
    assert vector_block == "[Document 1 - general]\nAgni governs digestion."
    assert keyword_block == "[Turmeric - herb]\nHaridra reduces Kapha."


def test_render_empty_is_empty_string() -> None:
    assert ContextRanker().render([]) == ""


def test_compress_bounds_length_and_keeps_prefix() -> None:
    ranker = ContextRanker(RankingConfig(max_chars=50))
    context = "Vata " * 40

    compressed = ranker.compress(context)

    assert len(compressed) <= 50 + len(TRUNCATION_MARKER)
    assert compressed == context[:50] + TRUNCATION_MARKER


def test_compress_is_idempotent_under_cap() -> None:
    ranker = ContextRanker()
    context = "Pitta is hot and sharp."

    assert ranker.compress(ranker.compress(context)) == ranker.compress(context) == context


def test_compress_accepts_explicit_limit() -> None:
    assert ContextRanker().compress("abcdef", max_chars=3) == "abc" + TRUNCATION_MARKER
