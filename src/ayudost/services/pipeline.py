"""Ten-stage retrieval-augmented answering pipeline."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable, Mapping, Sequence, TypeVar

from ayudost.config import Settings, get_settings
from ayudost.embeddings import EmbeddingBackend, build_embedding_backend
from ayudost.metrics.observability import PipelineMetrics, TimedSection, get_logger
from ayudost.models import (
    ChatMessage,
    DocumentSource,
    EntityBundle,
    Mode,
    PipelineMetadata,
    PipelineRequest,
    PipelineResult,
    ProgressEvent,
    RetrievedDocument,
    StepStatus,
)
from ayudost.retrieval import (
    ChromaKeywordSearch,
    ChromaVectorSearch,
    ContextRanker,
    KeywordSearch,
    RankingConfig,
    VectorSearch,
    get_chroma_client,
)
from ayudost.services import guardrails, prompts
from ayudost.services.entities import ParseFailure, entity_count, parse_entities
from ayudost.services.generation import GenerationBackend, build_generator
from ayudost.services.progress import ProgressCallback, ProgressRecorder

T = TypeVar("T")


@dataclass(frozen=True)
class PipelineConfig:
    """Tunable limits for a pipeline run."""

    vector_top_k: int = 5
    keyword_limit: int = 5
    history_turns: int = 5
    hallucination_context_chars: int = 1000
    hallucination_answer_chars: int = 500
    default_mode: Mode = Mode.GYAAN

    @classmethod
    def from_settings(cls, settings: Settings) -> "PipelineConfig":
        return cls(
            vector_top_k=settings.vector_top_k,
            keyword_limit=settings.keyword_limit,
            history_turns=settings.history_turns,
            hallucination_context_chars=settings.hallucination_context_chars,
            hallucination_answer_chars=settings.hallucination_answer_chars,
            default_mode=Mode(settings.default_mode),
        )


@dataclass(frozen=True)
class SearchResults:
    vector: Sequence[RetrievedDocument]
    keyword: Sequence[RetrievedDocument]


class RAGPipeline:
    """Turns a user query into a grounded, domain-constrained answer.

    Stages run strictly in order; the only fan-out is the knowledge search,
    where the vector and keyword queries run concurrently and are joined
    before the stage completes. Capabilities are synchronous callables and
    are awaited through worker threads.
    """

    def __init__(
        self,
        generator: GenerationBackend,
        embedder: EmbeddingBackend,
        vector_search: VectorSearch,
        keyword_search: KeywordSearch,
        *,
        ranker: ContextRanker | None = None,
        config: PipelineConfig | None = None,
    ) -> None:
        self._generator = generator
        self._embedder = embedder
        self._vector_search = vector_search
        self._keyword_search = keyword_search
        self._ranker = ranker or ContextRanker()
        self._config = config or PipelineConfig()
        self._logger = get_logger("pipeline")

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "RAGPipeline":
        settings = settings or get_settings()
        client_factory = lambda: get_chroma_client(settings)  # noqa: E731
        return cls(
            generator=build_generator(settings),
            embedder=build_embedding_backend(settings),
            vector_search=ChromaVectorSearch(settings.chroma_collection, client_factory=client_factory),
            keyword_search=ChromaKeywordSearch(settings.keyword_collections_tuple, client_factory=client_factory),
            ranker=ContextRanker(RankingConfig(top_n=settings.rank_top_n, max_chars=settings.context_max_chars)),
            config=PipelineConfig.from_settings(settings),
        )

    def check_ready(self) -> None:
        """Touch the vector index so an unreachable store surfaces as an error."""

        count = getattr(self._vector_search, "count", None)
        if callable(count):
            count()

    async def execute(
        self,
        query: str,
        history: Iterable[ChatMessage | Mapping[str, str]] = (),
        on_progress: ProgressCallback | None = None,
        *,
        mode: Mode | str | None = None,
    ) -> PipelineResult:
        request = PipelineRequest.build(query, history, mode or self._config.default_mode)
        return await self.run(request, on_progress)

    async def run(self, request: PipelineRequest, on_progress: ProgressCallback | None = None) -> PipelineResult:
        started = time.perf_counter()
        recorder = ProgressRecorder(on_progress)
        self._logger.info("pipeline.start", mode=request.mode.value, history_len=len(request.history))
        try:
            result = await self._run_stages(request, recorder, started)
        except Exception as exc:
            PipelineMetrics.observe_run("failed", time.perf_counter() - started)
            self._logger.error("pipeline.failed", error=str(exc), error_type=type(exc).__name__)
            raise
        outcome = "answered" if result.metadata.on_topic else "refused"
        PipelineMetrics.observe_run(outcome, time.perf_counter() - started)
        self._logger.info("pipeline.complete", outcome=outcome, total_ms=result.total_duration_ms)
        return result

    async def _run_stages(self, request: PipelineRequest, recorder: ProgressRecorder, started: float) -> PipelineResult:
        query = request.query

        on_topic = await self._stage(
            recorder, 1, "Domain Check", "Checking if query is Ayurvedic...",
            lambda: self._check_domain(query),
            done=lambda ok: "Query is Ayurvedic ✓" if ok else "Non-Ayurvedic query detected",
            metadata=lambda ok: {"isAyurvedic": ok},
        )
        if not on_topic:
            return PipelineResult(
                answer=prompts.REFUSAL_MESSAGE,
                steps=recorder.steps,
                total_duration_ms=_elapsed_ms(started),
                metadata=PipelineMetadata(on_topic=False, mode=request.mode),
            )

        rewritten = await self._stage(
            recorder, 2, "Query Rewriting", "Optimizing query for better results...",
            lambda: self._rewrite(query),
            done=lambda _: "Query optimized ✓",
            metadata=lambda text: {"rewrittenQuery": text},
        )

        entities = await self._stage(
            recorder, 3, "Entity Extraction", "Identifying herbs, doshas, and conditions...",
            lambda: self._extract_entities(rewritten),
            done=lambda found: f"Found {entity_count(found)} entities ✓",
            metadata=lambda found: {"entities": found},
        )

        vector = await self._stage(
            recorder, 4, "Embeddings", "Generating semantic embeddings...",
            lambda: asyncio.to_thread(self._embedder.embed_query, rewritten),
            done=lambda _: "Embeddings generated ✓",
            metadata=lambda vec: {"dimension": len(vec)},
        )

        found = await self._stage(
            recorder, 5, "Knowledge Search", "Searching knowledge base...",
            lambda: self._search(vector, rewritten),
            done=lambda res: f"Retrieved {len(res.vector) + len(res.keyword)} documents ✓",
            metadata=lambda res: {"vectorCount": len(res.vector), "keywordCount": len(res.keyword)},
        )

        ranked, ranked_context = await self._stage(
            recorder, 6, "Context Ranking", "Ranking relevant information...",
            lambda: _resolved(self._rank(found, entities)),
            done=lambda res: f"Context ranked ✓ ({len(res[0])} documents)",
            metadata=lambda res: {"documentIds": [doc.id for doc in res[0]]},
        )

        context = await self._stage(
            recorder, 7, "Context Preparation", "Preparing context...",
            lambda: _resolved(self._ranker.compress(ranked_context)),
            done=lambda text: "Context prepared ✓" if text else "No context retrieved, using model knowledge",
            metadata=lambda text: {"contextChars": len(text), "truncated": text != ranked_context},
        )

        history = request.history_suffix(self._config.history_turns)
        answer = await self._stage(
            recorder, 8, "Answer Generation", "Generating answer...",
            lambda: self._generate(prompts.build_answer_prompt(request.mode, query, context, history)),
            done=lambda _: "Answer generated ✓",
        )

        accurate = await self._stage(
            recorder, 9, "Quality Check", "Verifying accuracy...",
            lambda: self._check_hallucination(answer, context),
            done=_quality_message,
            metadata=lambda verdict: {"isAccurate": verdict},
        )

        emergency = guardrails.is_emergency(query)
        polished = await self._stage(
            recorder, 10, "Final Polish", "Finalizing response...",
            lambda: _resolved(guardrails.polish(answer, query)),
            done=lambda _: "Response ready ✓",
            metadata=lambda _: {"healthEmergency": emergency} if emergency else None,
        )

        return PipelineResult(
            answer=polished,
            steps=recorder.steps,
            total_duration_ms=_elapsed_ms(started),
            metadata=PipelineMetadata(
                on_topic=True,
                rewritten_query=rewritten,
                entities=entities,
                context_sources=frozenset(doc.source.value for doc in ranked),
                accurate=accurate,
                health_emergency=emergency,
                mode=request.mode,
            ),
        )

    async def _stage(
        self,
        recorder: ProgressRecorder,
        index: int,
        name: str,
        message: str,
        action: Callable[[], Awaitable[T]],
        *,
        done: Callable[[T], str],
        metadata: Callable[[T], Mapping[str, Any] | None] | None = None,
    ) -> T:
        recorder.emit(ProgressEvent(step_index=index, name=name, status=StepStatus.RUNNING, message=message))
        timer = TimedSection(lambda seconds: PipelineMetrics.observe_stage(name, seconds))
        try:
            with timer:
                value = await action()
        except Exception as exc:
            recorder.emit(
                ProgressEvent(
                    step_index=index,
                    name=name,
                    status=StepStatus.FAILED,
                    message=f"Pipeline failed: {exc}",
                    duration_ms=timer.elapsed_ms,
                ),
            )
            raise
        self._logger.info("pipeline.stage", step=index, stage=name, duration_ms=timer.elapsed_ms)
        recorder.emit(
            ProgressEvent(
                step_index=index,
                name=name,
                status=StepStatus.COMPLETED,
                message=done(value),
                duration_ms=timer.elapsed_ms,
                metadata=metadata(value) if metadata else None,
            ),
        )
        return value

    async def _generate(self, prompt: str) -> str:
        return await asyncio.to_thread(self._generator.generate, prompt)

    async def _check_domain(self, query: str) -> bool:
        reply = await self._generate(prompts.domain_check_prompt(query))
        return "yes" in reply.lower()

    async def _rewrite(self, query: str) -> str:
        reply = (await self._generate(prompts.rewrite_prompt(query))).strip()
        return reply or query

    async def _extract_entities(self, query: str) -> EntityBundle:
        try:
            reply = await self._generate(prompts.entity_prompt(query))
        except Exception as exc:
            self._logger.warning("entities.generation_failed", error=str(exc))
            return ParseFailure(reason=str(exc), raw="").entities
        parsed = parse_entities(reply)
        if isinstance(parsed, ParseFailure):
            self._logger.warning("entities.parse_failed", reason=parsed.reason)
        return parsed.entities

    async def _search(self, vector: Sequence[float], text: str) -> SearchResults:
        vector_docs, keyword_docs = await asyncio.gather(
            asyncio.to_thread(self._vector_search.query, vector, self._config.vector_top_k),
            asyncio.to_thread(self._keyword_search.search, text, self._config.keyword_limit),
            return_exceptions=True,
        )
        vector_docs = self._isolate(DocumentSource.VECTOR, vector_docs)
        keyword_docs = self._isolate(DocumentSource.KEYWORD, keyword_docs)
        PipelineMetrics.observe_retrieval(DocumentSource.VECTOR.value, len(vector_docs))
        PipelineMetrics.observe_retrieval(DocumentSource.KEYWORD.value, len(keyword_docs))
        return SearchResults(vector=vector_docs, keyword=keyword_docs)

    def _rank(self, found: SearchResults, entities: EntityBundle) -> tuple[list[RetrievedDocument], str]:
        ranked = self._ranker.rank(found.vector, found.keyword, entities)
        return ranked, self._ranker.render(ranked)

    def _isolate(self, source: DocumentSource, outcome: object) -> list[RetrievedDocument]:
        if isinstance(outcome, asyncio.CancelledError):
            raise outcome
        if isinstance(outcome, BaseException):
            self._logger.warning("search.failed", source=source.value, error=str(outcome))
            return []
        return list(outcome)  # type: ignore[arg-type]

    async def _check_hallucination(self, answer: str, context: str) -> bool | None:
        prompt = prompts.hallucination_prompt(
            answer,
            context,
            context_chars=self._config.hallucination_context_chars,
            answer_chars=self._config.hallucination_answer_chars,
        )
        try:
            reply = await self._generate(prompt)
        except Exception as exc:
            self._logger.warning("quality_check.failed", error=str(exc))
            PipelineMetrics.observe_quality(None)
            return None
        # Informational only: a negative verdict never changes the answer.
        accurate = "yes" not in reply.lower()
        PipelineMetrics.observe_quality(accurate)
        return accurate


def _quality_message(accurate: bool | None) -> str:
    if accurate is None:
        return "Quality check unavailable"
    return "Accuracy verified ✓" if accurate else "Possible unsupported claims noted"


async def _resolved(value: T) -> T:
    return value


def _elapsed_ms(start: float) -> int:
    return int(round((time.perf_counter() - start) * 1000))
