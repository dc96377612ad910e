"""Observability helpers for AyuDost."""

from __future__ import annotations

import logging
import time
from typing import Callable

import structlog
from prometheus_client import Counter, Histogram

_logger_configured = False


def configure_logging(level: int = logging.INFO) -> None:
    global _logger_configured  # noqa: PLW0603 - module-level guard
    if _logger_configured:
        return
    logging.basicConfig(level=level, format="%(message)s")
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _logger_configured = True


def bind_correlation_id(correlation_id: str) -> None:
    structlog.contextvars.bind_contextvars(correlation_id=correlation_id)


def clear_correlation_id() -> None:
    structlog.contextvars.clear_contextvars()


def get_logger(name: str = "ayudost") -> structlog.BoundLogger:
    configure_logging()
    return structlog.get_logger(name)


class PipelineMetrics:
    """Prometheus metrics for pipeline stages."""

    stage_latency = Histogram(
        "ayudost_stage_duration_seconds",
        "Time spent in each pipeline stage.",
        ["stage"],
        buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0),
    )
    pipeline_latency = Histogram(
        "ayudost_pipeline_duration_seconds",
        "End-to-end pipeline duration.",
        buckets=(0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 20.0, 40.0),
    )
    pipeline_runs = Counter(
        "ayudost_pipeline_runs_total",
        "Pipeline runs by outcome.",
        ["outcome"],
    )
    retrieved_documents = Histogram(
        "ayudost_retrieved_document_count",
        "Documents returned per search adapter call.",
        ["source"],
        buckets=(0, 1, 2, 3, 5, 8, 13),
    )
    quality_checks = Counter(
        "ayudost_quality_check_total",
        "Hallucination check verdicts.",
        ["verdict"],
    )

    @classmethod
    def observe_stage(cls, stage: str, duration_seconds: float) -> None:
        cls.stage_latency.labels(stage=stage).observe(duration_seconds)

    @classmethod
    def observe_run(cls, outcome: str, duration_seconds: float) -> None:
        cls.pipeline_runs.labels(outcome=outcome).inc()
        cls.pipeline_latency.observe(duration_seconds)

    @classmethod
    def observe_retrieval(cls, source: str, document_count: int) -> None:
        cls.retrieved_documents.labels(source=source).observe(document_count)

    @classmethod
    def observe_quality(cls, accurate: bool | None) -> None:
        verdict = "unknown" if accurate is None else ("accurate" if accurate else "unsupported")
        cls.quality_checks.labels(verdict=verdict).inc()


class TimedSection:
    """Context manager capturing elapsed time for metrics."""

    def __init__(self, callback: Callable[[float], None] | None = None) -> None:
        self._callback = callback
        self._start = 0.0
        self.elapsed = 0.0

    def __enter__(self) -> "TimedSection":
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # noqa: D401
        self.elapsed = time.perf_counter() - self._start
        if self._callback is not None:
            self._callback(self.elapsed)

    @property
    def elapsed_ms(self) -> int:
        return int(round(self.elapsed * 1000))


__all__ = [
    "PipelineMetrics",
    "TimedSection",
    "bind_correlation_id",
    "clear_correlation_id",
    "configure_logging",
    "get_logger",
]
