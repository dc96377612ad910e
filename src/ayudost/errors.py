"""Error types raised by the AyuDost pipeline."""

from __future__ import annotations


class PipelineError(RuntimeError):
    """Base error for unrecoverable pipeline failures."""


class GenerationError(PipelineError):
    """Raised when the generation capability is unreachable or misconfigured."""


class EmbeddingError(PipelineError):
    """Raised when a query embedding cannot be produced."""


__all__ = ["EmbeddingError", "GenerationError", "PipelineError"]
