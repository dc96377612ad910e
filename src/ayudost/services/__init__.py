"""Service layer orchestrations for AyuDost."""

from .generation import GeminiGenerator, GenerationBackend, GenerationConfig, TransformersGenerator, build_generator
from .pipeline import PipelineConfig, RAGPipeline
from .progress import ProgressCallback, ProgressRecorder

__all__ = [
    "GeminiGenerator",
    "GenerationBackend",
    "GenerationConfig",
    "PipelineConfig",
    "ProgressCallback",
    "ProgressRecorder",
    "RAGPipeline",
    "TransformersGenerator",
    "build_generator",
]
