"""Shared domain models used across the AyuDost pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Iterable, Literal, Mapping, Sequence

ENTITY_CATEGORIES: tuple[str, ...] = ("herbs", "doshas", "diseases", "symptoms")

EntityBundle = Mapping[str, tuple[str, ...]]


def empty_entities() -> EntityBundle:
    """Bundle with every known category present and empty."""

    return MappingProxyType({category: () for category in ENTITY_CATEGORIES})


class Mode(str, Enum):
    """Answering mode selected once per run."""

    GYAAN = "gyaan"
    VAIDYA = "vaidya"
    DRISHTI = "drishti"
    LEGACY = "legacy"


class StepStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class DocumentSource(str, Enum):
    VECTOR = "vector"
    KEYWORD = "keyword"


@dataclass(frozen=True)
class ChatMessage:
    """One prior turn of the conversation."""

    role: Literal["user", "assistant"]
    content: str

    def __post_init__(self) -> None:
        if self.role not in ("user", "assistant"):
            raise ValueError(f"Unsupported message role: {self.role!r}")


@dataclass(frozen=True)
class PipelineRequest:
    """Immutable input for a single pipeline run."""

    query: str
    history: tuple[ChatMessage, ...] = ()
    mode: Mode = Mode.GYAAN

    def __post_init__(self) -> None:
        normalized = (self.query or "").strip()
        if not normalized:
            raise ValueError("query must be a non-empty string")
        object.__setattr__(self, "query", normalized)
        object.__setattr__(self, "history", tuple(self.history))

    @classmethod
    def build(
        cls,
        query: str,
        history: Iterable[ChatMessage | Mapping[str, str]] = (),
        mode: Mode | str = Mode.GYAAN,
    ) -> "PipelineRequest":
        messages = tuple(
            item if isinstance(item, ChatMessage) else ChatMessage(role=item["role"], content=item["content"])  # type: ignore[arg-type]
            for item in history
        )
        return cls(query=query, history=messages, mode=Mode(mode))

    def history_suffix(self, turns: int) -> tuple[ChatMessage, ...]:
        if turns <= 0:
            return ()
        return self.history[-turns:]


@dataclass(frozen=True)
class ProgressEvent:
    """Stage transition pushed to progress observers."""

    step_index: int
    name: str
    status: StepStatus
    message: str
    duration_ms: int | None = None
    metadata: Mapping[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "stepIndex": self.step_index,
            "name": self.name,
            "status": self.status.value,
            "message": self.message,
        }
        if self.duration_ms is not None:
            payload["durationMs"] = self.duration_ms
        if self.metadata is not None:
            payload["metadata"] = _jsonable(self.metadata)
        return payload


@dataclass(frozen=True)
class RetrievedDocument:
    """Scored document returned by one of the search adapters."""

    id: str
    score: float
    source: DocumentSource
    metadata: Mapping[str, Any] = field(default_factory=dict)

    @property
    def text(self) -> str:
        return str(self.metadata.get("text") or self.metadata.get("content") or "")

    @property
    def title(self) -> str | None:
        value = self.metadata.get("title")
        return str(value) if value else None

    @property
    def category(self) -> str:
        return str(self.metadata.get("category") or "")


@dataclass(frozen=True)
class PipelineMetadata:
    on_topic: bool
    context_sources: frozenset[str] = frozenset()
    rewritten_query: str | None = None
    entities: EntityBundle | None = None
    accurate: bool | None = None
    health_emergency: bool = False
    mode: Mode = Mode.GYAAN

    def to_dict(self) -> dict[str, Any]:
        return {
            "onTopic": self.on_topic,
            "rewrittenQuery": self.rewritten_query,
            "entities": _jsonable(self.entities) if self.entities is not None else None,
            "contextSources": sorted(self.context_sources),
            "accurate": self.accurate,
            "healthEmergency": self.health_emergency,
            "mode": self.mode.value,
        }


@dataclass(frozen=True)
class PipelineResult:
    """Terminal output of one pipeline run."""

    answer: str
    steps: Sequence[ProgressEvent]
    total_duration_ms: int
    metadata: PipelineMetadata

    def to_dict(self) -> dict[str, Any]:
        return {
            "answer": self.answer,
            "steps": [step.to_dict() for step in self.steps],
            "totalDurationMs": self.total_duration_ms,
            "metadata": self.metadata.to_dict(),
        }


def _jsonable(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_jsonable(v) for v in value]
    if isinstance(value, Enum):
        return value.value
    return value
