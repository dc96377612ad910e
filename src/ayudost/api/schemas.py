"""Pydantic models for the AyuDost API."""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class HistoryMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class QueryRequest(BaseModel):
    query: str = Field(..., min_length=1, description="End-user question to answer")
    history: List[HistoryMessage] = Field(
        default_factory=list,
        description="Prior conversation turns, most recent last",
    )
    mode: Optional[Literal["gyaan", "vaidya", "drishti", "legacy"]] = Field(
        default=None,
        description="Answering mode; defaults to the configured mode",
    )


class ProgressEventModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    step_index: int = Field(..., ge=0, alias="stepIndex")
    name: str
    status: Literal["pending", "running", "completed", "failed"]
    message: str
    duration_ms: Optional[int] = Field(default=None, ge=0, alias="durationMs")
    metadata: Optional[Dict[str, Any]] = None


class ResultMetadataModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    on_topic: bool = Field(..., alias="onTopic")
    rewritten_query: Optional[str] = Field(default=None, alias="rewrittenQuery")
    entities: Optional[Dict[str, List[str]]] = None
    context_sources: List[str] = Field(default_factory=list, alias="contextSources")
    accurate: Optional[bool] = None
    health_emergency: bool = Field(default=False, alias="healthEmergency")
    mode: str


class QueryResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    answer: str
    steps: List[ProgressEventModel]
    total_duration_ms: int = Field(..., ge=0, alias="totalDurationMs")
    metadata: ResultMetadataModel
