"""Tests for the FastAPI application."""

from __future__ import annotations

import json

from fastapi.testclient import TestClient

from conftest import FakeKeywordSearch, FakeVectorSearch, ScriptedGenerator, make_doc

from ayudost.api.app import AppDependencies, create_app
from ayudost.config import Settings
from ayudost.errors import GenerationError
from ayudost.models import DocumentSource
from ayudost.services import prompts


def create_test_client(pipeline_factory, settings: Settings | None = None, **pipeline_kwargs) -> TestClient:
    deps = AppDependencies(pipeline=pipeline_factory(**pipeline_kwargs))
    app = create_app(settings=settings or Settings(environment="test"), dependencies=deps)
    return TestClient(app)


def test_query_returns_answer_and_steps(pipeline_factory) -> None:
    client = create_test_client(
        pipeline_factory,
        vector=FakeVectorSearch([make_doc("v1", 0.9, DocumentSource.VECTOR, title="Ashwagandha")]),
    )

    response = client.post(
        "/query",
        json={"query": "Benefits of Ashwagandha?", "history": [{"role": "user", "content": "Namaste"}]},
        headers={"X-Request-ID": "req-123"},
    )

    assert response.status_code == 200, response.text
    payload = response.json()
    assert payload["answer"]
    assert payload["metadata"]["onTopic"] is True
    assert payload["metadata"]["contextSources"] == ["vector"]
    assert [step["stepIndex"] for step in payload["steps"]] == list(range(1, 11))
    assert response.headers["X-Correlation-ID"] == "req-123"


def test_off_topic_query_is_a_normal_response(pipeline_factory) -> None:
    client = create_test_client(pipeline_factory, generator=ScriptedGenerator(domain="no"))

    response = client.post("/query", json={"query": "What is the capital of France?"})

    assert response.status_code == 200
    assert response.json()["answer"] == prompts.REFUSAL_MESSAGE
    assert response.json()["metadata"]["onTopic"] is False


def test_blank_query_is_rejected(pipeline_factory) -> None:
    client = create_test_client(pipeline_factory)

    assert client.post("/query", json={"query": ""}).status_code == 422
    blank = client.post("/query", json={"query": "   "})
    assert blank.status_code == 422
    assert "non-empty" in blank.json()["detail"]


def test_generation_outage_maps_to_503(pipeline_factory) -> None:
    class Unreachable:
        def generate(self, prompt: str) -> str:
            raise GenerationError("quota exceeded")

    client = create_test_client(pipeline_factory, generator=Unreachable())

    response = client.post("/query", json={"query": "What is Vata?"})

    assert response.status_code == 503
    assert response.json()["detail"] == "Service unavailable, please retry"
    assert response.json()["correlation_id"]


def test_api_key_is_enforced_when_configured(pipeline_factory) -> None:
    client = create_test_client(pipeline_factory, settings=Settings(environment="test", api_key="secret"))

    assert client.post("/query", json={"query": "What is Vata?"}).status_code == 401
    ok = client.post("/query", json={"query": "What is Vata?"}, headers={"X-API-Key": "secret"})
    assert ok.status_code == 200


def test_stream_emits_progress_then_result(pipeline_factory) -> None:
    client = create_test_client(pipeline_factory, keyword=FakeKeywordSearch())

    with client.stream("POST", "/query/stream", json={"query": "What is Pitta?", "mode": "vaidya"}) as response:
        body = "".join(response.iter_text())

    assert response.status_code == 200
    events = [block for block in body.split("\n\n") if block.startswith("event:")]
    assert len(events) == 21
    assert all(block.startswith("event: progress") for block in events[:-1])
    assert events[-1].startswith("event: result")
    result = json.loads(events[-1].split("data: ", 1)[1])
    assert result["metadata"]["mode"] == "vaidya"
    first = json.loads(events[0].split("data: ", 1)[1])
    assert first == {"stepIndex": 1, "name": "Domain Check", "status": "running", "message": "Checking if query is Ayurvedic..."}


def test_stream_reports_pipeline_errors(pipeline_factory) -> None:
    client = create_test_client(pipeline_factory, generator=ScriptedGenerator(fail_on="answer"))

    with client.stream("POST", "/query/stream", json={"query": "What is Kapha?"}) as response:
        body = "".join(response.iter_text())

    assert '"status": "failed"' in body
    assert "event: error" in body
    assert "event: result" not in body


def test_health_endpoints(pipeline_factory) -> None:
    client = create_test_client(pipeline_factory)

    assert client.get("/healthz").json()["status"] == "ok"
    assert client.head("/healthz").status_code == 200
    assert client.get("/livez").json() == {"status": "alive"}
    assert client.get("/healthz/ready").json() == {"status": "ready"}


def test_readiness_reports_store_errors(pipeline_factory) -> None:
    class Down(FakeVectorSearch):
        def count(self) -> int:
            raise ConnectionError("index unreachable")

    client = create_test_client(pipeline_factory, vector=Down())

    assert client.get("/healthz/ready").json() == {"status": "error", "detail": "index unreachable"}


def test_metrics_exposes_pipeline_counters(pipeline_factory) -> None:
    client = create_test_client(pipeline_factory)
    client.post("/query", json={"query": "What is Ojas?"})

    response = client.get("/metrics")

    assert response.status_code == 200
    assert "ayudost_stage_duration_seconds" in response.text
