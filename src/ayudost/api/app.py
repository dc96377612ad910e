"""FastAPI application exposing the AyuDost pipeline."""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from typing import AsyncIterator
from uuid import uuid4

from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response, StreamingResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from ayudost.api.schemas import QueryRequest, QueryResponse
from ayudost.config import Settings, get_settings
from ayudost.errors import PipelineError
from ayudost.metrics.observability import bind_correlation_id, clear_correlation_id, configure_logging, get_logger
from ayudost.models import PipelineRequest, ProgressEvent
from ayudost.services.pipeline import RAGPipeline


@dataclass(frozen=True)
class AppDependencies:
    pipeline: RAGPipeline


def _build_dependencies(settings: Settings) -> AppDependencies:
    return AppDependencies(pipeline=RAGPipeline.from_settings(settings))


def _to_request(payload: QueryRequest, settings: Settings) -> PipelineRequest:
    try:
        return PipelineRequest.build(
            payload.query,
            [message.model_dump() for message in payload.history],
            payload.mode or settings.default_mode,
        )
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc


def create_app(*, settings: Settings | None = None, dependencies: AppDependencies | None = None) -> FastAPI:
    settings = settings or get_settings()
    deps = dependencies or _build_dependencies(settings)

    configure_logging()
    logger = get_logger("api")
    app = FastAPI(title="AyuDost RAG API", version="0.1.0")
    app.state.dependencies = deps

    if settings.cors_allow_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=list(settings.cors_allow_origins),
            allow_credentials=settings.cors_allow_credentials,
            allow_methods=list(settings.cors_allow_methods),
            allow_headers=list(settings.cors_allow_headers),
        )

    @app.middleware("http")
    async def add_correlation_id(request: Request, call_next):  # type: ignore[override]
        correlation_id = request.headers.get("X-Request-ID", uuid4().hex)
        request.state.correlation_id = correlation_id
        bind_correlation_id(correlation_id)
        try:
            response = await call_next(request)
        finally:
            clear_correlation_id()
        response.headers["X-Correlation-ID"] = correlation_id
        return response

    def require_api_key(request: Request) -> None:
        expected = settings.api_key
        if not expected:
            return
        provided = request.headers.get("X-API-Key")
        if provided != expected:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid API key")

    @app.exception_handler(PipelineError)
    async def handle_pipeline_error(request: Request, exc: PipelineError) -> JSONResponse:
        correlation_id = getattr(request.state, "correlation_id", uuid4().hex)
        logger.error("pipeline.unavailable", correlation_id=correlation_id, detail=str(exc))
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"detail": "Service unavailable, please retry", "correlation_id": correlation_id},
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        correlation_id = getattr(request.state, "correlation_id", uuid4().hex)
        logger.error("unhandled.error", correlation_id=correlation_id, detail=str(exc))
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal Server Error", "correlation_id": correlation_id},
        )

    def get_pipeline(request: Request) -> RAGPipeline:
        return request.app.state.dependencies.pipeline

    @app.post("/query", response_model=QueryResponse, response_model_by_alias=True)
    async def query(
        payload: QueryRequest,
        pipeline: RAGPipeline = Depends(get_pipeline),
        _auth: None = Depends(require_api_key),
    ) -> QueryResponse:
        result = await pipeline.run(_to_request(payload, settings))
        return QueryResponse.model_validate(result.to_dict())

    @app.post("/query/stream")
    async def query_stream(
        payload: QueryRequest,
        request: Request,
        pipeline: RAGPipeline = Depends(get_pipeline),
        _auth: None = Depends(require_api_key),
    ) -> StreamingResponse:
        pipeline_request = _to_request(payload, settings)
        correlation_id = request.state.correlation_id

        async def iter_sse() -> AsyncIterator[str]:
            # The body streams after the middleware has cleared the log context.
            bind_correlation_id(correlation_id)
            queue: asyncio.Queue[ProgressEvent | None] = asyncio.Queue()
            task = asyncio.create_task(pipeline.run(pipeline_request, queue.put_nowait))
            task.add_done_callback(lambda _: queue.put_nowait(None))
            # Initial heartbeat to keep idle proxies open
            yield ": heartbeat\n\n"
            try:
                while True:
                    event = await queue.get()
                    if event is None:
                        break
                    yield f"event: progress\ndata: {json.dumps(event.to_dict())}\n\n"
                try:
                    result = task.result()
                except PipelineError as exc:
                    logger.error("pipeline.unavailable", detail=str(exc))
                    yield f"event: error\ndata: {json.dumps({'detail': 'Service unavailable, please retry'})}\n\n"
                    return
                except Exception as exc:
                    logger.error("unhandled.error", detail=str(exc))
                    yield f"event: error\ndata: {json.dumps({'detail': 'Internal Server Error'})}\n\n"
                    return
                yield f"event: result\ndata: {json.dumps(result.to_dict())}\n\n"
            finally:
                if not task.done():
                    task.cancel()

        return StreamingResponse(iter_sse(), media_type="text/event-stream")

    @app.get("/metrics")
    async def metrics() -> Response:
        payload = generate_latest()
        return Response(content=payload, media_type=CONTENT_TYPE_LATEST)

    @app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        from ayudost import __version__

        return {"status": "ok", "version": __version__, "environment": settings.environment}

    @app.head("/healthz")
    async def healthcheck_head() -> Response:
        return Response(status_code=status.HTTP_200_OK)

    @app.get("/livez")
    async def liveness() -> dict[str, str]:
        return {"status": "alive"}

    @app.get("/healthz/ready")
    async def readiness(pipeline: RAGPipeline = Depends(get_pipeline)) -> dict[str, str]:
        try:
            pipeline.check_ready()
            return {"status": "ready"}
        except Exception as exc:
            return {"status": "error", "detail": str(exc)}

    return app


app = create_app()
