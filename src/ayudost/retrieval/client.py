"""Process-wide Chroma client shared by the search adapters."""

from __future__ import annotations

import threading

import chromadb
from chromadb.api import ClientAPI

from ayudost.config import Settings
from ayudost.metrics.observability import get_logger

_client: ClientAPI | None = None
_lock = threading.Lock()
_logger = get_logger("retrieval.client")


def get_chroma_client(settings: Settings) -> ClientAPI:
    """Return the shared client, creating it on first use."""

    global _client  # noqa: PLW0603 - lazily initialised singleton
    if _client is not None:
        return _client
    with _lock:
        if _client is None:
            if settings.chroma_host:
                _logger.info("chroma.connect", host=settings.chroma_host, port=settings.chroma_port or 8000)
                _client = chromadb.HttpClient(
                    host=settings.chroma_host,
                    port=settings.chroma_port or 8000,
                    ssl=settings.chroma_ssl,
                )
            else:
                _logger.info("chroma.open", path=str(settings.chroma_persist_dir))
                _client = chromadb.PersistentClient(path=str(settings.chroma_persist_dir))
    return _client


def reset_chroma_client() -> None:
    global _client  # noqa: PLW0603
    with _lock:
        _client = None
