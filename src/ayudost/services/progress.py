"""Per-run progress event recording."""

from __future__ import annotations

from typing import Callable

from ayudost.metrics.observability import get_logger
from ayudost.models import ProgressEvent

ProgressCallback = Callable[[ProgressEvent], None]


class ProgressRecorder:
    """Keeps the ordered event log of one run and forwards events to an observer.

    ``events`` holds every transition in emission order. ``steps`` holds the
    latest transition of each stage, in stage order, which is what a finished
    run reports.
    """

    def __init__(self, callback: ProgressCallback | None = None) -> None:
        self._callback = callback
        self._events: list[ProgressEvent] = []
        self._latest: dict[int, ProgressEvent] = {}
        self._logger = get_logger("progress")

    @property
    def events(self) -> tuple[ProgressEvent, ...]:
        return tuple(self._events)

    @property
    def steps(self) -> tuple[ProgressEvent, ...]:
        return tuple(self._latest.values())

    def emit(self, event: ProgressEvent) -> None:
        self._events.append(event)
        self._latest[event.step_index] = event
        if self._callback is None:
            return
        try:
            self._callback(event)
        except Exception as exc:  # observer failures must not fail the run
            self._logger.warning("progress.callback_failed", step=event.step_index, error=str(exc))
