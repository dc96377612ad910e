"""Command-line entrypoint for asking AyuDost a single question."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Sequence

from ayudost.config import Settings, get_settings
from ayudost.errors import PipelineError
from ayudost.models import ChatMessage, Mode, PipelineRequest, PipelineResult, ProgressEvent
from ayudost.services.pipeline import RAGPipeline


def load_history(path: Path) -> list[ChatMessage]:
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, list):
        raise ValueError("History file must contain a JSON list of {role, content} objects")
    return [ChatMessage(role=item["role"], content=item["content"]) for item in data]


def _print_progress(event: ProgressEvent) -> None:
    suffix = f" ({event.duration_ms} ms)" if event.duration_ms is not None else ""
    print(f"[{event.step_index:>2}] {event.name}: {event.message}{suffix}", file=sys.stderr)


async def ask(
    request: PipelineRequest,
    *,
    pipeline: RAGPipeline,
    timeout: float | None = None,
    quiet: bool = False,
) -> PipelineResult:
    callback = None if quiet else _print_progress
    return await asyncio.wait_for(pipeline.run(request, callback), timeout=timeout)


def parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Ask the AyuDost Ayurvedic assistant a question.")
    parser.add_argument("question", help="Question to answer")
    parser.add_argument(
        "--mode",
        choices=[mode.value for mode in Mode],
        default=None,
        help="Answering mode (defaults to AYUDOST_DEFAULT_MODE)",
    )
    parser.add_argument("--history", type=Path, default=None, help="Optional JSON file with prior turns")
    parser.add_argument("--timeout", type=float, default=None, help="Abort the run after this many seconds")
    parser.add_argument("--json-out", type=Path, default=None, help="Optional path to write the full result")
    parser.add_argument("--quiet", action="store_true", help="Do not print stage progress")
    return parser.parse_args(argv)


def main(
    argv: Sequence[str] | None = None,
    *,
    settings: Settings | None = None,
    pipeline: RAGPipeline | None = None,
) -> int:
    args = parse_args(argv if argv is not None else sys.argv[1:])
    settings = settings or get_settings()
    try:
        history = load_history(args.history) if args.history else []
        request = PipelineRequest.build(args.question, history, args.mode or settings.default_mode)
    except (OSError, ValueError, KeyError) as exc:
        print(f"Invalid input: {exc}", file=sys.stderr)
        return 2

    pipeline = pipeline or RAGPipeline.from_settings(settings)
    try:
        result = asyncio.run(ask(request, pipeline=pipeline, timeout=args.timeout, quiet=args.quiet))
    except asyncio.TimeoutError:
        print(f"Timed out after {args.timeout} seconds", file=sys.stderr)
        return 1
    except PipelineError as exc:
        print(f"Pipeline failed: {exc}", file=sys.stderr)
        return 1

    if args.json_out:
        args.json_out.write_text(json.dumps(result.to_dict(), indent=2), encoding="utf-8")
    print(result.answer)
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    sys.exit(main())
