"""Parsing of entity-extraction replies into an :data:`EntityBundle`."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Union

from ayudost.models import ENTITY_CATEGORIES, EntityBundle, empty_entities

_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)


@dataclass(frozen=True)
class Parsed:
    entities: EntityBundle


@dataclass(frozen=True)
class ParseFailure:
    reason: str
    raw: str

    @property
    def entities(self) -> EntityBundle:
        return empty_entities()


ParseResult = Union[Parsed, ParseFailure]


def parse_entities(raw: str) -> ParseResult:
    """Parse model output; never raises."""

    payload = _extract_json(raw or "")
    if payload is None:
        return ParseFailure(reason="no JSON object found", raw=raw)
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as exc:
        return ParseFailure(reason=f"invalid JSON: {exc.msg}", raw=raw)
    if not isinstance(data, dict):
        return ParseFailure(reason="JSON root is not an object", raw=raw)
    bundle = {category: _as_strings(data.get(category)) for category in ENTITY_CATEGORIES}
    for key, value in data.items():
        if key not in bundle and isinstance(key, str):
            bundle[key] = _as_strings(value)
    return Parsed(entities=MappingProxyType(bundle))


def entity_count(entities: EntityBundle) -> int:
    return sum(len(values) for values in entities.values())


def _extract_json(raw: str) -> str | None:
    fenced = _FENCE_RE.search(raw)
    text = fenced.group(1) if fenced else raw
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        return None
    return text[start : end + 1]


def _as_strings(value: Any) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value.strip(),) if value.strip() else ()
    if isinstance(value, (list, tuple)):
        return tuple(str(item).strip() for item in value if item is not None and str(item).strip())
    return (str(value),)
