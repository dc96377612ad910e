from __future__ import annotations

from ayudost.models import ENTITY_CATEGORIES
from ayudost.services.entities import ParseFailure, Parsed, entity_count, parse_entities


def test_parses_plain_json() -> None:
    result = parse_entities('{"herbs": ["Neem", " "], "doshas": "Pitta"}')

    assert isinstance(result, Parsed)
    assert result.entities["herbs"] == ("Neem",)
    assert result.entities["doshas"] == ("Pitta",)
    assert result.entities["symptoms"] == ()
    assert entity_count(result.entities) == 2


def test_parses_json_embedded_in_prose() -> None:
    result = parse_entities('Here you go: {"diseases": ["Amlapitta"]} hope this helps')

    assert isinstance(result, Parsed)
    assert result.entities["diseases"] == ("Amlapitta",)


def test_keeps_extra_categories() -> None:
    result = parse_entities('{"herbs": [], "remedies": ["Triphala churna"]}')

    assert result.entities["remedies"] == ("Triphala churna",)


def test_non_json_is_a_failure_with_empty_categories() -> None:
    result = parse_entities("No entities found.")

    assert isinstance(result, ParseFailure)
    assert set(result.entities) == set(ENTITY_CATEGORIES)
    assert entity_count(result.entities) == 0


def test_malformed_or_missing_json_fails() -> None:
    assert isinstance(parse_entities('{"herbs": [Neem]}'), ParseFailure)
    assert isinstance(parse_entities(""), ParseFailure)
