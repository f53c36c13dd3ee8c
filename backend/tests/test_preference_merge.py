from __future__ import annotations

import logging

import pytest

from app.schemas.chat import UserPreferences
from app.services.chat.preference_parser import (
    merge_preferences,
    parse_preferences_block,
    strip_preferences_block,
)


def test_merge_new_values_win_and_old_values_survive() -> None:
    merged = merge_preferences({"marka": "Toyota", "kpp": "AT"}, {"marka": "BMW", "yearFrom": 2020})
    assert merged.to_store() == {"marka": "BMW", "kpp": "AT", "yearFrom": 2020}


@pytest.mark.parametrize(
    "old,new",
    [
        ({"marka": "Toyota", "budget": 1_000_000}, {}),
        ({"marka": "Toyota", "budget": 1_000_000}, {"marka": "", "budget": None}),
        ({"marka": "Toyota", "budget": 1_000_000}, {"color": "   "}),
        ({"yearFrom": 2015, "bodyType": "Седан"}, {"yearTo": 2020}),
    ],
)
def test_merge_never_erases_with_blanks(old: dict, new: dict) -> None:
    merged = merge_preferences(old, new).to_store()
    for key, value in old.items():
        assert merged[key] == value


def test_merge_accepts_models_and_none() -> None:
    old = UserPreferences(marka="Toyota", year_from=2018)
    new = UserPreferences(year_from=2020)

    assert merge_preferences(old, new).to_store() == {"marka": "Toyota", "yearFrom": 2020}
    assert merge_preferences(None, new) == new
    assert merge_preferences(old, None) == old
    assert merge_preferences(None, None).is_empty()


def test_from_untrusted_drops_invalid_slots_one_by_one() -> None:
    prefs = UserPreferences.from_untrusted(
        {
            "marka": "BMW",
            "yearFrom": "2020",
            "yearTo": 1800,
            "kpp": "automatic",
            "budget": True,
            "bodyType": "x" * 100,
            "model": "X5",
            "unknownField": "value",
        }
    )
    assert prefs.to_store() == {"marka": "BMW", "model": "X5"}


def test_from_untrusted_normalizes_kpp_case() -> None:
    assert UserPreferences.from_untrusted({"kpp": "robot"}).kpp == "Robot"
    assert UserPreferences.from_untrusted(["not", "a", "mapping"]).is_empty()


def test_parse_preferences_block_keeps_recognized_slots() -> None:
    text = 'Подберу варианты.\n[PREFERENCES]\n{"marka":"BMW","yearFrom":2019,"unknownField":"value"}\n[/PREFERENCES]'
    assert parse_preferences_block(text).to_store() == {"marka": "BMW", "yearFrom": 2019}


def test_parse_preferences_block_without_block_is_empty() -> None:
    assert parse_preferences_block("Просто текст").is_empty()
    assert parse_preferences_block("").is_empty()
    assert parse_preferences_block("[PREFERENCES]{}[/PREFERENCES]").is_empty()


@pytest.mark.parametrize(
    "payload",
    ["{not json}", '["marka", "BMW"]', '"BMW"'],
)
def test_parse_preferences_block_malformed_payload_logs_warning(
    payload: str,
    caplog: pytest.LogCaptureFixture,
) -> None:
    with caplog.at_level(logging.WARNING, logger="app.services.chat.preference_parser"):
        prefs = parse_preferences_block(f"ok [PREFERENCES]{payload}[/PREFERENCES]")

    assert prefs.is_empty()
    assert any(record.levelno == logging.WARNING for record in caplog.records)


def test_strip_preferences_block_removes_every_complete_block() -> None:
    text = 'a[PREFERENCES]{"marka":"BMW"}[/PREFERENCES]b[PREFERENCES]{}[/PREFERENCES]c'
    assert strip_preferences_block(text) == "abc"
    assert strip_preferences_block("a[PREFERENCES]{") == "a[PREFERENCES]{"
