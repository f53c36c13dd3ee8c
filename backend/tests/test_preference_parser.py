from __future__ import annotations

import pytest

from app.services.catalog.vocabulary import BODY_TYPE_KEYWORDS
from app.services.chat.morphology import generate_word_forms
from app.services.chat.preference_parser import LOOKUPS, PreferenceParser


def test_parse_full_request_in_russian() -> None:
    prefs = PreferenceParser.parse("Хочу тойоту седан 2020 на автомате бюджет 2 млн")

    assert prefs.to_store() == {
        "marka": "Toyota",
        "bodyType": "Седан",
        "yearFrom": 2020,
        "kpp": "AT",
        "budget": 2_000_000,
    }


def test_parse_year_range() -> None:
    assert PreferenceParser.parse("от 2018 до 2022").to_store() == {"yearFrom": 2018, "yearTo": 2022}


def test_parse_returns_empty_preferences_for_unrelated_text() -> None:
    assert PreferenceParser.parse("Привет! Как дела?").is_empty()
    assert PreferenceParser.parse("").is_empty()
    assert PreferenceParser.parse("!!! ??? ...").is_empty()


@pytest.mark.parametrize(
    "message,brand",
    [
        ("Посоветуй мерседес", "Mercedes-Benz"),
        ("интересует бмв", "BMW"),
        ("что думаешь о хюндай", "Hyundai"),
        ("Ищу ленд ровер", "Land Rover"),
        ("хочу роллс-ройс", "Rolls-Royce"),
        ("Looking for a Land Rover", "Land Rover"),
        ("maybe toyota", "Toyota"),
        ("нравится лада", "LADA"),
        ("смотрю на ладу", "LADA"),
    ],
)
def test_parse_brand_aliases_and_latin_names(message: str, brand: str) -> None:
    assert PreferenceParser.parse(message).marka == brand


def test_parse_prefers_cyrillic_alias_over_latin_name() -> None:
    assert PreferenceParser.parse("сравни тойоту и Honda").marka == "Toyota"


def test_multiword_alias_wins_over_single_word_alias() -> None:
    assert PreferenceParser.parse("ленд ровер или мини").marka == "Land Rover"


@pytest.mark.parametrize(
    "keyword,label,form",
    [
        (keyword, label, form)
        for keyword, label in BODY_TYPE_KEYWORDS.items()
        for form in sorted(generate_word_forms(keyword))
    ],
)
def test_body_type_keywords_and_their_declensions(keyword: str, label: str, form: str) -> None:
    assert PreferenceParser.parse(f"Хочу {form}").body_type == label


@pytest.mark.parametrize(
    "message,kpp",
    [
        ("только на механике", "MT"),
        ("коробка акпп", "AT"),
        ("с вариатором", "CVT"),
        ("с роботом", "Robot"),
        ("automatic please", "AT"),
        ("manual gearbox", "MT"),
    ],
)
def test_parse_transmission(message: str, kpp: str) -> None:
    assert PreferenceParser.parse(message).kpp == kpp


@pytest.mark.parametrize(
    "message,expected",
    [
        ("машину с 2019 года", {"yearFrom": 2019}),
        ("не старше 2015", {"yearTo": 2015}),
        ("до 2012 года", {"yearTo": 2012}),
        ("after 2016", {"yearFrom": 2016}),
        ("before 2010", {"yearTo": 2010}),
        ("2021", {"yearFrom": 2021}),
        ("между 2022 и 2017", {"yearFrom": 2017, "yearTo": 2022}),
    ],
)
def test_parse_year_cues(message: str, expected: dict) -> None:
    prefs = PreferenceParser.parse(message)
    assert {k: v for k, v in prefs.to_store().items() if k in {"yearFrom", "yearTo"}} == expected


@pytest.mark.parametrize("message", ["в 1800 году", "к 2050 году", "код 12345", "номер 2020202"])
def test_parse_rejects_implausible_years(message: str) -> None:
    prefs = PreferenceParser.parse(message)
    assert prefs.year_from is None
    assert prefs.year_to is None


@pytest.mark.parametrize(
    "message,budget",
    [
        ("бюджет 2 млн", 2_000_000),
        ("до 1,5 млн", 1_500_000),
        ("до 2.3 млн рублей", 2_300_000),
        ("бюджет 800 тыс", 800_000),
        ("около 950 тысяч", 950_000),
        ("бюджет: 900000", 900_000),
        ("до 1200000 руб", 1_200_000),
    ],
)
def test_parse_budget_patterns(message: str, budget: int) -> None:
    assert PreferenceParser.parse(message).budget == budget


@pytest.mark.parametrize(
    "message,budget",
    [
        ("бюджет 1 500 000", 1_500_000),
        ("бюджет 1 500 000 рублей", 1_500_000),
        ("до 2 300 000 ₽", 2_300_000),
        ("бюджет 1 500 тыс", 1_500_000),
    ],
)
def test_parse_budget_with_digit_groups(message: str, budget: int) -> None:
    assert PreferenceParser.parse(message).budget == budget


def test_budget_digits_are_not_read_as_years() -> None:
    prefs = PreferenceParser.parse("бюджет 2000 тыс")
    assert prefs.budget == 2_000_000
    assert prefs.year_from is None

    prefs = PreferenceParser.parse("с 2018 года, бюджет 2000 тыс")
    assert prefs.budget == 2_000_000
    assert prefs.year_from == 2018
    assert prefs.year_to is None


def test_short_up_to_amount_is_a_year_not_a_budget() -> None:
    prefs = PreferenceParser.parse("до 2020 года")
    assert prefs.budget is None
    assert prefs.year_to == 2020


def test_parse_budget_ignores_zero_and_short_amounts() -> None:
    assert PreferenceParser.parse("бюджет 0").budget is None
    assert PreferenceParser.parse("до 5000").budget is None


def test_extract_keywords_skips_stop_words_and_known_concepts() -> None:
    keywords = PreferenceParser.extract_keywords("Какая машина получила премию за безопасность?")
    assert keywords == ["премию", "безопасность"]

    assert PreferenceParser.extract_keywords("Хочу тойоту седан 2020 на автомате бюджет 2 млн") == []


def test_extract_keywords_dedupes_and_caps() -> None:
    keywords = PreferenceParser.extract_keywords("alpha beta gamma alpha delta epsilon zeta")
    assert keywords == ["alpha", "beta", "gamma", "delta", "epsilon"]
    assert PreferenceParser.extract_keywords("alpha beta gamma", max_keywords=2) == ["alpha", "beta"]


def test_known_forms_cover_every_structured_vocabulary() -> None:
    assert {"тойоту", "седаны", "автомате", "land", "rover", "bmw"} <= LOOKUPS.known_forms
