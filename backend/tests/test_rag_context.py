from __future__ import annotations

from typing import List, Optional, Sequence

import pytest

from app.core.exceptions import CatalogRetrievalError
from app.schemas.chat import CarContextItem, RagSearchStatus, UserPreferences
from app.services.catalog.car_search import CarSearchFilters
from app.services.chat.rag_context import (
    RagContextBuilder,
    RagContextResult,
    format_search_results,
    has_enough_preferences,
    render_context,
)


def _item(brand: str, model: str, variant: str, description: Optional[str] = None, **kwargs) -> CarContextItem:
    return CarContextItem(brand=brand, model=model, variant=variant, description=description, **kwargs)


class _FakeCatalog:
    def __init__(
        self,
        keyword_items: Sequence[CarContextItem] = (),
        structural_items: Sequence[CarContextItem] = (),
        error: Optional[Exception] = None,
    ):
        self.keyword_items = list(keyword_items)
        self.structural_items = list(structural_items)
        self.error = error
        self.calls: List[tuple] = []

    async def search_cars(self, filters, limit=50, offset=0):
        return []

    async def search_for_context(self, filters, keywords=None, limit=10):
        self.calls.append((filters, keywords, limit))
        if self.error is not None:
            raise self.error
        return list(self.keyword_items if keywords else self.structural_items)

    def normalize_brand(self, name):
        return name


def test_has_enough_preferences() -> None:
    assert not has_enough_preferences(UserPreferences())
    assert not has_enough_preferences(UserPreferences(budget=1_000_000, color="red"))
    assert has_enough_preferences(UserPreferences(marka="BMW"))
    assert has_enough_preferences(UserPreferences(year_from=2020))
    assert has_enough_preferences(UserPreferences(body_type="Седан"))


@pytest.mark.asyncio
async def test_build_without_signal_does_not_search() -> None:
    catalog = _FakeCatalog(structural_items=[_item("Toyota", "Camry", "2.5 AT")])
    result = await RagContextBuilder(catalog, limit=5).build(UserPreferences(budget=2_000_000), ["награду"])

    assert result.status == RagSearchStatus.NOT_PERFORMED
    assert result.items == ()
    assert catalog.calls == []


@pytest.mark.asyncio
async def test_build_with_zero_matches_is_distinct_from_no_search() -> None:
    catalog = _FakeCatalog()
    result = await RagContextBuilder(catalog, limit=5).build(UserPreferences(marka="Ferrari"))

    assert result.status == RagSearchStatus.EMPTY
    assert result.items == ()
    assert "Найдено автомобилей: 0" in render_context(result, "RU")
    assert render_context(RagContextResult(status=RagSearchStatus.NOT_PERFORMED), "RU") == ""


@pytest.mark.asyncio
async def test_build_honours_zero_limit() -> None:
    catalog = _FakeCatalog(structural_items=[_item("Toyota", "Camry", "2.5 AT")])
    builder = RagContextBuilder(catalog, limit=0)

    result = await builder.build(UserPreferences(marka="Toyota"))

    assert builder.limit == 0
    assert result.status == RagSearchStatus.EMPTY
    assert catalog.calls[0][2] == 0


@pytest.mark.asyncio
async def test_build_merges_keyword_pass_first_then_described_structural_items() -> None:
    award = _item("Toyota", "Camry", "2.5 AT", "Получила награду за безопасность")
    plain = _item("Toyota", "Corolla", "1.6 MT")
    described = _item("Toyota", "RAV4", "2.0 CVT", "Надежный кроссовер")
    other = _item("Toyota", "Land Cruiser", "4.0 AT", "Рамный внедорожник")
    catalog = _FakeCatalog(keyword_items=[award], structural_items=[plain, award, described, other])

    result = await RagContextBuilder(catalog, limit=3).build(UserPreferences(marka="тойота"), ["награду"])

    assert result.status == RagSearchStatus.FOUND
    assert [item.model for item in result.items] == ["Camry", "RAV4", "Land Cruiser"]
    (a_filters, a_keywords, a_limit), (b_filters, b_keywords, b_limit) = catalog.calls
    assert a_keywords == ["награду"] and a_limit == 3
    assert b_keywords is None and b_limit == 6
    assert a_filters == b_filters
    assert a_filters.marka == "Toyota"


@pytest.mark.asyncio
async def test_build_without_keywords_runs_structural_pass_only() -> None:
    items = [_item("BMW", "X5", f"v{i}") for i in range(4)]
    catalog = _FakeCatalog(structural_items=items)

    result = await RagContextBuilder(catalog, limit=2).build(UserPreferences(marka="BMW"), [])

    assert [item.variant for item in result.items] == ["v0", "v1"]
    assert len(catalog.calls) == 1
    assert catalog.calls[0][1] is None


@pytest.mark.asyncio
async def test_build_treats_catalog_failure_as_no_search() -> None:
    catalog = _FakeCatalog(error=CatalogRetrievalError("connection refused"))
    result = await RagContextBuilder(catalog).build(UserPreferences(kpp="AT"), ["надежный"])

    assert result.status == RagSearchStatus.NOT_PERFORMED


def test_filters_normalize_brand_and_body_type() -> None:
    filters = CarSearchFilters.from_preferences(UserPreferences(marka="бмв", body_type="SUV", kpp="AT"))
    assert filters.marka == "BMW"
    assert filters.body_type == "Внедорожник"
    assert filters.kpp == "AT"


def test_format_search_results_renders_every_field() -> None:
    context = format_search_results(
        [
            _item(
                "Toyota",
                "Camry",
                "2.5 AT (181 л.с.)",
                "Reliable sedan for daily commute.",
                year_from=2018,
                year_to=2023,
                power_text="181 л.с.",
                kpp_text="AT",
                body_type="Седан",
                complectations=("Comfort", "Luxe", "Luxe Multimedia"),
            )
        ],
        "RU",
    )

    assert "РЕЗУЛЬТАТЫ ПОИСКА ПО БАЗЕ ДАННЫХ" in context
    assert "Найдено автомобилей: 1" in context
    assert "1. Toyota Camry" in context
    assert "2.5 AT (181 л.с.)" in context
    assert "2018-2023" in context
    assert "Описание: Reliable sedan" in context
    assert "Комплектации: Comfort, Luxe, Luxe Multimedia" in context
    assert "ТОЛЬКО" in context


def test_format_search_results_omits_missing_optional_fields() -> None:
    context = format_search_results(
        [
            _item("BMW", "3 Series", "320i AT", year_from=2019, year_to=2023),
            _item("LADA", "Vesta", "1.6 MT", year_from=2015),
            _item("UAZ", "Hunter", "2.7 MT"),
        ]
    )

    assert "1. BMW 3 Series" in context
    assert "2. LADA Vesta" in context
    assert "3. UAZ Hunter" in context
    assert "Описание:" not in context
    assert "Комплектации:" not in context
    assert "2015-н.в." in context
    assert "Годы выпуска: н/д" in context


def test_format_search_results_in_english() -> None:
    context = format_search_results([_item("Honda", "Accord", "2.0 CVT", year_from=2019)], "EN")
    assert "DATABASE SEARCH RESULTS:" in context
    assert "Cars found: 1" in context
    assert "2019-present" in context


def test_format_search_results_empty_list_renders_nothing() -> None:
    assert format_search_results([]) == ""


@pytest.mark.parametrize("count", [1, 2, 5])
def test_rendered_block_mentions_every_item(count: int) -> None:
    items = [
        _item(f"Brand{i}", f"Model{i}", f"Variant{i}", f"Description {i}" if i % 2 else None)
        for i in range(count)
    ]
    context = render_context(RagContextResult(status=RagSearchStatus.FOUND, items=tuple(items)), "RU")

    for item in items:
        assert f"{item.brand} {item.model}" in context
        if item.description:
            assert item.description in context
