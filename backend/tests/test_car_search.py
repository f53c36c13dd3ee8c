from __future__ import annotations

from types import SimpleNamespace
from typing import Any, List, Optional

import pytest
from sqlalchemy.exc import OperationalError

from app.core.exceptions import CatalogRetrievalError
from app.schemas.chat import UserPreferences
from app.services.catalog.car_search import CarSearchFilters, CatalogCarSearchService


def _variant(model_id: str, model: str, name: str, year_from: Optional[int], year_to: Optional[int], **extra) -> SimpleNamespace:
    brand = SimpleNamespace(name="Toyota", code="TOYOTA")
    return SimpleNamespace(
        id=f"{model_id}-{name}",
        model_id=model_id,
        model=SimpleNamespace(name=model, brand=brand),
        name=name,
        year_from=year_from,
        year_to=year_to,
        body_type=extra.get("body_type"),
        power_text=extra.get("power_text"),
        kpp_text=extra.get("kpp_text"),
        description=extra.get("description"),
        complectations=extra.get("complectations", []),
    )


class _Result:
    def __init__(self, rows: List[Any]):
        self._rows = rows

    def scalars(self) -> "_Result":
        return self

    def all(self) -> List[Any]:
        return list(self._rows)


class _FakeSession:
    def __init__(self, rows: Optional[List[Any]] = None, failures: int = 0):
        self.rows = rows or []
        self.failures = failures
        self.statements: List[Any] = []
        self.rollbacks = 0

    async def execute(self, stmt):
        self.statements.append(stmt)
        if self.failures:
            self.failures -= 1
            raise OperationalError("SELECT", {}, Exception("connection reset"))
        return _Result(self.rows)

    async def rollback(self) -> None:
        self.rollbacks += 1


def test_filters_from_preferences_keep_structural_slots_only() -> None:
    prefs = UserPreferences(marka="мерс", model="E-Class", year_from=2019, kpp="AT", budget=5_000_000, color="black")
    filters = CarSearchFilters.from_preferences(prefs)

    assert filters == CarSearchFilters(marka="Mercedes-Benz", model="E-Class", year_from=2019, kpp="AT")
    assert CarSearchFilters.from_preferences(UserPreferences()) == CarSearchFilters()


def test_group_variants_spans_year_range_of_matching_variants() -> None:
    variants = [
        _variant("m1", "Camry", "2.0 AT", 2018, 2021),
        _variant("m1", "Camry", "2.5 AT", 2016, None),
        _variant("m1", "Camry", "3.5 AT", 2019, 2023),
        _variant("m2", "RAV4", "2.0 CVT", None, None),
    ]

    groups = CatalogCarSearchService.group_variants(variants)

    assert [group.model_name for group in groups] == ["Camry", "RAV4"]
    camry, rav4 = groups
    assert (camry.year_from, camry.year_to) == (2016, 2023)
    assert [variant.name for variant in camry.variants] == ["2.0 AT", "2.5 AT", "3.5 AT"]
    assert camry.brand_code == "TOYOTA"
    assert (rav4.year_from, rav4.year_to) == (None, None)


@pytest.mark.asyncio
async def test_search_for_context_maps_rows_and_requires_descriptions_for_keywords() -> None:
    row = _variant(
        "m1",
        "Camry",
        "2.5 AT",
        2018,
        None,
        description="Получила награду за безопасность",
        kpp_text="AT",
        complectations=[SimpleNamespace(name="Comfort"), SimpleNamespace(name="Prestige")],
    )
    db = _FakeSession(rows=[row])
    service = CatalogCarSearchService(db)

    items = await service.search_for_context(CarSearchFilters(marka="Toyota"), keywords=["награду"], limit=5)

    assert len(items) == 1
    item = items[0]
    assert (item.brand, item.model, item.variant) == ("Toyota", "Camry", "2.5 AT")
    assert item.complectations == ("Comfort", "Prestige")
    assert item.year_to is None
    sql = str(db.statements[0])
    assert "IS NOT NULL" in sql
    assert "LIMIT" in sql


@pytest.mark.asyncio
async def test_search_for_context_without_keywords_uses_structural_filters_only() -> None:
    db = _FakeSession()
    service = CatalogCarSearchService(db)

    assert await service.search_for_context(CarSearchFilters(body_type="Седан")) == []
    assert "IS NOT NULL" not in str(db.statements[0])


@pytest.mark.asyncio
async def test_search_cars_skips_variant_query_when_no_models_match() -> None:
    db = _FakeSession()

    assert await CatalogCarSearchService(db).search_cars(CarSearchFilters(marka="Zaporozhets")) == []
    assert len(db.statements) == 1


@pytest.mark.asyncio
async def test_read_retries_transient_errors() -> None:
    db = _FakeSession(rows=[], failures=1)
    service = CatalogCarSearchService(db, retry_attempts=3, retry_max_wait=0)

    assert await service.search_for_context(CarSearchFilters(marka="BMW")) == []
    assert len(db.statements) == 2
    assert db.rollbacks == 1


@pytest.mark.asyncio
async def test_read_raises_catalog_error_after_exhausting_retries() -> None:
    db = _FakeSession(failures=10)
    service = CatalogCarSearchService(db, retry_attempts=3, retry_max_wait=0)

    with pytest.raises(CatalogRetrievalError):
        await service.search_for_context(CarSearchFilters(marka="BMW"))

    assert len(db.statements) == 3
    assert db.rollbacks == 3
