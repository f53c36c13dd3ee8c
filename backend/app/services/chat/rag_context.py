from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Set, Tuple

from app.core.config import settings
from app.core.exceptions import CatalogRetrievalError
from app.core.logging import get_logger
from app.schemas.chat import CarContextItem, RagSearchStatus, UserPreferences
from app.services.catalog.car_search import CarSearchFilters
from app.services.contracts import CatalogSearch

logger = get_logger(__name__)

_LABELS: Dict[str, Dict[str, str]] = {
    "RU": {
        "header": "РЕЗУЛЬТАТЫ ПОИСКА ПО БАЗЕ ДАННЫХ:",
        "count": "Найдено автомобилей: {count}",
        "variant": "Вариант",
        "years": "Годы выпуска",
        "present": "н.в.",
        "unknown": "н/д",
        "body": "Кузов",
        "power": "Мощность",
        "kpp": "КПП",
        "description": "Описание",
        "complectations": "Комплектации",
        "closing": (
            "Используй в ответе ТОЛЬКО автомобили из этого списка. "
            "Не придумывай модели и факты, которых здесь нет."
        ),
    },
    "EN": {
        "header": "DATABASE SEARCH RESULTS:",
        "count": "Cars found: {count}",
        "variant": "Variant",
        "years": "Years",
        "present": "present",
        "unknown": "n/a",
        "body": "Body",
        "power": "Power",
        "kpp": "Transmission",
        "description": "Description",
        "complectations": "Trims",
        "closing": (
            "Use ONLY the cars from this list in your answer. "
            "Do not invent models or facts that are not listed here."
        ),
    },
}


def _labels(language: Optional[str]) -> Dict[str, str]:
    return _LABELS.get((language or settings.DEFAULT_LANGUAGE).upper(), _LABELS["RU"])


def has_enough_preferences(prefs: UserPreferences) -> bool:
    return bool(prefs.marka or prefs.model or prefs.kpp or prefs.year_from is not None or prefs.body_type)


@dataclass(frozen=True)
class RagContextResult:
    status: RagSearchStatus
    items: Tuple[CarContextItem, ...] = field(default_factory=tuple)


def _format_years(item: CarContextItem, labels: Dict[str, str]) -> str:
    if item.year_from is None:
        return labels["unknown"]
    if item.year_to is None:
        return f"{item.year_from}-{labels['present']}"
    return f"{item.year_from}-{item.year_to}"


def format_search_results(items: Sequence[CarContextItem], language: Optional[str] = None) -> str:
    """Render catalog items as the grounding block appended to the system prompt."""
    if not items:
        return ""
    labels = _labels(language)
    lines: List[str] = [labels["header"], labels["count"].format(count=len(items)), ""]
    for index, item in enumerate(items, start=1):
        lines.append(f"{index}. {item.brand} {item.model}")
        lines.append(f"   {labels['variant']}: {item.variant}")
        lines.append(f"   {labels['years']}: {_format_years(item, labels)}")
        if item.body_type:
            lines.append(f"   {labels['body']}: {item.body_type}")
        if item.power_text:
            lines.append(f"   {labels['power']}: {item.power_text}")
        if item.kpp_text:
            lines.append(f"   {labels['kpp']}: {item.kpp_text}")
        if item.description:
            lines.append(f"   {labels['description']}: {item.description}")
        if item.complectations:
            lines.append(f"   {labels['complectations']}: {', '.join(item.complectations)}")
        lines.append("")
    lines.append(labels["closing"])
    return "\n".join(lines)


def render_context(result: RagContextResult, language: Optional[str] = None) -> str:
    if result.status == RagSearchStatus.FOUND:
        return format_search_results(result.items, language)
    if result.status == RagSearchStatus.EMPTY:
        labels = _labels(language)
        return "\n".join([labels["header"], labels["count"].format(count=0)])
    return ""


class RagContextBuilder:
    """Two retrieval passes merged into one ranked context list.

    The keyword pass only returns described variants that mention what the
    user asked about; the structural pass fills the rest, described variants
    first. Items are unique by (brand, model, variant).
    """

    def __init__(self, catalog: CatalogSearch, limit: Optional[int] = None):
        self.catalog = catalog
        self.limit = settings.RAG_RESULT_LIMIT if limit is None else limit

    async def build(
        self,
        prefs: UserPreferences,
        keywords: Optional[Sequence[str]] = None,
    ) -> RagContextResult:
        if not has_enough_preferences(prefs):
            return RagContextResult(status=RagSearchStatus.NOT_PERFORMED)

        filters = CarSearchFilters.from_preferences(prefs)
        try:
            keyword_items: List[CarContextItem] = []
            if keywords:
                keyword_items = await self.catalog.search_for_context(filters, list(keywords), self.limit)
            structural_items = await self.catalog.search_for_context(filters, None, self.limit * 2)
        except CatalogRetrievalError as exc:
            logger.warning("Catalog search skipped for this turn: %s", exc)
            return RagContextResult(status=RagSearchStatus.NOT_PERFORMED)

        structural_items = sorted(structural_items, key=lambda item: item.description is None)
        merged = self.merge(keyword_items, structural_items, self.limit)
        logger.info(
            "RAG context: %s keyword hits, %s structural hits, %s merged",
            len(keyword_items),
            len(structural_items),
            len(merged),
        )
        if not merged:
            return RagContextResult(status=RagSearchStatus.EMPTY)
        return RagContextResult(status=RagSearchStatus.FOUND, items=tuple(merged))

    @staticmethod
    def merge(
        primary: Sequence[CarContextItem],
        secondary: Sequence[CarContextItem],
        limit: int,
    ) -> List[CarContextItem]:
        seen: Set[Tuple[str, str, str]] = set()
        merged: List[CarContextItem] = []
        for item in list(primary) + list(secondary):
            if len(merged) >= limit:
                break
            if item.identity in seen:
                continue
            seen.add(item.identity)
            merged.append(item)
        return merged
