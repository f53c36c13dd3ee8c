from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, List, Optional, Sequence, TypeVar

from sqlalchemy import func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import contains_eager, selectinload
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from app.core.config import settings
from app.core.exceptions import CatalogRetrievalError
from app.core.logging import get_logger
from app.models.car import CarBrand, CarModel, CarVariant
from app.schemas.chat import CarContextItem, CarModelGroup, CarVariantSummary, UserPreferences
from app.services.catalog.vocabulary import normalize_body_type, normalize_brand_name

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class CarSearchFilters:
    marka: Optional[str] = None
    model: Optional[str] = None
    year_from: Optional[int] = None
    year_to: Optional[int] = None
    power: Optional[str] = None
    kpp: Optional[str] = None
    body_type: Optional[str] = None

    @classmethod
    def from_preferences(cls, prefs: UserPreferences) -> "CarSearchFilters":
        return cls(
            marka=normalize_brand_name(prefs.marka) if prefs.marka else None,
            model=prefs.model,
            year_from=prefs.year_from,
            year_to=prefs.year_to,
            power=prefs.power,
            kpp=prefs.kpp,
            body_type=normalize_body_type(prefs.body_type) if prefs.body_type else None,
        )


class CatalogCarSearchService:
    """Read-only queries over the car catalog tables."""

    def __init__(
        self,
        db: AsyncSession,
        *,
        retry_attempts: Optional[int] = None,
        retry_max_wait: Optional[float] = None,
    ):
        self.db = db
        self.retry_attempts = max(1, settings.CATALOG_RETRY_ATTEMPTS if retry_attempts is None else retry_attempts)
        self.retry_max_wait = (
            settings.CATALOG_RETRY_MAX_WAIT_SECONDS if retry_max_wait is None else retry_max_wait
        )

    @staticmethod
    def normalize_brand(name: str) -> str:
        return normalize_brand_name(name)

    @staticmethod
    def _like_condition(column, expected: str):
        return func.lower(func.coalesce(column, "")).contains(expected.strip().lower(), autoescape=True)

    @classmethod
    def _structural_conditions(cls, filters: CarSearchFilters) -> List:
        conditions = []
        if filters.marka:
            conditions.append(
                or_(
                    cls._like_condition(CarBrand.name, filters.marka),
                    cls._like_condition(CarBrand.code, filters.marka),
                )
            )
        if filters.model:
            conditions.append(cls._like_condition(CarModel.name, filters.model))
        if filters.year_from is not None:
            conditions.append(or_(CarVariant.year_to >= filters.year_from, CarVariant.year_to.is_(None)))
        if filters.year_to is not None:
            conditions.append(CarVariant.year_from <= filters.year_to)
        if filters.power:
            conditions.append(cls._like_condition(CarVariant.power_text, filters.power))
        if filters.kpp:
            conditions.append(cls._like_condition(CarVariant.kpp_text, filters.kpp))
        if filters.body_type:
            conditions.append(cls._like_condition(CarVariant.body_type, filters.body_type))
        return conditions

    @staticmethod
    def _keyword_condition(keywords: Sequence[str]):
        return or_(*(CarVariant.description.ilike(f"%{keyword}%") for keyword in keywords))

    async def _read(self, operation: Callable[[], Awaitable[T]]) -> T:
        async def attempt_once() -> T:
            try:
                return await operation()
            except SQLAlchemyError:
                await self.db.rollback()
                raise

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.retry_attempts),
                wait=wait_exponential(multiplier=0.2, max=self.retry_max_wait),
                retry=retry_if_exception_type(SQLAlchemyError),
                before_sleep=before_sleep_log(logger, logging.WARNING),
                reraise=True,
            ):
                with attempt:
                    return await attempt_once()
        except SQLAlchemyError as exc:
            logger.error("Catalog read failed after %s attempts: %s", self.retry_attempts, exc)
            raise CatalogRetrievalError(str(exc)) from exc
        raise CatalogRetrievalError("catalog read produced no result")

    def _variant_query(self):
        return (
            select(CarVariant)
            .join(CarVariant.model)
            .join(CarModel.brand)
            .options(
                contains_eager(CarVariant.model).contains_eager(CarModel.brand),
                selectinload(CarVariant.complectations),
            )
        )

    @staticmethod
    def _to_context_item(variant: CarVariant) -> CarContextItem:
        return CarContextItem(
            brand=variant.model.brand.name,
            model=variant.model.name,
            variant=variant.name,
            description=variant.description,
            year_from=variant.year_from,
            year_to=variant.year_to,
            power_text=variant.power_text,
            kpp_text=variant.kpp_text,
            body_type=variant.body_type,
            complectations=tuple(c.name for c in variant.complectations),
        )

    async def search_for_context(
        self,
        filters: CarSearchFilters,
        keywords: Optional[Sequence[str]] = None,
        limit: int = 10,
    ) -> List[CarContextItem]:
        """Variants for the grounding block.

        With keywords only described variants mentioning at least one keyword
        qualify; without them the structural filters alone apply.
        """
        conditions = self._structural_conditions(filters)
        if keywords:
            conditions.append(CarVariant.description.isnot(None))
            conditions.append(self._keyword_condition(keywords))

        stmt = (
            self._variant_query()
            .where(*conditions)
            .order_by(CarBrand.name, CarModel.name, CarVariant.name)
            .limit(limit)
        )

        async def run() -> List[CarContextItem]:
            result = await self.db.execute(stmt)
            return [self._to_context_item(v) for v in result.scalars().all()]

        items = await self._read(run)
        logger.debug(
            "Catalog context search returned %s items (keywords=%s)", len(items), list(keywords or [])
        )
        return items

    async def search_cars(
        self,
        filters: CarSearchFilters,
        limit: int = 50,
        offset: int = 0,
    ) -> List[CarModelGroup]:
        """Structural search grouped by model, year range spanning the matching variants."""
        conditions = self._structural_conditions(filters)
        model_stmt = (
            select(CarModel.id)
            .join(CarModel.brand)
            .join(CarModel.variants)
            .where(*conditions)
            .group_by(CarModel.id, CarBrand.name, CarModel.name)
            .order_by(CarBrand.name, CarModel.name)
            .offset(offset)
            .limit(limit)
        )

        async def run() -> List[CarVariant]:
            model_ids = list((await self.db.execute(model_stmt)).scalars().all())
            if not model_ids:
                return []
            variant_stmt = (
                self._variant_query()
                .where(CarVariant.model_id.in_(model_ids), *conditions)
                .order_by(CarBrand.name, CarModel.name, CarVariant.year_from, CarVariant.name)
            )
            return list((await self.db.execute(variant_stmt)).scalars().all())

        variants = await self._read(run)
        return self.group_variants(variants)

    @staticmethod
    def group_variants(variants: Sequence[CarVariant]) -> List[CarModelGroup]:
        groups: Dict[str, CarModelGroup] = {}
        for variant in variants:
            key = str(variant.model_id)
            group = groups.get(key)
            if group is None:
                group = CarModelGroup(
                    brand=variant.model.brand.name,
                    brand_code=variant.model.brand.code,
                    model_id=key,
                    model_name=variant.model.name,
                    year_from=variant.year_from,
                    year_to=variant.year_to,
                )
                groups[key] = group
            else:
                if variant.year_from is not None and (
                    group.year_from is None or variant.year_from < group.year_from
                ):
                    group.year_from = variant.year_from
                if variant.year_to is not None and (group.year_to is None or variant.year_to > group.year_to):
                    group.year_to = variant.year_to
            group.variants.append(
                CarVariantSummary(
                    id=str(variant.id),
                    name=variant.name,
                    body_type=variant.body_type,
                    year_from=variant.year_from,
                    year_to=variant.year_to,
                    power_text=variant.power_text,
                    kpp_text=variant.kpp_text,
                )
            )
        return list(groups.values())
