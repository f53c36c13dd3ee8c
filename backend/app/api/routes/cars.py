from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.core.exceptions import CatalogRetrievalError
from app.core.logging import get_logger
from app.dependencies import get_catalog_service
from app.schemas.chat import CarModelGroup, UserPreferences
from app.services.catalog.car_search import CarSearchFilters, CatalogCarSearchService

router = APIRouter()
logger = get_logger(__name__)

@router.get("/search", response_model=List[CarModelGroup])
async def search_cars(
    marka: Optional[str] = None,
    model: Optional[str] = None,
    year_from: Optional[int] = Query(default=None, alias="yearFrom"),
    year_to: Optional[int] = Query(default=None, alias="yearTo"),
    power: Optional[str] = None,
    kpp: Optional[str] = None,
    body_type: Optional[str] = Query(default=None, alias="bodyType"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    catalog: CatalogCarSearchService = Depends(get_catalog_service),
):
    """Structural catalog search grouped by model. Invalid filter values are ignored."""
    prefs = UserPreferences.from_untrusted(
        {
            "marka": marka,
            "model": model,
            "yearFrom": year_from,
            "yearTo": year_to,
            "power": power,
            "kpp": kpp,
            "bodyType": body_type,
        }
    )
    try:
        return await catalog.search_cars(CarSearchFilters.from_preferences(prefs), limit=limit, offset=offset)
    except CatalogRetrievalError as e:
        logger.error(f"Car search failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Catalog is temporarily unavailable",
        )
