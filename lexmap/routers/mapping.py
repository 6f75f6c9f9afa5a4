from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from lexmap.core.context import get_standardization_service
from lexmap.core.models import Resolution
from lexmap.services.standardize import StandardizationService

router = APIRouter(prefix="/admin", tags=["mapping"])


@router.get("/suggest", response_model=Resolution)
async def suggest(
    query: str = Query(alias="q"),
    service: StandardizationService = Depends(get_standardization_service),
) -> Resolution:
    """Suggest a standard identifier for a Chinese phrase, e.g. 价格日期 -> PRC_DT."""
    return await service.resolve(query)
