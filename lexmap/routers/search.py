from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query

from lexmap.core.context import get_standardization_service
from lexmap.core.models import SearchResponse
from lexmap.services.standardize import StandardizationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/public", tags=["search"])


@router.get("/search", response_model=SearchResponse)
async def search(
    query: str = Query(alias="q"),
    collection: str | None = Query(default=None, description="Defaults to the standard field collection"),
    service: StandardizationService = Depends(get_standardization_service),
) -> SearchResponse:
    target = collection or service.mirror.field_collection
    logger.info("GET /public/search: q=%s collection=%s", query, target)
    return await service.search(query, target)


@router.get("/similar-roots", response_model=SearchResponse)
async def similar_roots(
    query: str = Query(alias="q"),
    service: StandardizationService = Depends(get_standardization_service),
) -> SearchResponse:
    return await service.search(query, service.mirror.root_collection)
