from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Response, status

from lexmap.core.context import get_standardization_service
from lexmap.core.models import EntityKind, ResyncReport, SyncReport, SyncStatus
from lexmap.services.standardize import StandardizationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["sync"])


@router.post("/sync/{kind}/{record_id}", response_model=SyncReport)
async def sync_record(
    kind: EntityKind,
    record_id: int,
    response: Response,
    service: StandardizationService = Depends(get_standardization_service),
) -> SyncReport:
    result = await service.mirror_sync(kind, record_id)
    if result == SyncStatus.PARTIAL:
        response.status_code = status.HTTP_207_MULTI_STATUS
    elif result == SyncStatus.FAILED:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return SyncReport(kind=kind, id=record_id, status=result)


@router.post("/resync/{collection}", response_model=ResyncReport)
async def resync_collection(
    collection: str,
    service: StandardizationService = Depends(get_standardization_service),
) -> ResyncReport:
    logger.info("Resync requested for '%s'", collection)
    return await service.bulk_resync(collection)
