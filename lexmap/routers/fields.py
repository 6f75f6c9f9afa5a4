from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status

from lexmap.core.context import get_standardization_service
from lexmap.core.models import (
    MutationResult,
    StandardField,
    StandardFieldCreate,
    StandardFieldDetail,
    SyncStatus,
)
from lexmap.services.standardize import StandardizationService

router = APIRouter(prefix="/admin/fields", tags=["fields"])


def _status_code(result_status: SyncStatus, success: int) -> int:
    return status.HTTP_207_MULTI_STATUS if result_status == SyncStatus.PARTIAL else success


@router.get("", response_model=list[StandardField])
async def list_fields(service: StandardizationService = Depends(get_standardization_service)) -> list[StandardField]:
    return await service.list_fields()


@router.post("", response_model=MutationResult[StandardField], status_code=status.HTTP_201_CREATED)
async def create_field(
    payload: StandardFieldCreate,
    response: Response,
    service: StandardizationService = Depends(get_standardization_service),
) -> MutationResult[StandardField]:
    result = await service.create_field(payload)
    response.status_code = _status_code(result.status, status.HTTP_201_CREATED)
    return result


@router.delete("/clear", response_model=MutationResult[int])
async def clear_fields(
    response: Response,
    service: StandardizationService = Depends(get_standardization_service),
) -> MutationResult[int]:
    result = await service.clear_fields()
    response.status_code = _status_code(result.status, status.HTTP_200_OK)
    return result


@router.get("/{field_id}", response_model=StandardFieldDetail)
async def get_field_details(
    field_id: int,
    service: StandardizationService = Depends(get_standardization_service),
) -> StandardFieldDetail:
    """Field with its word roots in composition order."""
    return await service.field_details(field_id)


@router.put("/{field_id}", response_model=MutationResult[StandardField])
async def update_field(
    field_id: int,
    payload: StandardFieldCreate,
    response: Response,
    service: StandardizationService = Depends(get_standardization_service),
) -> MutationResult[StandardField]:
    result = await service.update_field(field_id, payload)
    response.status_code = _status_code(result.status, status.HTTP_200_OK)
    return result


@router.delete("/{field_id}", response_model=MutationResult[StandardField])
async def delete_field(
    field_id: int,
    response: Response,
    service: StandardizationService = Depends(get_standardization_service),
) -> MutationResult[StandardField]:
    result = await service.delete_field(field_id)
    response.status_code = _status_code(result.status, status.HTTP_200_OK)
    return result
