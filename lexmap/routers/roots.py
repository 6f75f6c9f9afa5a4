from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status

from lexmap.core.context import get_standardization_service
from lexmap.core.models import BatchImportResult, MutationResult, SyncStatus, WordRoot, WordRootCreate
from lexmap.services.standardize import StandardizationService

router = APIRouter(prefix="/admin/roots", tags=["roots"])


def _status_code(result_status: SyncStatus, success: int) -> int:
    return status.HTTP_207_MULTI_STATUS if result_status == SyncStatus.PARTIAL else success


@router.get("", response_model=list[WordRoot])
async def list_roots(service: StandardizationService = Depends(get_standardization_service)) -> list[WordRoot]:
    return await service.list_roots()


@router.post("", response_model=MutationResult[WordRoot], status_code=status.HTTP_201_CREATED)
async def create_root(
    payload: WordRootCreate,
    response: Response,
    service: StandardizationService = Depends(get_standardization_service),
) -> MutationResult[WordRoot]:
    result = await service.create_root(payload)
    response.status_code = _status_code(result.status, status.HTTP_201_CREATED)
    return result


@router.post("/batch", response_model=BatchImportResult, status_code=status.HTTP_201_CREATED)
async def batch_create_roots(
    payloads: list[WordRootCreate],
    response: Response,
    service: StandardizationService = Depends(get_standardization_service),
) -> BatchImportResult:
    result = await service.batch_create_roots(payloads)
    response.status_code = _status_code(result.status, status.HTTP_201_CREATED)
    return result


@router.delete("/clear", response_model=MutationResult[int])
async def clear_roots(
    response: Response,
    service: StandardizationService = Depends(get_standardization_service),
) -> MutationResult[int]:
    result = await service.clear_roots()
    response.status_code = _status_code(result.status, status.HTTP_200_OK)
    return result


@router.put("/{root_id}", response_model=MutationResult[WordRoot])
async def update_root(
    root_id: int,
    payload: WordRootCreate,
    response: Response,
    service: StandardizationService = Depends(get_standardization_service),
) -> MutationResult[WordRoot]:
    result = await service.update_root(root_id, payload)
    response.status_code = _status_code(result.status, status.HTTP_200_OK)
    return result


@router.delete("/{root_id}", response_model=MutationResult[WordRoot])
async def delete_root(
    root_id: int,
    response: Response,
    service: StandardizationService = Depends(get_standardization_service),
) -> MutationResult[WordRoot]:
    result = await service.delete_root(root_id)
    response.status_code = _status_code(result.status, status.HTTP_200_OK)
    return result
