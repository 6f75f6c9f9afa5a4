from __future__ import annotations

import asyncio
import logging
import time

import httpx
from fastapi import APIRouter, Depends

from lexmap.core.config import settings
from lexmap.core.context import get_standardization_service
from lexmap.core.errors import IndexUnavailableError
from lexmap.core.models import HealthResponse, ServiceStatus
from lexmap.services.standardize import StandardizationService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])

# Cache endpoint checks so frequent health polling does not hammer the embedding server
_service_cache: dict[str, tuple[ServiceStatus, float]] = {}
_SERVICE_CACHE_TTL = 10.0


async def check_service(name: str, url: str | None, use_cache: bool = True) -> ServiceStatus:
    if not url:
        return ServiceStatus(name=name, status="unknown", details="URL not configured")

    now = time.perf_counter()
    cache_key = f"{name}:{url}"
    if use_cache and cache_key in _service_cache:
        cached_status, cached_time = _service_cache[cache_key]
        if now - cached_time < _SERVICE_CACHE_TTL:
            return cached_status

    start = now
    try:
        async with httpx.AsyncClient(timeout=2.0) as client:
            target = url.rstrip("/") + "/health"
            try:
                response = await client.get(target)
                if response.status_code == 404:
                    raise httpx.HTTPStatusError("Not Found", request=response.request, response=response)
            except httpx.HTTPStatusError:
                # Fallback to root
                response = await client.get(url.rstrip("/"))

            if 200 <= response.status_code < 500:  # reachable is enough
                latency = (time.perf_counter() - start) * 1000
                result = ServiceStatus(name=name, status="online", latency_ms=latency)
            else:
                result = ServiceStatus(name=name, status="offline", details=f"HTTP {response.status_code}")
    except httpx.HTTPError as exc:
        result = ServiceStatus(name=name, status="offline", details=str(exc))

    _service_cache[cache_key] = (result, time.perf_counter())
    return result


@router.get("/health", response_model=HealthResponse)
async def read_health(service: StandardizationService = Depends(get_standardization_service)) -> HealthResponse:
    storage = service.storage
    roots, fields = await asyncio.gather(
        asyncio.to_thread(storage.count_roots),
        asyncio.to_thread(storage.count_fields),
    )

    status = "ready" if roots else "idle"
    message = None
    indexed_roots = indexed_fields = None
    vectors = service.mirror.vector_store
    try:
        indexed_roots = vectors.count(service.mirror.root_collection)
        indexed_fields = vectors.count(service.mirror.field_collection)
    except IndexUnavailableError as exc:
        status = "degraded"
        message = f"Vector index unavailable: {exc}"

    embedding = await check_service("Embedding", settings.embedding.url)
    if embedding.status == "offline":
        status = "degraded"
        message = message or "Embedding service is offline; search is lexical only."

    return HealthResponse(
        status=status,
        roots=roots,
        fields=fields,
        indexed_roots=indexed_roots,
        indexed_fields=indexed_fields,
        message=message,
        services=[embedding],
    )
