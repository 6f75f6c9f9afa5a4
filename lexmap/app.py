from __future__ import annotations

import logging
import logging.handlers
import sys

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from lexmap.core import context
from lexmap.core.config import settings
from lexmap.core.errors import (
    DuplicateEntryError,
    EmbeddingFailureError,
    InputValidationError,
    LexmapError,
    NotFoundError,
    StoreUnavailableError,
)
from lexmap.routers import fields, health, mapping, roots, search, sync

# ── Centralized Logging Setup ──────────────────────────────────────────────
# Writes all WARNING+ logs to a rotating file in the runtime/logs directory.


def _setup_file_logging() -> None:
    """Configure a rotating file handler for the root logger.

    Log file: <runtime_root>/logs/lexmap-service.log
    Rotates at 5 MB, keeps 3 backups.
    """
    try:
        log_dir = settings.runtime_root / "logs"
        log_dir.mkdir(parents=True, exist_ok=True)
        log_file = log_dir / "lexmap-service.log"

        handler = logging.handlers.RotatingFileHandler(
            str(log_file),
            maxBytes=5 * 1024 * 1024,  # 5 MB
            backupCount=3,
            encoding="utf-8",
        )
        handler.setLevel(logging.WARNING)
        formatter = logging.Formatter(
            "%(asctime)s | %(levelname)-7s | %(name)s:%(lineno)d | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        handler.setFormatter(formatter)
        logging.getLogger().addHandler(handler)

        logging.getLogger(__name__).info("File logging enabled: %s (WARNING+, 5MB rotate x3)", log_file)
    except OSError as exc:
        # Don't crash the app if log setup fails
        print(f"[warn] Failed to set up file logging: {exc}", file=sys.stderr)


logging.basicConfig(level=settings.log_level.upper())
if settings.log_to_file:
    _setup_file_logging()


logger = logging.getLogger(__name__)

app = FastAPI(title="Lexmap Service", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(search.router, prefix="/api")
app.include_router(mapping.router, prefix="/api")
app.include_router(roots.router, prefix="/api")
app.include_router(fields.router, prefix="/api")
app.include_router(sync.router, prefix="/api")


def _error_status(exc: LexmapError) -> int:
    if isinstance(exc, NotFoundError):
        return status.HTTP_404_NOT_FOUND
    if isinstance(exc, DuplicateEntryError):
        return status.HTTP_409_CONFLICT
    if isinstance(exc, InputValidationError):
        return status.HTTP_400_BAD_REQUEST
    if isinstance(exc, (StoreUnavailableError, EmbeddingFailureError)):
        return status.HTTP_503_SERVICE_UNAVAILABLE
    return status.HTTP_500_INTERNAL_SERVER_ERROR


@app.exception_handler(LexmapError)
async def handle_lexmap_error(request: Request, exc: LexmapError) -> JSONResponse:
    code = _error_status(exc)
    if code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=code, content={"detail": str(exc), "error": type(exc).__name__})


@app.on_event("startup")
async def on_startup() -> None:
    logger.info("Runtime root: %s", settings.runtime_root)
    service = context.get_standardization_service()
    await service.startup(resync=settings.resync_on_startup)


@app.on_event("shutdown")
async def on_shutdown() -> None:
    context.shutdown()
