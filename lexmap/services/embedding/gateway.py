from __future__ import annotations

import asyncio
import logging
from typing import Protocol, Sequence

from lexmap.core.errors import EmbeddingFailureError

logger = logging.getLogger(__name__)


class EmbeddingBackend(Protocol):
    async def encode(self, texts: Sequence[str]) -> list[list[float]]: ...


class EmbeddingGateway:
    """
    Serializes access to the embedding backend.

    The backend holds one model that cannot serve concurrent requests, so every
    caller in the process queues on a single asyncio lock (first come, first
    served). A batch is one backend call and takes the lock once.
    """

    def __init__(self, backend: EmbeddingBackend, dims: int) -> None:
        self.backend = backend
        self.dims = dims
        self.calls = 0
        self._lock = asyncio.Lock()

    async def embed_batch(self, texts: Sequence[str]) -> list[list[float]]:
        if not texts:
            return []
        async with self._lock:
            self.calls += 1
            try:
                vectors = await self.backend.encode(list(texts))
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.warning("Embedding backend failed for batch of %d: %s", len(texts), exc)
                raise EmbeddingFailureError(str(exc)) from exc

        if len(vectors) != len(texts):
            raise EmbeddingFailureError(f"backend returned {len(vectors)} vectors for {len(texts)} texts")
        for vector in vectors:
            if len(vector) != self.dims:
                raise EmbeddingFailureError(f"expected vectors of width {self.dims}, got {len(vector)}")
        return vectors

    async def embed(self, text: str) -> list[float]:
        return (await self.embed_batch([text]))[0]
