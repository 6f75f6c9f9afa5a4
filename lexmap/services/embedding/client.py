from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional, Sequence

import httpx

from lexmap.core.config import EmbeddingConfig, settings


logger = logging.getLogger(__name__)

# Retry settings for 503 errors (model warming up after hibernation)
_503_MAX_RETRIES = 5
_503_INITIAL_DELAY = 0.5
_503_BACKOFF_MULTIPLIER = 1.5
_503_MAX_DELAY = 3.0


def _retry_delay_503(exc: Exception, attempt: int) -> float | None:
    """
    Check if we should retry a 503 error and return the delay.
    Returns None if we should not retry, otherwise returns the delay in seconds.
    """
    if attempt >= _503_MAX_RETRIES:
        return None
    if isinstance(exc, httpx.HTTPStatusError) and exc.response.status_code == 503:
        delay = min(_503_INITIAL_DELAY * (_503_BACKOFF_MULTIPLIER ** attempt), _503_MAX_DELAY)
        logger.info("Got 503 (model warming up), retrying in %.1fs (attempt %d/%d)", delay, attempt + 1, _503_MAX_RETRIES)
        return delay
    return None


def _parse_vectors(data: Any) -> list[list[float]]:
    if not isinstance(data, dict):
        raise ValueError("Unexpected embedding response schema")

    if "embedding" in data and isinstance(data["embedding"], list):
        return [[float(value) for value in data["embedding"]]]

    if "embeddings" in data and isinstance(data["embeddings"], list):
        return [list(map(float, vector)) for vector in data["embeddings"]]

    if "data" in data and isinstance(data["data"], list):
        # OpenAI responses may come back out of order; "index" restores it
        items = sorted(data["data"], key=lambda item: item.get("index", 0))
        vectors: list[list[float]] = []
        for item in items:
            embedding = item.get("embedding")
            if embedding is None:
                continue
            vectors.append([float(value) for value in embedding])
        if vectors:
            return vectors

    raise ValueError("Unexpected embedding response schema")


class EmbeddingClient:
    """Client for an OpenAI-compatible /v1/embeddings endpoint."""

    def __init__(
        self,
        config: Optional[EmbeddingConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.config = config or settings.embedding
        self.timeout = self.config.timeout
        self._transport = transport

    @property
    def endpoint(self) -> str:
        base = self.config.url.rstrip("/")
        if base.endswith("/v1/embeddings"):
            return base
        return f"{base}/v1/embeddings"

    async def encode(self, texts: Sequence[str]) -> list[list[float]]:
        if not texts:
            return []

        payload: dict[str, Any] = {"input": list(texts)}
        if self.config.model:
            payload["model"] = self.config.model

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            for attempt in range(_503_MAX_RETRIES + 1):
                try:
                    response = await client.post(self.endpoint, json=payload)
                    response.raise_for_status()
                    return _parse_vectors(response.json())
                except httpx.HTTPStatusError as exc:
                    delay = _retry_delay_503(exc, attempt)
                    if delay is not None:
                        await asyncio.sleep(delay)
                        continue
                    raise RuntimeError(f"Failed to obtain embeddings from {self.endpoint}: {exc}") from exc
                except (httpx.HTTPError, ValueError) as exc:
                    raise RuntimeError(f"Failed to obtain embeddings from {self.endpoint}: {exc}") from exc

        raise RuntimeError(f"Failed to obtain embeddings from {self.endpoint}: still warming up")
