from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Sequence, Union

from pydantic import ValidationError
from qdrant_client import QdrantClient, models

from .config import QdrantConfig, settings
from .errors import IndexUnavailableError, InvalidPayloadError
from .models import IndexPayload, VectorHit


logger = logging.getLogger(__name__)

_METRICS = {
    "COSINE": models.Distance.COSINE,
    "DOT": models.Distance.DOT,
    "EUCLID": models.Distance.EUCLID,
}


def build_client(config: QdrantConfig) -> QdrantClient:
    if config.url:
        return QdrantClient(url=config.url)
    if config.data_path == ":memory:":
        return QdrantClient(location=":memory:")
    # QdrantClient(path=...) treats it as a directory for local persistence.
    return QdrantClient(path=config.data_path)


class VectorStore:
    """
    Similarity index over Qdrant, one collection per entity kind.

    Point ids are the catalog row ids and every payload follows ``IndexPayload``.
    Any failure talking to Qdrant surfaces as ``IndexUnavailableError``.
    """

    def __init__(self, client: Optional[QdrantClient] = None, config: Optional[QdrantConfig] = None) -> None:
        self.config = config or settings.qdrant
        self.client = client or build_client(self.config)
        # collection -> (dims, metric) it was created with
        self._layouts: dict[str, tuple[int, str]] = {}

    def ensure_collection(self, collection: str, dims: Optional[int] = None, metric: Optional[str] = None) -> None:
        dims = dims or self.config.embedding_dim
        metric = (metric or self.config.metric_type).upper()
        if metric not in _METRICS:
            raise InvalidPayloadError(f"Unsupported metric: {metric}")
        try:
            if not self.client.collection_exists(collection):
                self.client.create_collection(
                    collection_name=collection,
                    vectors_config=models.VectorParams(size=dims, distance=_METRICS[metric]),
                )
                logger.info("Created Qdrant collection '%s' (dim=%s, metric=%s)", collection, dims, metric)
        except Exception as exc:
            logger.warning("Qdrant collection setup failed for '%s': %s", collection, exc)
            raise IndexUnavailableError(f"index unavailable: {exc}") from exc
        self._layouts[collection] = (dims, metric)

    def collection_exists(self, collection: str) -> bool:
        try:
            return self.client.collection_exists(collection)
        except Exception as exc:
            logger.warning("Qdrant collection lookup failed for '%s': %s", collection, exc)
            raise IndexUnavailableError(f"index unavailable: {exc}") from exc

    def upsert(
        self,
        collection: str,
        point_id: int,
        vector: Sequence[float],
        payload: Union[IndexPayload, Mapping[str, Any]],
    ) -> None:
        self.upsert_many(collection, [(point_id, vector, payload)])

    def upsert_many(
        self,
        collection: str,
        records: Sequence[tuple[int, Sequence[float], Union[IndexPayload, Mapping[str, Any]]]],
    ) -> None:
        if not records:
            return
        dims = self._dims(collection)
        points = []
        for point_id, vector, payload in records:
            if len(vector) != dims:
                raise InvalidPayloadError(
                    f"Vector for point {point_id} has width {len(vector)}, collection '{collection}' expects {dims}"
                )
            points.append(
                models.PointStruct(
                    id=int(point_id),
                    vector=[float(value) for value in vector],
                    payload=self._validate_payload(payload).model_dump(),
                )
            )

        try:
            self.client.upsert(collection_name=collection, points=points)
        except Exception as exc:
            logger.warning("Qdrant upsert failed for '%s': %s", collection, exc)
            raise IndexUnavailableError(f"index unavailable: {exc}") from exc

    def delete(self, collection: str, point_id: int) -> None:
        """Delete one point; deleting an id that is not indexed is a no-op."""
        try:
            self.client.delete(
                collection_name=collection,
                points_selector=models.PointIdsList(points=[int(point_id)]),
            )
        except Exception as exc:
            logger.warning("Qdrant delete failed for '%s' id=%s: %s", collection, point_id, exc)
            raise IndexUnavailableError(f"index unavailable: {exc}") from exc

    def delete_all(self, collection: str) -> None:
        """Drop the collection and recreate it empty with the same layout."""
        dims, metric = self._layouts.get(collection, (self.config.embedding_dim, self.config.metric_type))
        try:
            if self.client.collection_exists(collection):
                self.client.delete_collection(collection)
        except Exception as exc:
            logger.warning("Qdrant drop collection failed for '%s': %s", collection, exc)
            raise IndexUnavailableError(f"index unavailable: {exc}") from exc
        self.ensure_collection(collection, dims, metric)

    def search(self, collection: str, vector: Sequence[float], limit: int = 5) -> list[VectorHit]:
        try:
            response = self.client.query_points(
                collection_name=collection,
                query=[float(value) for value in vector],
                limit=limit,
                with_payload=True,
            )
        except Exception as exc:
            logger.warning("Qdrant search failed for '%s': %s", collection, exc)
            raise IndexUnavailableError(f"index unavailable: {exc}") from exc

        hits = [
            hit
            for hit in (self._to_hit(collection, point.id, point.score, point.payload) for point in response.points)
            if hit is not None
        ]
        hits.sort(key=lambda hit: hit.score, reverse=True)
        return hits

    def retrieve(self, collection: str, point_id: int) -> Optional[VectorHit]:
        try:
            points = self.client.retrieve(
                collection_name=collection,
                ids=[int(point_id)],
                with_payload=True,
                with_vectors=False,
            )
        except Exception as exc:
            logger.warning("Qdrant retrieve failed for '%s' id=%s: %s", collection, point_id, exc)
            raise IndexUnavailableError(f"index unavailable: {exc}") from exc
        if not points:
            return None
        return self._to_hit(collection, points[0].id, 1.0, points[0].payload)

    def count(self, collection: str) -> int:
        try:
            return self.client.count(collection_name=collection, exact=True).count
        except Exception as exc:
            logger.warning("Qdrant count failed for '%s': %s", collection, exc)
            raise IndexUnavailableError(f"index unavailable: {exc}") from exc

    def close(self) -> None:
        try:
            self.client.close()
        except Exception as exc:
            logger.debug("Qdrant client close failed: %s", exc)

    def _dims(self, collection: str) -> int:
        if collection in self._layouts:
            return self._layouts[collection][0]
        return self.config.embedding_dim

    @staticmethod
    def _validate_payload(payload: Union[IndexPayload, Mapping[str, Any]]) -> IndexPayload:
        if isinstance(payload, IndexPayload):
            return payload
        try:
            return IndexPayload.model_validate(dict(payload))
        except (ValidationError, TypeError, ValueError) as exc:
            raise InvalidPayloadError(f"Invalid index payload: {exc}") from exc

    @staticmethod
    def _to_hit(collection: str, point_id: Any, score: float, payload: Optional[dict[str, Any]]) -> Optional[VectorHit]:
        try:
            return VectorHit(id=int(point_id), score=float(score), payload=IndexPayload.model_validate(payload or {}))
        except (ValidationError, TypeError, ValueError) as exc:
            # points written by another tool share the collection name; a resync replaces them
            logger.warning("Skipping point %s in '%s' with foreign payload: %s", point_id, collection, exc)
            return None
