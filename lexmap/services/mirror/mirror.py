from __future__ import annotations

import asyncio
import logging
from typing import Sequence, Union

from lexmap.core.errors import (
    CatalogUnavailableError,
    EmbeddingFailureError,
    IndexUnavailableError,
    InputValidationError,
    InvalidPayloadError,
)
from lexmap.core.models import EntityKind, IndexPayload, StandardField, SyncStatus, WordRoot
from lexmap.core.vector_store import VectorStore
from lexmap.services.embedding import EmbeddingGateway
from lexmap.services.storage import CatalogStorage

logger = logging.getLogger(__name__)

Record = Union[WordRoot, StandardField]

# Errors that mean "the catalog is fine but the index did not follow".
MIRROR_ERRORS = (EmbeddingFailureError, IndexUnavailableError, InvalidPayloadError)


def _payload_for(record: Record) -> IndexPayload:
    if isinstance(record, WordRoot):
        return IndexPayload.for_root(record)
    return IndexPayload.for_field(record)


class IndexMirror:
    """
    Keeps the Qdrant collections a derived copy of the catalog.

    Every point is rebuilt from its catalog row (embedding text and payload),
    so the index can always be thrown away and regenerated with ``bulk_resync``.
    """

    def __init__(
        self,
        storage: CatalogStorage,
        gateway: EmbeddingGateway,
        vector_store: VectorStore,
        batch_size: int = 32,
    ) -> None:
        self.storage = storage
        self.gateway = gateway
        self.vector_store = vector_store
        self.batch_size = max(1, batch_size)

    @property
    def root_collection(self) -> str:
        return self.vector_store.config.root_collection

    @property
    def field_collection(self) -> str:
        return self.vector_store.config.field_collection

    def collection_for(self, kind: str) -> str:
        if kind == "root":
            return self.root_collection
        if kind == "field":
            return self.field_collection
        raise InputValidationError(f"Unknown entity kind: {kind}")

    def kind_for(self, collection: str) -> EntityKind:
        if collection == self.root_collection:
            return "root"
        if collection == self.field_collection:
            return "field"
        raise InputValidationError(f"Unknown collection: {collection}")

    def ensure_collections(self) -> None:
        dims = self.gateway.dims
        for collection in (self.root_collection, self.field_collection):
            self.vector_store.ensure_collection(collection, dims)
        logger.info("Index collections ready: %s, %s", self.root_collection, self.field_collection)

    async def upsert_root(self, root: WordRoot) -> None:
        await self.upsert_records(self.root_collection, [root])

    async def upsert_field(self, field: StandardField) -> None:
        await self.upsert_records(self.field_collection, [field])

    async def upsert_records(self, collection: str, records: Sequence[Record]) -> None:
        """Embed in gateway batches and upsert each batch as soon as it is embedded."""
        for start in range(0, len(records), self.batch_size):
            batch = records[start:start + self.batch_size]
            vectors = await self.gateway.embed_batch([record.embedding_text() for record in batch])
            self.vector_store.upsert_many(
                collection,
                [(record.id, vector, _payload_for(record)) for record, vector in zip(batch, vectors)],
            )

    def remove(self, kind: str, record_id: int) -> None:
        self.vector_store.delete(self.collection_for(kind), record_id)

    def delete_all(self, collection: str) -> None:
        self.vector_store.delete_all(collection)

    async def mirror_sync(self, kind: str, record_id: int) -> SyncStatus:
        """
        Bring one point in line with its catalog row.

        Present rows are re-embedded and upserted, missing rows are deleted from
        the index. Returns FAILED when the catalog could not be read, PARTIAL when
        the index (or embedding) step failed.
        """
        collection = self.collection_for(kind)
        reader = self.storage.get_root if kind == "root" else self.storage.get_field
        try:
            record = await asyncio.to_thread(reader, record_id)
        except CatalogUnavailableError as exc:
            logger.error("Mirror sync of %s #%s could not read the catalog: %s", kind, record_id, exc)
            return SyncStatus.FAILED

        try:
            if record is None:
                self.vector_store.delete(collection, record_id)
            else:
                await self.upsert_records(collection, [record])
        except MIRROR_ERRORS as exc:
            logger.warning("Mirror sync of %s #%s left the index stale: %s", kind, record_id, exc)
            return SyncStatus.PARTIAL
        return SyncStatus.COMMITTED

    async def bulk_resync(self, collection: str) -> int:
        """
        Rebuild a whole collection from the catalog.

        All rows are embedded first; the collection is only cleared once every
        batch succeeded, so an embedding failure leaves the previous index intact.
        """
        kind = self.kind_for(collection)
        reader = self.storage.all_roots if kind == "root" else self.storage.all_fields
        records: list[Record] = list(await asyncio.to_thread(reader))

        vectors: list[list[float]] = []
        for start in range(0, len(records), self.batch_size):
            batch = records[start:start + self.batch_size]
            vectors.extend(await self.gateway.embed_batch([record.embedding_text() for record in batch]))

        self.vector_store.delete_all(collection)
        points = [(record.id, vector, _payload_for(record)) for record, vector in zip(records, vectors)]
        for start in range(0, len(points), self.batch_size):
            self.vector_store.upsert_many(collection, points[start:start + self.batch_size])

        logger.info("Resynced %d %s records into '%s'", len(records), kind, collection)
        return len(records)
