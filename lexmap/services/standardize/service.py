from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Sequence, TypeVar

from lexmap.core.errors import NotFoundError
from lexmap.core.models import (
    BatchImportResult,
    MutationResult,
    Resolution,
    ResyncReport,
    SearchResponse,
    StandardField,
    StandardFieldCreate,
    StandardFieldDetail,
    SyncStatus,
    WordRoot,
    WordRootCreate,
)
from lexmap.services.mapping import LexicalResolver
from lexmap.services.mirror import MIRROR_ERRORS, IndexMirror
from lexmap.services.search import SearchEngine
from lexmap.services.storage import CatalogStorage
from lexmap.services.vocabulary import Vocabulary

logger = logging.getLogger(__name__)

T = TypeVar("T")


class StandardizationService:
    """
    Entry point for everything the HTTP layer does.

    Writes follow one order: catalog first, then the segmenter vocabulary, then
    the vector index. A failed index step never rolls back the catalog; the
    result is reported as partial and ``bulk_resync`` repairs it.
    """

    def __init__(
        self,
        storage: CatalogStorage,
        vocabulary: Vocabulary,
        resolver: LexicalResolver,
        engine: SearchEngine,
        mirror: IndexMirror,
    ) -> None:
        self.storage = storage
        self.vocabulary = vocabulary
        self.resolver = resolver
        self.engine = engine
        self.mirror = mirror

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def startup(self, resync: bool = True) -> None:
        names = await asyncio.to_thread(self.storage.root_names)
        loaded = await asyncio.to_thread(self.vocabulary.load_terms, names)
        logger.info("Vocabulary seeded with %d word root names", loaded)

        try:
            self.mirror.ensure_collections()
            if resync:
                for collection in (self.mirror.root_collection, self.mirror.field_collection):
                    await self.mirror.bulk_resync(collection)
        except MIRROR_ERRORS as exc:
            logger.warning("Index not synchronized at startup (search falls back to lexical only): %s", exc)

    # ------------------------------------------------------------------
    # Core operations
    # ------------------------------------------------------------------

    async def resolve(self, text: str) -> Resolution:
        return await asyncio.to_thread(self.resolver.resolve, text)

    async def search(self, text: str, collection: str) -> SearchResponse:
        return await self.engine.search(text, collection)

    async def mirror_sync(self, kind: str, record_id: int) -> SyncStatus:
        return await self.mirror.mirror_sync(kind, record_id)

    async def bulk_resync(self, collection: str) -> ResyncReport:
        synced = await self.mirror.bulk_resync(collection)
        return ResyncReport(collection=collection, synced=synced)

    # ------------------------------------------------------------------
    # Word roots
    # ------------------------------------------------------------------

    async def list_roots(self) -> list[WordRoot]:
        return await asyncio.to_thread(self.storage.list_roots)

    async def create_root(self, payload: WordRootCreate) -> MutationResult[WordRoot]:
        root = await asyncio.to_thread(self.storage.insert_root, payload)
        await asyncio.to_thread(self.vocabulary.add_term, root.cn_name)
        error = await self._mirror_step(self.mirror.root_collection, lambda: self.mirror.upsert_root(root))
        return self._result(root, error)

    async def update_root(self, root_id: int, payload: WordRootCreate) -> MutationResult[WordRoot]:
        changed = await asyncio.to_thread(self.storage.update_root, root_id, payload)
        if changed is None:
            raise NotFoundError(f"Word root {root_id} not found")
        before, after = changed
        if before.cn_name != after.cn_name:
            await asyncio.to_thread(self.vocabulary.add_term, after.cn_name)
            await self._retract_name(before.cn_name)
        error = await self._mirror_step(self.mirror.root_collection, lambda: self.mirror.upsert_root(after))
        return self._result(after, error)

    async def delete_root(self, root_id: int) -> MutationResult[WordRoot]:
        root = await asyncio.to_thread(self.storage.delete_root, root_id)
        if root is None:
            raise NotFoundError(f"Word root {root_id} not found")
        await self._retract_name(root.cn_name)
        error = await self._mirror_step(
            self.mirror.root_collection, lambda: asyncio.to_thread(self.mirror.remove, "root", root_id)
        )
        return self._result(root, error)

    async def batch_create_roots(self, payloads: Sequence[WordRootCreate]) -> BatchImportResult:
        """Bulk import: one catalog transaction, one vocabulary update, batched embeddings."""
        roots = await asyncio.to_thread(self.storage.insert_roots, list(payloads))
        await asyncio.to_thread(self.vocabulary.load_terms, [root.cn_name for root in roots])
        error = await self._mirror_step(
            self.mirror.root_collection, lambda: self.mirror.upsert_records(self.mirror.root_collection, roots)
        )
        logger.info("Imported %d word roots", len(roots))
        return BatchImportResult(
            created=len(roots),
            roots=roots,
            mirror_committed=error is None,
            status=SyncStatus.COMMITTED if error is None else SyncStatus.PARTIAL,
            error=error,
        )

    async def clear_roots(self) -> MutationResult[int]:
        names = await asyncio.to_thread(self.storage.root_names)
        removed = await asyncio.to_thread(self.storage.clear_roots)
        await asyncio.to_thread(self._remove_terms, names)
        collection = self.mirror.root_collection
        error = await self._mirror_step(collection, lambda: asyncio.to_thread(self.mirror.delete_all, collection))
        return self._result(removed, error)

    # ------------------------------------------------------------------
    # Standard fields
    # ------------------------------------------------------------------

    async def list_fields(self) -> list[StandardField]:
        return await asyncio.to_thread(self.storage.list_fields)

    async def field_details(self, field_id: int) -> StandardFieldDetail:
        field = await asyncio.to_thread(self.storage.get_field, field_id)
        if field is None:
            raise NotFoundError(f"Standard field {field_id} not found")
        roots = await asyncio.to_thread(self.storage.roots_by_ids, field.composition_ids)
        return StandardFieldDetail(field=field, roots=roots)

    async def create_field(self, payload: StandardFieldCreate) -> MutationResult[StandardField]:
        field = await asyncio.to_thread(self.storage.insert_field, payload)
        error = await self._mirror_step(self.mirror.field_collection, lambda: self.mirror.upsert_field(field))
        return self._result(field, error)

    async def update_field(self, field_id: int, payload: StandardFieldCreate) -> MutationResult[StandardField]:
        field = await asyncio.to_thread(self.storage.update_field, field_id, payload)
        if field is None:
            raise NotFoundError(f"Standard field {field_id} not found")
        error = await self._mirror_step(self.mirror.field_collection, lambda: self.mirror.upsert_field(field))
        return self._result(field, error)

    async def delete_field(self, field_id: int) -> MutationResult[StandardField]:
        field = await asyncio.to_thread(self.storage.delete_field, field_id)
        if field is None:
            raise NotFoundError(f"Standard field {field_id} not found")
        error = await self._mirror_step(
            self.mirror.field_collection, lambda: asyncio.to_thread(self.mirror.remove, "field", field_id)
        )
        return self._result(field, error)

    async def clear_fields(self) -> MutationResult[int]:
        removed = await asyncio.to_thread(self.storage.clear_fields)
        collection = self.mirror.field_collection
        error = await self._mirror_step(collection, lambda: asyncio.to_thread(self.mirror.delete_all, collection))
        return self._result(removed, error)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _retract_name(self, name: str) -> None:
        # Another root may still carry the same canonical name.
        remaining = await asyncio.to_thread(self.storage.count_roots_named, name)
        if remaining == 0:
            await asyncio.to_thread(self.vocabulary.remove_term, name)

    def _remove_terms(self, names: Sequence[str]) -> None:
        for name in names:
            self.vocabulary.remove_term(name)

    async def _mirror_step(self, collection: str, step: Callable[[], Awaitable[object]]) -> Optional[str]:
        try:
            await step()
        except MIRROR_ERRORS as exc:
            logger.warning(
                "Catalog committed but index '%s' was not updated: %s. Run a resync of '%s' to repair.",
                collection,
                exc,
                collection,
            )
            return str(exc)
        return None

    @staticmethod
    def _result(record: T, error: Optional[str]) -> MutationResult[T]:
        return MutationResult(
            record=record,
            catalog_committed=True,
            mirror_committed=error is None,
            status=SyncStatus.COMMITTED if error is None else SyncStatus.PARTIAL,
            error=error,
        )
