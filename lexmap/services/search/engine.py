from __future__ import annotations

import asyncio
import logging
from typing import Optional, Union

from lexmap.core.config import settings
from lexmap.core.errors import EmbeddingFailureError, IndexUnavailableError, InputValidationError
from lexmap.core.models import SearchResponse, SearchResult, StandardField, WordRoot
from lexmap.core.vector_store import VectorStore
from lexmap.services.embedding import EmbeddingGateway
from lexmap.services.storage import CatalogStorage

logger = logging.getLogger(__name__)


def _lexical_result(record: Union[WordRoot, StandardField]) -> SearchResult:
    if isinstance(record, WordRoot):
        return SearchResult(id=record.id, name=record.cn_name, code=record.en_abbr, tier="lexical")
    return SearchResult(id=record.id, name=record.field_cn_name, code=record.field_en_name, tier="lexical")


class SearchEngine:
    """
    Two-tier lookup over one collection.

    Tier 1 is a substring match against the catalog; when it finds anything the
    embedding backend is never touched. Tier 2 embeds the query and asks the
    vector index for nearest neighbours. A failing Tier 2 degrades to an empty,
    flagged response instead of an error.
    """

    def __init__(
        self,
        storage: CatalogStorage,
        gateway: EmbeddingGateway,
        vectors: VectorStore,
        *,
        lexical_limit: Optional[int] = None,
        semantic_k: Optional[int] = None,
    ) -> None:
        self.storage = storage
        self.gateway = gateway
        self.vector_store = vectors
        self.lexical_limit = lexical_limit or settings.lexical_limit
        self.semantic_k = semantic_k or settings.semantic_k

    def _lexical_reader(self, collection: str):
        config = self.vector_store.config
        if collection == config.root_collection:
            return self.storage.search_roots_by_text
        if collection == config.field_collection:
            return self.storage.search_fields_by_text
        raise InputValidationError(f"Unknown collection: {collection}")

    async def search(self, query: str, collection: str) -> SearchResponse:
        if not query or not query.strip():
            raise InputValidationError("query must not be empty")
        query = query.strip()
        reader = self._lexical_reader(collection)

        records = await asyncio.to_thread(reader, query, self.lexical_limit)
        if records:
            return SearchResponse(
                query=query,
                collection=collection,
                tier="lexical",
                results=[_lexical_result(record) for record in records],
            )

        try:
            vector = await self.gateway.embed(query)
            hits = self.vector_store.search(collection, vector, limit=self.semantic_k)
        except (EmbeddingFailureError, IndexUnavailableError) as exc:
            logger.warning("Semantic search degraded for %r in '%s': %s", query, collection, exc)
            return SearchResponse(
                query=query,
                collection=collection,
                tier="semantic",
                degraded=True,
                error=str(exc),
            )

        results = [
            SearchResult(id=hit.id, name=hit.payload.name, code=hit.payload.code, score=hit.score, tier="semantic")
            for hit in sorted(hits, key=lambda item: item.score, reverse=True)
        ]
        return SearchResponse(query=query, collection=collection, tier="semantic", results=results)
