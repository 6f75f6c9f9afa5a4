from __future__ import annotations

from typing import Optional

from lexmap.services.embedding import EmbeddingClient, EmbeddingGateway
from lexmap.services.mapping import LexicalResolver
from lexmap.services.mirror import IndexMirror
from lexmap.services.search import SearchEngine
from lexmap.services.standardize import StandardizationService
from lexmap.services.storage import CatalogStorage
from lexmap.services.vocabulary import Vocabulary
from .config import settings
from .vector_store import VectorStore

# Process-wide instances, built on first use so that importing the app (tests,
# tooling) neither opens the catalog nor loads the segmenter dictionary.

_storage: Optional[CatalogStorage] = None
_vocabulary: Optional[Vocabulary] = None
_gateway: Optional[EmbeddingGateway] = None
_vector_store: Optional[VectorStore] = None
_service: Optional[StandardizationService] = None


def get_storage() -> CatalogStorage:
    global _storage
    if _storage is None:
        _storage = CatalogStorage(settings.db_path)
    return _storage


def get_vocabulary() -> Vocabulary:
    global _vocabulary
    if _vocabulary is None:
        _vocabulary = Vocabulary(settings.vocab_dictionary_path, default_weight=settings.vocab_term_weight)
    return _vocabulary


def get_embedding_gateway() -> EmbeddingGateway:
    """The one gateway of the process; every embedding call queues on its lock."""
    global _gateway
    if _gateway is None:
        _gateway = EmbeddingGateway(EmbeddingClient(settings.embedding), dims=settings.qdrant.embedding_dim)
    return _gateway


def get_vector_store() -> VectorStore:
    global _vector_store
    if _vector_store is None:
        _vector_store = VectorStore(config=settings.qdrant)
    return _vector_store


def get_standardization_service() -> StandardizationService:
    global _service
    if _service is None:
        storage = get_storage()
        vocabulary = get_vocabulary()
        gateway = get_embedding_gateway()
        vectors = get_vector_store()
        _service = StandardizationService(
            storage=storage,
            vocabulary=vocabulary,
            resolver=LexicalResolver(vocabulary, storage),
            engine=SearchEngine(
                storage,
                gateway,
                vectors,
                lexical_limit=settings.lexical_limit,
                semantic_k=settings.semantic_k,
            ),
            mirror=IndexMirror(storage, gateway, vectors, batch_size=settings.embed_batch_size),
        )
    return _service


def shutdown() -> None:
    if _vector_store is not None:
        _vector_store.close()
