"""
Pytest configuration and fixtures
"""

import asyncio
import hashlib
import math

import pytest
from qdrant_client import QdrantClient

from lexmap.core.config import QdrantConfig
from lexmap.core.models import WordRootCreate
from lexmap.core.vector_store import VectorStore
from lexmap.services.embedding import EmbeddingGateway
from lexmap.services.mapping import LexicalResolver
from lexmap.services.mirror import IndexMirror
from lexmap.services.search import SearchEngine
from lexmap.services.standardize import StandardizationService
from lexmap.services.storage import CatalogStorage
from lexmap.services.vocabulary import Vocabulary

DIMS = 8

# Small segmenter dictionary: "word frequency tag" per line.
DICTIONARY = """价格 3000 n
日期 3000 n
猫咪 2000 n
钱 1000 n
费用 1000 n
金额 1000 n
"""


def fake_vector(text: str, dims: int = DIMS) -> list[float]:
    """Deterministic unit vector derived from the text hash."""
    digest = hashlib.sha256(text.encode("utf-8")).digest()
    values = [(byte - 127.5) / 127.5 for byte in digest[:dims]]
    norm = math.sqrt(sum(value * value for value in values)) or 1.0
    return [value / norm for value in values]


class FakeEmbeddingBackend:
    """Stands in for the embedding server; counts calls and can be told to fail."""

    def __init__(self, dims: int = DIMS) -> None:
        self.dims = dims
        self.calls = 0
        self.batches: list[list[str]] = []
        self.fail = False
        self.delay = 0.0
        self.width: int | None = None
        self.active = 0
        self.max_active = 0

    async def encode(self, texts):
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            self.calls += 1
            self.batches.append(list(texts))
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.fail:
                raise RuntimeError("embedding backend offline")
            return [fake_vector(text, self.width or self.dims) for text in texts]
        finally:
            self.active -= 1


def root(cn_name, en_abbr, en_full_name=None, associated_terms=None) -> WordRootCreate:
    return WordRootCreate(
        cn_name=cn_name,
        en_abbr=en_abbr,
        en_full_name=en_full_name,
        associated_terms=associated_terms,
    )


@pytest.fixture
def dictionary_path(tmp_path):
    path = tmp_path / "dict.txt"
    path.write_text(DICTIONARY, encoding="utf-8")
    return path


@pytest.fixture
def storage(tmp_path):
    return CatalogStorage(tmp_path / "catalog.sqlite")


@pytest.fixture
def vocabulary(dictionary_path):
    return Vocabulary(dictionary_path)


@pytest.fixture
def backend():
    return FakeEmbeddingBackend()


@pytest.fixture
def gateway(backend):
    return EmbeddingGateway(backend, dims=DIMS)


@pytest.fixture
def qdrant_config():
    return QdrantConfig(LOCAL_QDRANT_DATA_PATH=":memory:", LOCAL_QDRANT_EMBEDDING_DIM=DIMS)


@pytest.fixture
def vector_store(qdrant_config):
    store = VectorStore(QdrantClient(location=":memory:"), config=qdrant_config)
    yield store
    store.close()


@pytest.fixture
def mirror(storage, gateway, vector_store):
    index_mirror = IndexMirror(storage, gateway, vector_store, batch_size=2)
    index_mirror.ensure_collections()
    return index_mirror


@pytest.fixture
def resolver(vocabulary, storage):
    return LexicalResolver(vocabulary, storage)


@pytest.fixture
def engine(storage, gateway, vector_store, mirror):
    return SearchEngine(storage, gateway, vector_store, lexical_limit=10, semantic_k=5)


@pytest.fixture
def service(storage, vocabulary, resolver, engine, mirror):
    return StandardizationService(
        storage=storage,
        vocabulary=vocabulary,
        resolver=resolver,
        engine=engine,
        mirror=mirror,
    )


@pytest.fixture
def seeded(storage, vocabulary):
    """Catalog with 价格 -> PRC and 日期 -> DT, names loaded into the vocabulary."""
    price = storage.insert_root(root("价格", "PRC", "Price", "钱 费用"))
    date = storage.insert_root(root("日期", "DT", "Date"))
    vocabulary.load_terms([price.cn_name, date.cn_name])
    return {"price": price, "date": date}
