from unittest.mock import MagicMock

import pytest
from qdrant_client import models

from lexmap.core.errors import IndexUnavailableError, InvalidPayloadError
from lexmap.core.models import IndexPayload
from lexmap.core.vector_store import VectorStore

from .conftest import DIMS, fake_vector

COLLECTION = "word_roots"


@pytest.fixture
def store(vector_store):
    vector_store.ensure_collection(COLLECTION, DIMS)
    return vector_store


def test_ensure_collection_is_idempotent(store):
    store.ensure_collection(COLLECTION, DIMS)
    assert store.collection_exists(COLLECTION)
    assert store.count(COLLECTION) == 0


def test_upsert_and_retrieve_payload(store):
    store.upsert(COLLECTION, 7, fake_vector("价格"), IndexPayload(name="价格", code="PRC"))
    hit = store.retrieve(COLLECTION, 7)
    assert hit.id == 7
    assert hit.payload == IndexPayload(name="价格", code="PRC")
    assert store.retrieve(COLLECTION, 8) is None


def test_upsert_replaces_existing_point(store):
    store.upsert(COLLECTION, 1, fake_vector("价格"), {"name": "价格", "code": "PRC"})
    store.upsert(COLLECTION, 1, fake_vector("单价"), {"name": "单价", "code": "UPRC"})
    assert store.count(COLLECTION) == 1
    assert store.retrieve(COLLECTION, 1).payload.code == "UPRC"


def test_wrong_vector_width_is_rejected(store):
    with pytest.raises(InvalidPayloadError):
        store.upsert(COLLECTION, 1, [0.1] * (DIMS + 2), IndexPayload(name="价格", code="PRC"))


@pytest.mark.parametrize(
    "payload",
    [
        {"name": "价格"},
        {"name": "价格", "code": "PRC", "remark": "extra"},
    ],
)
def test_payload_outside_schema_is_rejected(store, payload):
    with pytest.raises(InvalidPayloadError):
        store.upsert(COLLECTION, 1, fake_vector("价格"), payload)


def test_delete_is_idempotent(store):
    store.upsert(COLLECTION, 1, fake_vector("价格"), IndexPayload(name="价格", code="PRC"))
    store.delete(COLLECTION, 1)
    store.delete(COLLECTION, 1)
    assert store.count(COLLECTION) == 0


def test_delete_all_keeps_an_empty_collection(store):
    for point_id in range(1, 4):
        store.upsert(COLLECTION, point_id, fake_vector(str(point_id)), IndexPayload(name=str(point_id), code="X"))
    store.delete_all(COLLECTION)
    assert store.collection_exists(COLLECTION)
    assert store.count(COLLECTION) == 0


def test_search_orders_by_score(store):
    for point_id, text in enumerate(["价格", "日期", "猫咪"], start=1):
        store.upsert(COLLECTION, point_id, fake_vector(text), IndexPayload(name=text, code=f"C{point_id}"))
    hits = store.search(COLLECTION, fake_vector("日期"), limit=3)
    assert hits[0].id == 2
    assert [hit.score for hit in hits] == sorted((hit.score for hit in hits), reverse=True)


def test_client_failures_become_index_unavailable(qdrant_config):
    client = MagicMock()
    client.query_points.side_effect = RuntimeError("connection refused")
    client.delete.side_effect = RuntimeError("connection refused")
    client.count.side_effect = RuntimeError("connection refused")
    store = VectorStore(client, config=qdrant_config)

    with pytest.raises(IndexUnavailableError):
        store.search(COLLECTION, fake_vector("价格"))
    with pytest.raises(IndexUnavailableError):
        store.delete(COLLECTION, 1)
    with pytest.raises(IndexUnavailableError):
        store.count(COLLECTION)


def test_upsert_then_search_finds_point(store):
    vector = fake_vector("价格日期")
    store.upsert(COLLECTION, 42, vector, IndexPayload(name="价格日期", code="PRC_DT"))
    hits = store.search(COLLECTION, vector, limit=1)
    assert [hit.id for hit in hits] == [42]
    assert hits[0].score == pytest.approx(1.0, abs=1e-3)
    store.delete(COLLECTION, 42)
    assert store.search(COLLECTION, vector, limit=1) == []


def test_points_with_foreign_payload_are_skipped(store):
    store.upsert(COLLECTION, 1, fake_vector("价格"), IndexPayload(name="价格", code="PRC"))
    store.client.upsert(
        collection_name=COLLECTION,
        points=[models.PointStruct(id=2, vector=fake_vector("价格"), payload={"cn_name": "价格"})],
    )
    hits = store.search(COLLECTION, fake_vector("价格"), limit=5)
    assert [hit.id for hit in hits] == [1]
    assert store.retrieve(COLLECTION, 2) is None
