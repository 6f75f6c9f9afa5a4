from unittest.mock import patch

import pytest

from lexmap.core.errors import CatalogUnavailableError, EmbeddingFailureError, InputValidationError
from lexmap.core.models import StandardFieldCreate, SyncStatus

from .conftest import fake_vector, root


@pytest.mark.asyncio
async def test_mirror_sync_upserts_present_row(mirror, storage, vector_store):
    price = storage.insert_root(root("价格", "PRC", "Price", "钱 费用"))
    assert await mirror.mirror_sync("root", price.id) == SyncStatus.COMMITTED
    hit = vector_store.retrieve(mirror.root_collection, price.id)
    assert hit.payload.name == "价格"
    assert hit.payload.code == "PRC"


@pytest.mark.asyncio
async def test_mirror_sync_embeds_derived_text(mirror, storage, backend):
    price = storage.insert_root(root("价格", "PRC", "Price", "钱 费用"))
    await mirror.mirror_sync("root", price.id)
    assert backend.batches[-1] == ["价格 Price 钱 费用"]


@pytest.mark.asyncio
async def test_mirror_sync_deletes_missing_row(mirror, storage, vector_store):
    price = storage.insert_root(root("价格", "PRC"))
    await mirror.upsert_root(price)
    storage.delete_root(price.id)
    assert await mirror.mirror_sync("root", price.id) == SyncStatus.COMMITTED
    assert vector_store.retrieve(mirror.root_collection, price.id) is None


@pytest.mark.asyncio
async def test_mirror_sync_partial_when_embedding_fails(mirror, storage, backend, vector_store):
    price = storage.insert_root(root("价格", "PRC"))
    backend.fail = True
    assert await mirror.mirror_sync("root", price.id) == SyncStatus.PARTIAL
    assert vector_store.retrieve(mirror.root_collection, price.id) is None


@pytest.mark.asyncio
async def test_mirror_sync_failed_when_catalog_unreadable(mirror, storage):
    with patch.object(storage, "get_field", side_effect=CatalogUnavailableError("catalog unavailable")):
        assert await mirror.mirror_sync("field", 1) == SyncStatus.FAILED


@pytest.mark.asyncio
async def test_mirror_sync_rejects_unknown_kind(mirror):
    with pytest.raises(InputValidationError):
        await mirror.mirror_sync("table", 1)


@pytest.mark.asyncio
async def test_bulk_resync_embeds_in_batches(mirror, storage, backend, vector_store):
    storage.insert_roots([root(f"词{index}", f"W{index}") for index in range(5)])
    assert await mirror.bulk_resync(mirror.root_collection) == 5
    # batch_size=2 -> 2 + 2 + 1
    assert [len(batch) for batch in backend.batches] == [2, 2, 1]
    assert vector_store.count(mirror.root_collection) == 5


@pytest.mark.asyncio
async def test_bulk_resync_drops_stale_points(mirror, storage, vector_store):
    roots = storage.insert_roots([root("价格", "PRC"), root("日期", "DT")])
    await mirror.bulk_resync(mirror.root_collection)
    storage.delete_root(roots[0].id)

    assert await mirror.bulk_resync(mirror.root_collection) == 1
    assert vector_store.retrieve(mirror.root_collection, roots[0].id) is None
    assert vector_store.retrieve(mirror.root_collection, roots[1].id) is not None


@pytest.mark.asyncio
async def test_bulk_resync_is_idempotent(mirror, storage, vector_store):
    storage.insert_roots([root("价格", "PRC"), root("日期", "DT")])
    await mirror.bulk_resync(mirror.root_collection)
    first = vector_store.search(mirror.root_collection, fake_vector("价格"), limit=5)
    await mirror.bulk_resync(mirror.root_collection)
    second = vector_store.search(mirror.root_collection, fake_vector("价格"), limit=5)
    assert [(hit.id, hit.payload) for hit in first] == [(hit.id, hit.payload) for hit in second]


@pytest.mark.asyncio
async def test_bulk_resync_failure_keeps_previous_index(mirror, storage, backend, vector_store):
    roots = storage.insert_roots([root("价格", "PRC"), root("日期", "DT")])
    await mirror.bulk_resync(mirror.root_collection)
    storage.delete_root(roots[0].id)
    backend.fail = True

    with pytest.raises(EmbeddingFailureError):
        await mirror.bulk_resync(mirror.root_collection)
    assert vector_store.count(mirror.root_collection) == 2


@pytest.mark.asyncio
async def test_bulk_resync_fields(mirror, storage, vector_store):
    field = storage.insert_field(
        StandardFieldCreate(field_cn_name="价格日期", field_en_name="PRC_DT", associated_terms="报价日")
    )
    assert await mirror.bulk_resync(mirror.field_collection) == 1
    hit = vector_store.retrieve(mirror.field_collection, field.id)
    assert hit.payload.code == "PRC_DT"


@pytest.mark.asyncio
async def test_bulk_resync_unknown_collection(mirror):
    with pytest.raises(InputValidationError):
        await mirror.bulk_resync("nope")
