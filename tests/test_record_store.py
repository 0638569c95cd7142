import time

import pytest

from app.db.record_store import ANSWERS, INTERVIEWS, AnyOf, InMemoryRecordStore, Range
from app.utils.exceptions import ConcurrencyConflictError, DatabaseError, NotFoundError, UpstreamTimeoutError


async def _seed(store):
    rows = []
    for n, (user_id, created_at) in enumerate([
        ("u1", "2026-03-01T00:00:00.000000+00:00"),
        ("u1", "2026-03-05T00:00:00.000000+00:00"),
        ("u2", "2026-03-03T00:00:00.000000+00:00"),
        ("u1", "2026-03-09T00:00:00.000000+00:00"),
    ]):
        rows.append(await store.insert(INTERVIEWS, {
            "user_id": user_id,
            "topic": "Python",
            "totalQuestions": n,
            "created_at": created_at
        }))
    return rows


@pytest.mark.asyncio
async def test_insert_assigns_id_and_reads_are_copies(store):
    row = await store.insert(ANSWERS, {"question_id": "q1", "score": 10})
    assert row["id"]

    fetched = await store.find_by_id(ANSWERS, row["id"])
    fetched["score"] = 99

    assert (await store.find_by_id(ANSWERS, row["id"]))["score"] == 10
    assert await store.find_by_id(ANSWERS, "missing") is None
    assert await store.find_by_id(ANSWERS, "") is None


@pytest.mark.asyncio
async def test_find_with_filters_order_and_limit(store):
    await _seed(store)

    newest = await store.find(INTERVIEWS, {"user_id": "u1"}, order_by="created_at", desc=True, limit=2)
    assert [r["totalQuestions"] for r in newest] == [3, 1]

    recent = await store.find(
        INTERVIEWS,
        {"created_at": Range(gte="2026-03-03T00:00:00.000000+00:00")},
        order_by="created_at"
    )
    assert [r["totalQuestions"] for r in recent] == [2, 1, 3]

    between = await store.find(INTERVIEWS, {"totalQuestions": Range(gt=0, lt=3)}, order_by="totalQuestions")
    assert [r["totalQuestions"] for r in between] == [1, 2]


@pytest.mark.asyncio
async def test_membership_filter(store):
    rows = await _seed(store)

    picked = await store.find(INTERVIEWS, {"id": AnyOf([rows[0]["id"], rows[2]["id"]])})
    assert {r["id"] for r in picked} == {rows[0]["id"], rows[2]["id"]}

    assert await store.find(INTERVIEWS, {"id": AnyOf([])}) == []
    assert await store.count(INTERVIEWS, {"id": AnyOf([])}) == 0


@pytest.mark.asyncio
async def test_count_and_find_one(store):
    await _seed(store)

    assert await store.count(INTERVIEWS) == 4
    assert await store.count(INTERVIEWS, {"user_id": "u1"}) == 3
    assert (await store.find_one(INTERVIEWS, {"user_id": "u2"}))["totalQuestions"] == 2
    assert await store.find_one(INTERVIEWS, {"user_id": "u3"}) is None


@pytest.mark.asyncio
async def test_update_merges_fields(store):
    row = await store.insert(INTERVIEWS, {"user_id": "u1", "status": "active", "totalQuestions": 1})

    updated = await store.update(INTERVIEWS, row["id"], {"status": "completed"})

    assert updated == {**row, "status": "completed"}
    with pytest.raises(NotFoundError):
        await store.update(INTERVIEWS, "missing", {"status": "completed"})


@pytest.mark.asyncio
async def test_unknown_collection(store):
    with pytest.raises(DatabaseError):
        await store.find("sessions")


@pytest.mark.asyncio
async def test_slow_backend_times_out():
    class SlowStore(InMemoryRecordStore):
        def _count(self, collection, filters):
            time.sleep(0.3)
            return super()._count(collection, filters)

    store = SlowStore(timeout_seconds=0.05)
    with pytest.raises(UpstreamTimeoutError):
        await store.count(INTERVIEWS)


@pytest.mark.asyncio
async def test_slow_write_settles_instead_of_timing_out():
    class SlowWriteStore(InMemoryRecordStore):
        def _update(self, collection, record_id, patch):
            time.sleep(0.3)
            return super()._update(collection, record_id, patch)

    store = SlowWriteStore(timeout_seconds=0.05)
    row = await store.insert(INTERVIEWS, {"user_id": "u1", "totalQuestions": 1})

    updated = await store.update(INTERVIEWS, row["id"], {"totalQuestions": 2})

    assert updated["totalQuestions"] == 2
    assert (await store.find_by_id(INTERVIEWS, row["id"]))["totalQuestions"] == 2


@pytest.mark.asyncio
async def test_delete_removes_record(store):
    row = await store.insert(INTERVIEWS, {"user_id": "u1"})

    assert await store.delete(INTERVIEWS, row["id"]) is True
    assert await store.find_by_id(INTERVIEWS, row["id"]) is None
    assert await store.delete(INTERVIEWS, row["id"]) is False


@pytest.mark.asyncio
async def test_backend_failures_become_database_errors():
    class BrokenStore(InMemoryRecordStore):
        def _find(self, collection, filters, order_by, desc, limit):
            raise RuntimeError("connection reset")

    with pytest.raises(DatabaseError) as exc_info:
        await BrokenStore().find(INTERVIEWS)
    assert "connection reset" in exc_info.value.message


@pytest.mark.asyncio
async def test_unique_keys_are_enforced(store):
    await store.insert(ANSWERS, {"question_id": "q1", "score": 10})

    with pytest.raises(ConcurrencyConflictError):
        await store.insert(ANSWERS, {"question_id": "q1", "score": 90})
    assert await store.count(ANSWERS) == 1
