import asyncio
import time

import pytest

from app.db.record_store import ANALYTICS, InMemoryRecordStore
from app.services.analytics_dispatcher import AnalyticsDispatcher
from app.services.analytics_engine import AnalyticsEngine
from app.utils.keyed_lock import KeyedLock


class FlakyEngine:
    def __init__(self, failures):
        self.failures = failures
        self.recorded = []

    async def record_graded_answer(self, user_id, topic, difficulty, is_correct, answer_id=None):
        if self.failures > 0:
            self.failures -= 1
            raise RuntimeError("store unavailable")
        self.recorded.append((user_id, topic, difficulty, is_correct))


@pytest.mark.asyncio
async def test_transient_failure_is_retried():
    engine = FlakyEngine(failures=2)
    dispatcher = AnalyticsDispatcher(engine, max_attempts=3, retry_delay_seconds=0)

    task = dispatcher.submit("u1", "Java", "Easy", True)
    assert await task is True

    assert engine.recorded == [("u1", "Java", "Easy", True)]
    assert dispatcher.dead_letters == []
    assert dispatcher.pending_count == 0


@pytest.mark.asyncio
async def test_exhausted_job_goes_to_dead_letters_and_can_be_redriven():
    engine = FlakyEngine(failures=3)
    dispatcher = AnalyticsDispatcher(engine, max_attempts=3, retry_delay_seconds=0)

    dispatcher.submit("u1", "Python", "Hard", False)
    await dispatcher.drain()

    [job] = dispatcher.dead_letters
    assert job.attempts == 3
    assert job.last_error == "store unavailable"
    assert engine.recorded == []

    tasks = dispatcher.retry_dead_letters()
    await asyncio.gather(*tasks)

    assert engine.recorded == [("u1", "Python", "Hard", False)]
    assert dispatcher.dead_letters == []


@pytest.mark.asyncio
async def test_drain_waits_for_every_update(engine, store):
    dispatcher = AnalyticsDispatcher(engine, retry_delay_seconds=0)
    for n in range(20):
        dispatcher.submit("u1", "React", "Medium", n % 2 == 0)

    await dispatcher.drain()

    rollup = await engine.get_topic_rollup("u1", "React")
    assert rollup.total_questions == 20
    assert rollup.correct_answers == 10
    assert dispatcher.pending_count == 0


@pytest.mark.asyncio
async def test_keyed_lock_serializes_same_key_only():
    locks = KeyedLock()
    events = []

    async def worker(key, name):
        async with locks.hold(key):
            events.append(f"{name}-in")
            await asyncio.sleep(0.01)
            events.append(f"{name}-out")

    await asyncio.gather(worker("a", "first"), worker("a", "second"), worker("b", "other"))

    first = events.index("first-in")
    assert events[first + 1] != "second-in"
    assert events.index("first-out") < events.index("second-in")
    assert events.index("other-in") < events.index("first-out")
    assert len(locks) == 0


class SlowWriteStore(InMemoryRecordStore):
    """Rollup updates commit, but only after the store timeout has passed"""

    def _update(self, collection, record_id, patch):
        time.sleep(0.3)
        return super()._update(collection, record_id, patch)


class CommitThenFailStore(InMemoryRecordStore):
    """The first rollup update commits and then reports a failure"""

    failures = 1

    def _update(self, collection, record_id, patch):
        row = super()._update(collection, record_id, patch)
        if collection == ANALYTICS and self.failures:
            self.failures -= 1
            raise RuntimeError("connection reset after commit")
        return row


@pytest.mark.asyncio
async def test_slow_rollup_write_is_counted_once():
    store = SlowWriteStore(timeout_seconds=0.1)
    engine = AnalyticsEngine(store)
    dispatcher = AnalyticsDispatcher(engine, max_attempts=3, retry_delay_seconds=0)

    await engine.record_graded_answer("u1", "Java", "Easy", True)
    dispatcher.submit("u1", "Java", "Easy", False)
    await dispatcher.drain()

    rollup = await engine.get_topic_rollup("u1", "Java")
    assert rollup.total_questions == 2
    assert rollup.correct_answers == 1
    assert rollup.difficulty_stats.easy.total == 2
    assert dispatcher.dead_letters == []


@pytest.mark.asyncio
async def test_concurrent_slow_rollup_writes_lose_no_increment():
    store = SlowWriteStore(timeout_seconds=0.1)
    engine = AnalyticsEngine(store)
    dispatcher = AnalyticsDispatcher(engine, max_attempts=3, retry_delay_seconds=0)

    await engine.record_graded_answer("u1", "DBMS", "Hard", True)
    for n in range(3):
        dispatcher.submit("u1", "DBMS", "Hard", True, answer_id=f"a{n}")
    await dispatcher.drain()

    rollup = await engine.get_topic_rollup("u1", "DBMS")
    assert rollup.total_questions == 4
    assert rollup.correct_answers == 4
    assert dispatcher.dead_letters == []


@pytest.mark.asyncio
async def test_retry_after_committed_update_does_not_double_count():
    store = CommitThenFailStore()
    engine = AnalyticsEngine(store)
    dispatcher = AnalyticsDispatcher(engine, max_attempts=3, retry_delay_seconds=0)

    await engine.record_graded_answer("u1", "Python", "Medium", True, answer_id="a1")
    task = dispatcher.submit("u1", "Python", "Medium", True, answer_id="a2")
    assert await task is True

    rollup = await engine.get_topic_rollup("u1", "Python")
    assert store.failures == 0
    assert rollup.total_questions == 2
    assert rollup.difficulty_stats.medium.correct == 2
    assert rollup.recent_answer_ids == ["a1", "a2"]


@pytest.mark.asyncio
async def test_retry_without_answer_id_uses_job_id():
    store = CommitThenFailStore()
    engine = AnalyticsEngine(store)
    dispatcher = AnalyticsDispatcher(engine, max_attempts=3, retry_delay_seconds=0)

    await engine.record_graded_answer("u1", "React", "Easy", False)
    await dispatcher.submit("u1", "React", "Easy", True)

    rollup = await engine.get_topic_rollup("u1", "React")
    assert rollup.total_questions == 2
    assert rollup.correct_answers == 1
