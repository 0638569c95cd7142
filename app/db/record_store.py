"""
Record store used by the interview and analytics services

The services only see the async RecordStore interface:
insert / find_by_id / find / update / delete / count over five collections.
Two backends are provided:
- SupabaseRecordStore: PostgREST tables through the supabase-py client
- InMemoryRecordStore: process-local tables for development and tests

Both backends run their blocking work in a worker thread under a bounded
timeout, so a stalled read surfaces as UpstreamTimeoutError instead of
hanging the request.
"""

import asyncio
import copy
import logging
import threading
import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from supabase import Client

from app.utils.exceptions import (
    AppException,
    ConcurrencyConflictError,
    DatabaseError,
    NotFoundError,
    UpstreamTimeoutError,
)

logger = logging.getLogger(__name__)

USERS = "users"
INTERVIEWS = "interviews"
QUESTIONS = "questions"
ANSWERS = "answers"
ANALYTICS = "analytics"

COLLECTIONS = (USERS, INTERVIEWS, QUESTIONS, ANSWERS, ANALYTICS)

RESOURCE_NAMES = {
    USERS: "User",
    INTERVIEWS: "Interview",
    QUESTIONS: "Question",
    ANSWERS: "Answer",
    ANALYTICS: "Analytics",
}

# Unique constraints; the Supabase tables declare the same ones
UNIQUE_KEYS = {
    USERS: ("email",),
    ANSWERS: ("question_id",),
    ANALYTICS: ("user_id", "topic"),
}

# Postgres unique_violation
_UNIQUE_VIOLATION = "23505"


@dataclass(frozen=True)
class Range:
    """Range predicate on a field, e.g. Range(gte=thirty_days_ago)"""
    gte: Any = None
    gt: Any = None
    lte: Any = None
    lt: Any = None

    def matches(self, value: Any) -> bool:
        if value is None:
            return False
        if self.gte is not None and not value >= self.gte:
            return False
        if self.gt is not None and not value > self.gt:
            return False
        if self.lte is not None and not value <= self.lte:
            return False
        if self.lt is not None and not value < self.lt:
            return False
        return True


@dataclass(frozen=True)
class AnyOf:
    """Membership predicate on a field"""
    values: Tuple[Any, ...]

    def __init__(self, values):
        object.__setattr__(self, "values", tuple(values))


Filters = Dict[str, Any]


def _discard_result(worker: "asyncio.Future") -> None:
    # Abandoned reads: retrieve the outcome so asyncio does not report it as unhandled
    if not worker.cancelled():
        worker.exception()


def _has_empty_membership(filters: Optional[Filters]) -> bool:
    return any(isinstance(cond, AnyOf) and not cond.values for cond in (filters or {}).values())


class RecordStore:
    """
    Async record store interface
    Subclasses implement the synchronous _insert/_find_by_id/_find/_update/_delete/_count
    """

    backend = "abstract"

    def __init__(self, timeout_seconds: float = 10.0):
        self.timeout_seconds = timeout_seconds

    async def _call(self, operation: str, fn, *args, write: bool = False):
        """
        Run fn in a worker thread under the store timeout
        A read that overruns raises UpstreamTimeoutError at once. A write that
        overruns is awaited until the worker finishes, because the thread keeps
        running and may still commit; callers holding a lock keep it until the
        outcome is known.
        """
        worker = asyncio.ensure_future(asyncio.to_thread(fn, *args))
        try:
            try:
                return await asyncio.wait_for(asyncio.shield(worker), timeout=self.timeout_seconds)
            except asyncio.TimeoutError:
                if not write:
                    worker.add_done_callback(_discard_result)
                    logger.error(f"[STORE] {operation} timed out after {self.timeout_seconds}s")
                    raise UpstreamTimeoutError(f"Record store {operation} timed out")
                logger.warning(
                    f"[STORE] {operation} exceeded {self.timeout_seconds}s; waiting for the write to settle"
                )
                return await worker
        except AppException:
            raise
        except Exception as e:
            logger.error(f"[STORE] {operation} failed: {str(e)}")
            raise DatabaseError(f"Error during {operation}: {str(e)}") from e

    async def insert(self, collection: str, record: Dict[str, Any]) -> Dict[str, Any]:
        record = dict(record)
        record.setdefault("id", str(uuid.uuid4()))
        return await self._call(f"insert into {collection}", self._insert, collection, record, write=True)

    async def find_by_id(self, collection: str, record_id: str) -> Optional[Dict[str, Any]]:
        if not record_id:
            return None
        return await self._call(f"lookup in {collection}", self._find_by_id, collection, record_id)

    async def find(
        self,
        collection: str,
        filters: Optional[Filters] = None,
        order_by: Optional[str] = None,
        desc: bool = False,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        if _has_empty_membership(filters):
            return []
        return await self._call(
            f"query on {collection}", self._find, collection, dict(filters or {}), order_by, desc, limit
        )

    async def find_one(self, collection: str, filters: Filters) -> Optional[Dict[str, Any]]:
        rows = await self.find(collection, filters, limit=1)
        return rows[0] if rows else None

    async def update(self, collection: str, record_id: str, patch: Dict[str, Any]) -> Dict[str, Any]:
        return await self._call(
            f"update on {collection}", self._update, collection, record_id, dict(patch), write=True
        )

    async def delete(self, collection: str, record_id: str) -> bool:
        """Remove a record; False when it did not exist"""
        return await self._call(f"delete from {collection}", self._delete, collection, record_id, write=True)

    async def count(self, collection: str, filters: Optional[Filters] = None) -> int:
        if _has_empty_membership(filters):
            return 0
        return await self._call(f"count on {collection}", self._count, collection, dict(filters or {}))

    async def ping(self) -> bool:
        await self.count(USERS)
        return True

    def _insert(self, collection, record):
        raise NotImplementedError

    def _find_by_id(self, collection, record_id):
        raise NotImplementedError

    def _find(self, collection, filters, order_by, desc, limit):
        raise NotImplementedError

    def _update(self, collection, record_id, patch):
        raise NotImplementedError

    def _delete(self, collection, record_id):
        raise NotImplementedError

    def _count(self, collection, filters):
        raise NotImplementedError


class InMemoryRecordStore(RecordStore):
    """
    Process-local store. Every read returns a deep copy and every write
    replaces the stored row under one lock, so readers never see a row
    halfway through an update.
    """

    backend = "memory"

    def __init__(self, timeout_seconds: float = 10.0):
        super().__init__(timeout_seconds)
        self._lock = threading.Lock()
        self._tables: Dict[str, Dict[str, Dict[str, Any]]] = {name: {} for name in COLLECTIONS}

    def _table(self, collection: str) -> Dict[str, Dict[str, Any]]:
        if collection not in self._tables:
            raise DatabaseError(f"Unknown collection: {collection}")
        return self._tables[collection]

    @staticmethod
    def _matches(record: Dict[str, Any], filters: Filters) -> bool:
        for field, cond in filters.items():
            value = record.get(field)
            if isinstance(cond, Range):
                if not cond.matches(value):
                    return False
            elif isinstance(cond, AnyOf):
                if value not in cond.values:
                    return False
            elif value != cond:
                return False
        return True

    def _insert(self, collection, record):
        with self._lock:
            table = self._table(collection)
            if record["id"] in table:
                raise DatabaseError(f"Duplicate id in {collection}: {record['id']}")
            unique = UNIQUE_KEYS.get(collection)
            if unique:
                key = tuple(record.get(f) for f in unique)
                if any(tuple(r.get(f) for f in unique) == key for r in table.values()):
                    raise ConcurrencyConflictError(
                        f"A {RESOURCE_NAMES[collection].lower()} with the same {', '.join(unique)} already exists",
                        details={"collection": collection}
                    )
            table[record["id"]] = copy.deepcopy(record)
            return copy.deepcopy(record)

    def _find_by_id(self, collection, record_id):
        with self._lock:
            row = self._table(collection).get(record_id)
            return copy.deepcopy(row) if row is not None else None

    def _find(self, collection, filters, order_by, desc, limit):
        with self._lock:
            rows = [copy.deepcopy(r) for r in self._table(collection).values() if self._matches(r, filters)]
        if order_by:
            # Rows missing the sort field go last in ascending order
            rows.sort(key=lambda r: (r.get(order_by) is None, r.get(order_by)), reverse=desc)
        if limit is not None:
            rows = rows[:limit]
        return rows

    def _update(self, collection, record_id, patch):
        with self._lock:
            table = self._table(collection)
            current = table.get(record_id)
            if current is None:
                raise NotFoundError(RESOURCE_NAMES.get(collection, collection), record_id)
            updated = {**current, **copy.deepcopy(patch), "id": record_id}
            table[record_id] = updated
            return copy.deepcopy(updated)

    def _delete(self, collection, record_id):
        with self._lock:
            return self._table(collection).pop(record_id, None) is not None

    def _count(self, collection, filters):
        with self._lock:
            return sum(1 for r in self._table(collection).values() if self._matches(r, filters))


class SupabaseRecordStore(RecordStore):
    """Record store over Supabase (PostgREST) tables named after the collections"""

    backend = "supabase"

    def __init__(self, client: Client, timeout_seconds: float = 10.0):
        super().__init__(timeout_seconds)
        self.client = client

    @staticmethod
    def _check_html_error(response: Any) -> None:
        """
        PostgREST sometimes returns an HTML error page instead of JSON
        """
        data = getattr(response, "data", None)
        if isinstance(data, str) and data.strip().startswith('<'):
            raise DatabaseError("Database returned HTML error instead of JSON")

    @staticmethod
    def _apply_filters(query, filters: Filters):
        for field, cond in filters.items():
            if isinstance(cond, Range):
                if cond.gte is not None:
                    query = query.gte(field, cond.gte)
                if cond.gt is not None:
                    query = query.gt(field, cond.gt)
                if cond.lte is not None:
                    query = query.lte(field, cond.lte)
                if cond.lt is not None:
                    query = query.lt(field, cond.lt)
            elif isinstance(cond, AnyOf):
                query = query.in_(field, list(cond.values))
            else:
                query = query.eq(field, cond)
        return query

    def _insert(self, collection, record):
        try:
            response = self.client.table(collection).insert(record).execute()
        except Exception as e:
            # postgrest APIError carries the Postgres error code
            if getattr(e, "code", None) == _UNIQUE_VIOLATION:
                raise ConcurrencyConflictError(
                    f"Conflicting insert into {collection}",
                    details={"collection": collection}
                ) from e
            raise
        self._check_html_error(response)
        if not response.data:
            raise DatabaseError(f"Insert into {collection} returned no data")
        return response.data[0]

    def _find_by_id(self, collection, record_id):
        response = self.client.table(collection).select("*").eq("id", record_id).limit(1).execute()
        self._check_html_error(response)
        return response.data[0] if response.data else None

    def _find(self, collection, filters, order_by, desc, limit):
        query = self._apply_filters(self.client.table(collection).select("*"), filters)
        if order_by:
            query = query.order(order_by, desc=desc)
        if limit is not None:
            query = query.limit(limit)
        response = query.execute()
        self._check_html_error(response)
        return response.data or []

    def _update(self, collection, record_id, patch):
        response = self.client.table(collection).update(patch).eq("id", record_id).execute()
        self._check_html_error(response)
        if not response.data:
            raise NotFoundError(RESOURCE_NAMES.get(collection, collection), record_id)
        return response.data[0]

    def _delete(self, collection, record_id):
        response = self.client.table(collection).delete().eq("id", record_id).execute()
        self._check_html_error(response)
        return bool(response.data)

    def _count(self, collection, filters):
        query = self._apply_filters(self.client.table(collection).select("id", count="exact"), filters)
        response = query.execute()
        self._check_html_error(response)
        return response.count or 0
