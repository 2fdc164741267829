"""
Job document store.

Jobs are kept as JSON documents in a named collection. Two backends:
- PostgresJobStore: one table per collection with a JSONB document column
- MemoryJobStore: process-local, used in dev mode and tests

``batch_update`` with ``expected`` is the claim primitive: every document
must match the expected field values, otherwise nothing is changed and
ClaimConflictError is raised.
"""

import asyncio
import copy
import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Any

import psycopg2
from psycopg2 import sql
from psycopg2.extras import RealDictCursor, Json

from core.job_record import JobRecord

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """Store operation failed"""


class DocumentNotFoundError(StoreError):
    """Referenced document does not exist"""


class ClaimConflictError(StoreError):
    """A conditional batch update found a document not in the expected state"""

    def __init__(self, message: str, conflicting_ids: Optional[List[str]] = None):
        super().__init__(message)
        self.conflicting_ids = conflicting_ids or []


def serialize_changes(changes: Dict[str, Any]) -> Dict[str, Any]:
    """Make a field-change map JSON-safe (datetimes to ISO strings, enums to values)"""
    result = {}
    for key, value in changes.items():
        if isinstance(value, datetime):
            value = value.isoformat()
        elif isinstance(value, Enum):
            value = value.value
        result[key] = value
    return result


def _matches(doc: Dict, expected: Optional[Dict[str, Any]]) -> bool:
    if not expected:
        return True
    return all(doc.get(key) == value for key, value in expected.items())


class JobStore(ABC):
    """Document store interface used by the pipeline and the poster"""

    def __init__(self, collection: str):
        self.collection = collection

    @abstractmethod
    async def get(self, doc_id: str) -> Optional[JobRecord]:
        pass

    @abstractmethod
    async def query(self, field: str, value: Any, limit: Optional[int] = None) -> List[JobRecord]:
        """Records whose ``field`` equals ``value``, in insertion order"""
        pass

    @abstractmethod
    async def add(self, record: JobRecord) -> str:
        """Insert a record and return its new id"""
        pass

    @abstractmethod
    async def update(self, doc_id: str, changes: Dict[str, Any]):
        pass

    @abstractmethod
    async def batch_update(self, updates: Dict[str, Dict[str, Any]], expected: Optional[Dict[str, Any]] = None):
        """
        Apply several updates atomically.

        Args:
            updates: doc id -> field changes
            expected: field values every document must have beforehand

        Raises:
            ClaimConflictError: a document is missing or does not match ``expected``
        """
        pass


class MemoryJobStore(JobStore):
    """In-process store with the same semantics as the Postgres store"""

    def __init__(self, collection: str = "job_postings"):
        super().__init__(collection)
        self._docs: Dict[str, Dict] = {}
        self._lock = asyncio.Lock()

    async def get(self, doc_id: str) -> Optional[JobRecord]:
        async with self._lock:
            doc = self._docs.get(doc_id)
            return JobRecord.from_document(doc_id, copy.deepcopy(doc)) if doc is not None else None

    async def query(self, field: str, value: Any, limit: Optional[int] = None) -> List[JobRecord]:
        value = serialize_changes({field: value})[field]
        async with self._lock:
            matches = [
                JobRecord.from_document(doc_id, copy.deepcopy(doc))
                for doc_id, doc in self._docs.items()
                if doc.get(field) == value
            ]
        return matches[:limit] if limit is not None else matches

    async def add(self, record: JobRecord) -> str:
        doc_id = uuid.uuid4().hex
        async with self._lock:
            self._docs[doc_id] = record.to_dict()
        logger.debug(f"[store] Added {doc_id} to {self.collection}")
        return doc_id

    async def update(self, doc_id: str, changes: Dict[str, Any]):
        async with self._lock:
            if doc_id not in self._docs:
                raise DocumentNotFoundError(f"No document {doc_id} in {self.collection}")
            self._docs[doc_id].update(serialize_changes(changes))

    async def batch_update(self, updates: Dict[str, Dict[str, Any]], expected: Optional[Dict[str, Any]] = None):
        expected = serialize_changes(expected) if expected else None
        async with self._lock:
            conflicts = [
                doc_id for doc_id in updates
                if doc_id not in self._docs or not _matches(self._docs[doc_id], expected)
            ]
            if conflicts:
                raise ClaimConflictError(
                    f"{len(conflicts)} of {len(updates)} documents not in expected state",
                    conflicts
                )
            for doc_id, changes in updates.items():
                self._docs[doc_id].update(serialize_changes(changes))

    def __len__(self):
        return len(self._docs)


class PostgresJobStore(JobStore):
    """
    Store backed by a PostgreSQL table per collection.

    Table layout: id TEXT PRIMARY KEY, seq BIGSERIAL (insertion order),
    doc JSONB. psycopg2 is blocking, so every call runs in a worker thread.
    """

    def __init__(self, db_url: str, collection: str = "job_postings", connect_timeout: int = 10):
        super().__init__(collection)
        self.db_url = db_url
        self.connect_timeout = connect_timeout
        self._schema_ready = False
        self._table = sql.Identifier(collection)

    def _get_db_conn(self):
        try:
            return psycopg2.connect(self.db_url, connect_timeout=self.connect_timeout)
        except psycopg2.OperationalError as e:
            raise StoreError(f"Could not connect to database: {e}") from e

    def _ensure_schema(self, conn):
        if self._schema_ready:
            return
        with conn.cursor() as cur:
            cur.execute(sql.SQL(
                "CREATE TABLE IF NOT EXISTS {} ("
                "id TEXT PRIMARY KEY, "
                "seq BIGSERIAL, "
                "doc JSONB NOT NULL)"
            ).format(self._table))
            cur.execute(sql.SQL(
                "CREATE INDEX IF NOT EXISTS {} ON {} ((doc->>'status'))"
            ).format(sql.Identifier(f"{self.collection}_status_idx"), self._table))
        conn.commit()
        self._schema_ready = True
        logger.info(f"[store] Collection table ready: {self.collection}")

    def _run(self, operation, *args):
        """Open a connection, run ``operation(conn, *args)``, always close"""
        conn = self._get_db_conn()
        try:
            self._ensure_schema(conn)
            return operation(conn, *args)
        except psycopg2.Error as e:
            conn.rollback()
            raise StoreError(f"Database error on {self.collection}: {e}") from e
        finally:
            conn.close()

    def _get(self, conn, doc_id: str) -> Optional[JobRecord]:
        with conn.cursor(cursor_factory=RealDictCursor) as cur:
            cur.execute(sql.SQL("SELECT id, doc FROM {} WHERE id = %s").format(self._table), (doc_id,))
            row = cur.fetchone()
        return JobRecord.from_document(row['id'], row['doc']) if row else None

    def _query(self, conn, field: str, value: Any, limit: Optional[int]) -> List[JobRecord]:
        query = sql.SQL("SELECT id, doc FROM {} WHERE doc->>%s = %s ORDER BY seq").format(self._table)
        params: list = [field, str(serialize_changes({field: value})[field])]
        if limit is not None:
            query = query + sql.SQL(" LIMIT %s")
            params.append(limit)
        with conn.cursor(cursor_factory=RealDictCursor) as cur:
            cur.execute(query, params)
            rows = cur.fetchall()
        return [JobRecord.from_document(row['id'], row['doc']) for row in rows]

    def _add(self, conn, doc: Dict) -> str:
        doc_id = uuid.uuid4().hex
        with conn.cursor() as cur:
            cur.execute(
                sql.SQL("INSERT INTO {} (id, doc) VALUES (%s, %s)").format(self._table),
                (doc_id, Json(doc))
            )
        conn.commit()
        return doc_id

    def _update(self, conn, doc_id: str, changes: Dict):
        with conn.cursor() as cur:
            cur.execute(
                sql.SQL("UPDATE {} SET doc = doc || %s WHERE id = %s").format(self._table),
                (Json(changes), doc_id)
            )
            if cur.rowcount == 0:
                conn.rollback()
                raise DocumentNotFoundError(f"No document {doc_id} in {self.collection}")
        conn.commit()

    def _batch_update(self, conn, updates: Dict[str, Dict], expected: Optional[Dict]):
        conflicts = []
        with conn.cursor() as cur:
            for doc_id, changes in updates.items():
                if expected:
                    cur.execute(
                        sql.SQL("UPDATE {} SET doc = doc || %s WHERE id = %s AND doc @> %s").format(self._table),
                        (Json(changes), doc_id, Json(expected))
                    )
                else:
                    cur.execute(
                        sql.SQL("UPDATE {} SET doc = doc || %s WHERE id = %s").format(self._table),
                        (Json(changes), doc_id)
                    )
                if cur.rowcount != 1:
                    conflicts.append(doc_id)

        if conflicts:
            conn.rollback()
            raise ClaimConflictError(
                f"{len(conflicts)} of {len(updates)} documents not in expected state",
                conflicts
            )
        conn.commit()

    async def get(self, doc_id: str) -> Optional[JobRecord]:
        return await asyncio.to_thread(self._run, self._get, doc_id)

    async def query(self, field: str, value: Any, limit: Optional[int] = None) -> List[JobRecord]:
        return await asyncio.to_thread(self._run, self._query, field, value, limit)

    async def add(self, record: JobRecord) -> str:
        doc_id = await asyncio.to_thread(self._run, self._add, record.to_dict())
        logger.debug(f"[store] Added {doc_id} to {self.collection}")
        return doc_id

    async def update(self, doc_id: str, changes: Dict[str, Any]):
        await asyncio.to_thread(self._run, self._update, doc_id, serialize_changes(changes))

    async def batch_update(self, updates: Dict[str, Dict[str, Any]], expected: Optional[Dict[str, Any]] = None):
        serialized = {doc_id: serialize_changes(changes) for doc_id, changes in updates.items()}
        await asyncio.to_thread(
            self._run,
            self._batch_update,
            serialized,
            serialize_changes(expected) if expected else None
        )
