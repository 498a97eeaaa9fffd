"""Fake in-memory Supabase client for db-layer and pipeline tests.

Implements only the query-builder and storage calls the service makes:
``table().select/insert/delete().eq().order().limit().execute()`` and
``storage.from_(bucket).download(path)``.
"""

import copy
from typing import Any, Dict, List, Optional

USER_ID = "user-1"
SUBJECT_ID = "subject-1"


class FakeResponse:
    def __init__(self, data: List[Dict[str, Any]], count: Optional[int] = None):
        self.data = data
        self.count = count


class FakeQuery:
    """Chained query builder over one table's rows."""

    def __init__(self, db: "FakeSupabase", table: str):
        self._db = db
        self._table = table
        self._action = "select"
        self._columns = "*"
        self._count: Optional[str] = None
        self._payload: List[Dict[str, Any]] = []
        self._filters: List[tuple] = []
        self._orders: List[tuple] = []
        self._limit: Optional[int] = None

    def select(self, columns: str = "*", count: Optional[str] = None) -> "FakeQuery":
        self._action = "select"
        self._columns = columns
        self._count = count
        return self

    def insert(self, payload: Dict[str, Any] | List[Dict[str, Any]]) -> "FakeQuery":
        self._action = "insert"
        self._payload = payload if isinstance(payload, list) else [payload]
        return self

    def delete(self) -> "FakeQuery":
        self._action = "delete"
        return self

    def eq(self, column: str, value: Any) -> "FakeQuery":
        self._filters.append((column, value))
        return self

    def order(self, column: str, desc: bool = False) -> "FakeQuery":
        self._orders.append((column, desc))
        return self

    def limit(self, size: int) -> "FakeQuery":
        self._limit = size
        return self

    def _matches(self, row: Dict[str, Any]) -> bool:
        return all(row.get(column) == value for column, value in self._filters)

    def _project(self, row: Dict[str, Any]) -> Dict[str, Any]:
        if self._columns.strip() == "*":
            return copy.deepcopy(row)
        wanted = [column.strip() for column in self._columns.split(",")]
        return {column: copy.deepcopy(row.get(column)) for column in wanted}

    def execute(self) -> FakeResponse:
        self._db.executed.append((self._table, self._action))
        if self._db.fail_tables.get(self._table):
            raise RuntimeError(self._db.fail_tables[self._table])

        rows = self._db.tables.setdefault(self._table, [])

        if self._action == "insert":
            inserted = []
            for payload in self._payload:
                row = {"id": self._db.next_id(), **copy.deepcopy(payload)}
                rows.append(row)
                inserted.append(copy.deepcopy(row))
            return FakeResponse(inserted)

        matched = [row for row in rows if self._matches(row)]

        if self._action == "delete":
            self._db.tables[self._table] = [row for row in rows if not self._matches(row)]
            return FakeResponse(copy.deepcopy(matched))

        # Stable multi-key sort: apply the least significant key first
        for column, desc in reversed(self._orders):
            matched.sort(key=lambda row: row.get(column), reverse=desc)

        count = len(matched) if self._count == "exact" else None
        if self._limit is not None:
            matched = matched[: self._limit]
        return FakeResponse([self._project(row) for row in matched], count=count)


class FakeBucket:
    def __init__(self, objects: Dict[str, bytes]):
        self._objects = objects

    def download(self, path: str) -> bytes:
        if path not in self._objects:
            raise Exception(f"Object not found: {path}")
        value = self._objects[path]
        if isinstance(value, Exception):
            raise value
        return value


class FakeStorage:
    def __init__(self, db: "FakeSupabase"):
        self._db = db

    def from_(self, bucket: str) -> FakeBucket:
        return FakeBucket(self._db.buckets.setdefault(bucket, {}))


class FakeSupabase:
    """In-memory stand-in for ``supabase.Client``."""

    def __init__(self):
        self.tables: Dict[str, List[Dict[str, Any]]] = {}
        self.buckets: Dict[str, Dict[str, Any]] = {}
        self.fail_tables: Dict[str, str] = {}
        self.executed: List[tuple] = []
        self.storage = FakeStorage(self)
        self._next_id = 0

    def next_id(self) -> int:
        self._next_id += 1
        return self._next_id

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    # Seeding helpers

    def add_note(
        self,
        user_id: str,
        subject_id: str,
        file_name: str,
        text_url: Optional[str],
        uploaded_at: str = "2024-01-01T00:00:00+00:00",
    ) -> Dict[str, Any]:
        row = {
            "id": self.next_id(),
            "user_id": user_id,
            "subject_id": subject_id,
            "file_name": file_name,
            "text_url": text_url,
            "uploaded_at": uploaded_at,
        }
        self.tables.setdefault("notes", []).append(row)
        return row

    def put_object(self, bucket: str, path: str, content: bytes | Exception) -> None:
        self.buckets.setdefault(bucket, {})[path] = content
