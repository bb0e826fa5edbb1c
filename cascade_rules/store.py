"""Record store interface consumed by the engine, plus an in-memory store.

The engine only needs create / update / list over typed records. Every
call returns a StoreResult instead of raising, mirroring the versioned
store the application persists to.
"""

from __future__ import annotations

import copy
import time
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


@dataclass
class StoreResult:
    """Outcome of one store call: success flag plus data or an error string."""
    success: bool
    data: Any = None
    error: str | None = None

    @classmethod
    def ok(cls, data: Any = None) -> StoreResult:
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str) -> StoreResult:
        return cls(success=False, error=error)


class RecordStore(ABC):
    """Abstract CRUD/list access to typed records."""

    @abstractmethod
    def create(self, record_type: str, data: dict[str, Any]) -> StoreResult:
        """Create a record; ``data`` is the created record."""

    @abstractmethod
    def update(self, record_type: str, record_id: str, patch: dict[str, Any]) -> StoreResult:
        """Merge ``patch`` into the latest version of a record."""

    @abstractmethod
    def list(self, record_type: str, filter: dict[str, Any] | None = None) -> StoreResult:
        """Latest versions of all records of a type matching ``filter``."""

    def get(self, record_type: str, record_id: str) -> StoreResult:
        result = self.list(record_type, {"id": record_id})
        if not result.success:
            return result
        if not result.data:
            return StoreResult.fail(f"{record_type} not found: {record_id}")
        return StoreResult.ok(result.data[0])


class MemoryStore(RecordStore):
    """Versioned in-process store.

    Each write keeps the previous version; reads see the latest one.
    ``fail_writes`` lists record ids whose updates report failure.
    """

    def __init__(self, records: dict[str, list[dict[str, Any]]] | None = None):
        self._versions: dict[str, dict[str, list[dict[str, Any]]]] = {}
        self.fail_writes: set[str] = set()
        self.write_count = 0
        for record_type, items in (records or {}).items():
            for item in items:
                self.create(record_type, item)

    def create(self, record_type: str, data: dict[str, Any]) -> StoreResult:
        now = _now()
        record = copy.deepcopy(data)
        record.setdefault("id", uuid.uuid4().hex)
        record.update(version=1, createdAt=now, updatedAt=now)
        versions = self._versions.setdefault(record_type, {})
        if record["id"] in versions:
            return StoreResult.fail(f"{record_type} already exists: {record['id']}")
        versions[record["id"]] = [record]
        self.write_count += 1
        return StoreResult.ok(copy.deepcopy(record))

    def update(self, record_type: str, record_id: str, patch: dict[str, Any]) -> StoreResult:
        if record_id in self.fail_writes:
            return StoreResult.fail(f"Write rejected for {record_type} {record_id}")
        history = self._versions.get(record_type, {}).get(record_id)
        if not history:
            return StoreResult.fail(f"{record_type} not found: {record_id}")
        latest = history[-1]
        record = {**copy.deepcopy(latest), **copy.deepcopy(patch)}
        record.update(id=record_id, version=latest["version"] + 1, updatedAt=_now())
        history.append(record)
        self.write_count += 1
        return StoreResult.ok(copy.deepcopy(record))

    def list(self, record_type: str, filter: dict[str, Any] | None = None) -> StoreResult:
        items = []
        for history in self._versions.get(record_type, {}).values():
            latest = history[-1]
            if all(latest.get(k) == v for k, v in (filter or {}).items()):
                items.append(copy.deepcopy(latest))
        return StoreResult.ok(items)

    def history(self, record_type: str, record_id: str) -> list[dict[str, Any]]:
        return copy.deepcopy(self._versions.get(record_type, {}).get(record_id, []))


def _now() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())
