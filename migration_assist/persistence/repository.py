"""
Entity Repository — persistence for projects, requirements, tasks, etc.

Documents are plain dicts stored in named collections and keyed by
integer ids assigned on create. Two backends:
  - InMemoryRepository (default; deep-copied snapshots, process lifetime)
  - MongoRepository    (pymongo; ids from a ``counters`` collection)
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from copy import deepcopy
from datetime import datetime, timezone
from typing import Any, Optional

from migration_assist.config import Settings

logger = logging.getLogger(__name__)

# Collection names
PROJECTS = "projects"
INPUT_DATA = "input_data"
REQUIREMENTS = "requirements"
TASKS = "implementation_tasks"
WORKFLOWS = "workflows"
ACTIVITIES = "activities"


def _now() -> datetime:
    return datetime.now(timezone.utc)


class BaseRepository(ABC):
    """CRUD over named collections of dict documents with integer ids."""

    @abstractmethod
    def create(self, collection: str, data: dict[str, Any]) -> dict[str, Any]:
        """Insert a document, assigning ``id`` and timestamps. Returns the stored copy."""

    @abstractmethod
    def get(self, collection: str, entity_id: int) -> Optional[dict[str, Any]]:
        """Return the document or None."""

    @abstractmethod
    def list(self, collection: str, **filters: Any) -> list[dict[str, Any]]:
        """Documents whose fields equal every filter value, in id order."""

    @abstractmethod
    def update(self, collection: str, entity_id: int, changes: dict[str, Any]) -> Optional[dict[str, Any]]:
        """Apply *changes*, bump ``updatedAt``. Returns None if missing."""

    @abstractmethod
    def delete(self, collection: str, entity_id: int) -> bool:
        """Remove the document. Returns False if it did not exist."""

    @abstractmethod
    def next_sequence(self, name: str) -> int:
        """Atomically increment and return the named counter (first value is 1)."""

    def delete_where(self, collection: str, **filters: Any) -> int:
        """Remove every matching document and return how many went."""
        removed = 0
        for doc in self.list(collection, **filters):
            if self.delete(collection, doc["id"]):
                removed += 1
        return removed

    def close(self) -> None:
        """Release backend resources."""


class InMemoryRepository(BaseRepository):
    """Dict-backed store. Thread-safe; callers always receive copies."""

    def __init__(self):
        self._collections: dict[str, dict[int, dict[str, Any]]] = {}
        self._counters: dict[str, int] = {}
        self._lock = threading.Lock()

    def _increment(self, name: str) -> int:
        value = self._counters.get(name, 0) + 1
        self._counters[name] = value
        return value

    def next_sequence(self, name: str) -> int:
        with self._lock:
            return self._increment(name)

    def create(self, collection: str, data: dict[str, Any]) -> dict[str, Any]:
        with self._lock:
            next_id = self._increment(collection)
            now = _now()
            doc = deepcopy(data)
            doc.update({"id": next_id, "createdAt": now, "updatedAt": now})
            self._collections.setdefault(collection, {})[next_id] = doc
            stored = deepcopy(doc)
        logger.debug(f"Created {collection}#{next_id}")
        return stored

    def get(self, collection: str, entity_id: int) -> Optional[dict[str, Any]]:
        with self._lock:
            doc = self._collections.get(collection, {}).get(entity_id)
            return deepcopy(doc) if doc is not None else None

    def list(self, collection: str, **filters: Any) -> list[dict[str, Any]]:
        with self._lock:
            docs = sorted(self._collections.get(collection, {}).values(), key=lambda d: d["id"])
            return [
                deepcopy(d) for d in docs
                if all(d.get(k) == v for k, v in filters.items())
            ]

    def update(self, collection: str, entity_id: int, changes: dict[str, Any]) -> Optional[dict[str, Any]]:
        with self._lock:
            doc = self._collections.get(collection, {}).get(entity_id)
            if doc is None:
                return None
            doc.update(deepcopy(changes))
            doc["id"] = entity_id
            doc["updatedAt"] = _now()
            return deepcopy(doc)

    def delete(self, collection: str, entity_id: int) -> bool:
        with self._lock:
            return self._collections.get(collection, {}).pop(entity_id, None) is not None


class MongoRepository(BaseRepository):
    """pymongo-backed store; the ``_id`` field is the integer entity id."""

    def __init__(self, database: Any, client: Any = None):
        self._db = database
        self._client = client

    def next_sequence(self, name: str) -> int:
        from pymongo import ReturnDocument

        counter = self._db["counters"].find_one_and_update(
            {"_id": name},
            {"$inc": {"seq": 1}},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        return int(counter["seq"])

    @staticmethod
    def _out(doc: Optional[dict[str, Any]]) -> Optional[dict[str, Any]]:
        if doc is None:
            return None
        doc = dict(doc)
        doc["id"] = doc.pop("_id")
        return doc

    def create(self, collection: str, data: dict[str, Any]) -> dict[str, Any]:
        entity_id = self.next_sequence(collection)
        now = _now()
        doc = dict(data)
        doc.pop("id", None)
        doc.update({"_id": entity_id, "createdAt": now, "updatedAt": now})
        self._db[collection].insert_one(doc)
        logger.debug(f"Created {collection}#{entity_id}")
        return self._out(doc)

    def get(self, collection: str, entity_id: int) -> Optional[dict[str, Any]]:
        return self._out(self._db[collection].find_one({"_id": entity_id}))

    def list(self, collection: str, **filters: Any) -> list[dict[str, Any]]:
        query = {("_id" if k == "id" else k): v for k, v in filters.items()}
        return [self._out(d) for d in self._db[collection].find(query).sort("_id", 1)]

    def update(self, collection: str, entity_id: int, changes: dict[str, Any]) -> Optional[dict[str, Any]]:
        from pymongo import ReturnDocument

        changes = {k: v for k, v in changes.items() if k != "id"}
        changes["updatedAt"] = _now()
        doc = self._db[collection].find_one_and_update(
            {"_id": entity_id},
            {"$set": changes},
            return_document=ReturnDocument.AFTER,
        )
        return self._out(doc)

    def delete(self, collection: str, entity_id: int) -> bool:
        return self._db[collection].delete_one({"_id": entity_id}).deleted_count > 0

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            logger.info("MongoDB connection closed")


def build_repository(settings: Settings) -> BaseRepository:
    """Create the repository selected by ``storage_backend``."""
    backend = settings.storage_backend.strip().lower()
    if backend == "memory":
        logger.info("Using in-memory repository")
        return InMemoryRepository()
    if backend == "mongo":
        from migration_assist.persistence.mongo_client import MongoClient

        client = MongoClient(settings)
        return MongoRepository(client.get_database(), client)
    raise ValueError(f"Unknown storage backend {settings.storage_backend!r} (expected memory or mongo)")
