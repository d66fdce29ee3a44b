from __future__ import annotations

import logging
import math
import time
from datetime import datetime, timedelta
from enum import Enum
from threading import RLock
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from bson import ObjectId
from pymongo import DESCENDING, ASCENDING, MongoClient, ReturnDocument
from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from .models import TaskEntity
from .repositories import ListQuery, Repository, utcnow
from .schemas import TaskCreate, TaskUpdate

logger = logging.getLogger(__name__)

TASK_INDEX = [("owner", ASCENDING), ("createdAt", DESCENDING), ("_id", DESCENDING)]
TASK_SORT = [("createdAt", DESCENDING), ("_id", DESCENDING)]


class ConnectionState(str, Enum):
    UNKNOWN = "unknown"
    CONNECTED = "connected"
    UNAVAILABLE = "unavailable"


# PUBLIC_INTERFACE
class PersistenceGateway:
    """
    Process-wide, lazily opened connection to the MongoDB task collection.

    The gateway remembers whether the store is reachable. After a failed attempt it
    stays UNAVAILABLE until a retry deadline that doubles with every consecutive
    failure (bounded by `backoff_max`), so requests in the meantime go straight to
    the degraded path instead of waiting on the driver again. A missing URI is a
    configuration error and is never retried.

    `ensure_connected()` never raises; driver errors are logged and reported as False.
    """

    def __init__(
        self,
        uri: Optional[str],
        database: str = "taskmanager",
        collection: str = "tasks",
        timeout_ms: int = 5000,
        backoff_initial: float = 1.0,
        backoff_max: float = 60.0,
        client_factory: Callable[..., Any] = MongoClient,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._uri = uri
        self._database = database
        self._collection_name = collection
        self._timeout_ms = timeout_ms
        self._backoff_initial = backoff_initial
        self._backoff_max = backoff_max
        self._client_factory = client_factory
        self._clock = clock

        self._lock = RLock()
        self._state = ConnectionState.UNKNOWN
        self._client: Any = None
        self._collection: Optional[Collection] = None
        self._failures = 0
        self._retry_at = 0.0

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def collection(self) -> Collection:
        if self._state is not ConnectionState.CONNECTED or self._collection is None:
            raise RuntimeError("task store is not connected")
        return self._collection

    # PUBLIC_INTERFACE
    def ensure_connected(self) -> bool:
        """Return True when the task collection is ready, connecting first if needed."""
        with self._lock:
            if self._state is ConnectionState.CONNECTED:
                return True
            if self._state is ConnectionState.UNAVAILABLE and self._clock() < self._retry_at:
                return False
            return self._connect()

    def acquire_collection(self) -> Optional[Collection]:
        """
        Return the task collection, connecting first if needed, or None when the store is unavailable.

        Connecting and reading the collection happen under one lock, so a concurrent
        mark_unavailable() cannot leave the caller holding a dropped connection.
        """
        with self._lock:
            if not self.ensure_connected():
                return None
            return self._collection

    def mark_unavailable(self) -> None:
        """Drop the current client after a failed store operation and schedule a reconnect."""
        with self._lock:
            self._release()
            self._record_failure()

    def close(self) -> None:
        with self._lock:
            self._release()
            self._state = ConnectionState.UNKNOWN

    def _connect(self) -> bool:
        if not self._uri:
            if self._state is not ConnectionState.UNAVAILABLE:
                logger.error("MONGODB_URI is not defined; tasks will not be persisted")
            self._state = ConnectionState.UNAVAILABLE
            self._retry_at = math.inf
            return False

        client = None
        try:
            client = self._client_factory(
                self._uri,
                serverSelectionTimeoutMS=self._timeout_ms,
                connectTimeoutMS=self._timeout_ms,
                socketTimeoutMS=self._timeout_ms,
                tz_aware=True,
            )
            client.admin.command("ping")
            collection = client[self._database][self._collection_name]
            collection.create_index(TASK_INDEX, name="owner_createdAt")
        except PyMongoError as exc:
            logger.warning("MongoDB connection failed: %s", exc)
            if client is not None:
                client.close()
            self._record_failure()
            return False

        self._client = client
        self._collection = collection
        self._state = ConnectionState.CONNECTED
        self._failures = 0
        logger.info("MongoDB connected (database=%s, collection=%s)", self._database, self._collection_name)
        return True

    def _record_failure(self) -> None:
        self._failures += 1
        delay = min(self._backoff_initial * (2 ** (self._failures - 1)), self._backoff_max)
        self._retry_at = self._clock() + delay
        self._state = ConnectionState.UNAVAILABLE
        logger.info("Task store unavailable; next connection attempt in %.1fs", delay)

    def _release(self) -> None:
        if self._client is not None:
            self._client.close()
        self._client = None
        self._collection = None


def _parse_id(task_id: str) -> Optional[ObjectId]:
    return ObjectId(task_id) if ObjectId.is_valid(task_id) else None


def _store_time(value: datetime) -> datetime:
    # BSON dates carry millisecond precision
    return value.replace(microsecond=value.microsecond // 1000 * 1000)


class MongoTaskRepository(Repository):
    """
    Repository over a pymongo collection of task documents.

    Document layout: {_id, name, completed, priority, category, owner, createdAt, updatedAt}
    """

    def __init__(self, collection: Collection) -> None:
        self._collection = collection

    def _doc_to_entity(self, doc: Mapping[str, Any]) -> TaskEntity:
        return {
            "id": str(doc["_id"]),
            "name": str(doc["name"]),
            "completed": bool(doc.get("completed", False)),
            "priority": doc.get("priority", "medium"),
            "category": doc.get("category", "work"),
            "owner": str(doc["owner"]),
            "created_at": doc["createdAt"],
            "updated_at": doc["updatedAt"],
            "mock": False,
        }

    def create(self, owner: str, data: TaskCreate) -> TaskEntity:
        now = _store_time(utcnow())
        doc: Dict[str, Any] = {
            "name": data.name,
            "completed": False,
            "priority": data.priority,
            "category": data.category,
            "owner": owner,
            "createdAt": now,
            "updatedAt": now,
        }
        result = self._collection.insert_one(doc)
        doc["_id"] = result.inserted_id
        return self._doc_to_entity(doc)

    def list(self, owner: str, query: Optional[ListQuery] = None) -> Tuple[List[TaskEntity], int]:
        q = query or ListQuery()
        scope = {"owner": owner}
        total = self._collection.count_documents(scope)
        if q.limit == 0:
            return [], total

        cursor = self._collection.find(scope).sort(TASK_SORT).skip(max(q.offset, 0))
        if q.limit is not None:
            cursor = cursor.limit(q.limit)
        return [self._doc_to_entity(d) for d in cursor], total

    def update(self, owner: str, task_id: str, data: TaskUpdate) -> Optional[TaskEntity]:
        oid = _parse_id(task_id)
        if oid is None:
            return None

        changes: Dict[str, Any] = {}
        if data.completed is not None:
            changes["completed"] = data.completed
        if data.name is not None:
            changes["name"] = data.name

        scope = {"_id": oid, "owner": owner}
        while True:
            current = self._collection.find_one(scope, {"updatedAt": 1})
            if current is None:
                return None
            previous = current["updatedAt"]
            # updatedAt must advance even when two writes land in the same millisecond
            changes["updatedAt"] = max(_store_time(utcnow()), previous + timedelta(milliseconds=1))
            doc = self._collection.find_one_and_update(
                {**scope, "updatedAt": previous},
                {"$set": changes},
                return_document=ReturnDocument.AFTER,
            )
            if doc is not None:
                return self._doc_to_entity(doc)
            # A concurrent write moved updatedAt; read it again

    def delete(self, owner: str, task_id: str) -> bool:
        oid = _parse_id(task_id)
        if oid is None:
            return False
        result = self._collection.delete_one({"_id": oid, "owner": owner})
        return result.deleted_count > 0
