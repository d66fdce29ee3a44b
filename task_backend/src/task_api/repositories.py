from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from threading import RLock
from typing import List, Optional, Tuple

from bson import ObjectId

from .models import Category, Priority, TaskEntity
from .schemas import TaskCreate, TaskUpdate


@dataclass(frozen=True)
class ListQuery:
    """
    Query parameters for listing tasks. `limit=None` returns every task.
    """
    limit: Optional[int] = None
    offset: int = 0


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def sort_key(entity: TaskEntity) -> Tuple[datetime, str]:
    """Newest-first ordering key: creation time, then id."""
    return entity["created_at"], entity["id"]


def paginate(items: List[TaskEntity], query: ListQuery) -> List[TaskEntity]:
    start = max(query.offset, 0)
    if query.limit is None:
        return items[start:]
    return items[start:start + max(query.limit, 0)]


# PUBLIC_INTERFACE
class Repository(ABC):
    """Abstract repository contract for task storage backends."""

    #: Whether writes made through this repository outlive the request.
    persistent: bool = True

    @abstractmethod
    def create(self, owner: str, data: TaskCreate) -> TaskEntity:
        """Create and return a new TaskEntity owned by `owner`."""

    @abstractmethod
    def list(self, owner: str, query: Optional[ListQuery] = None) -> Tuple[List[TaskEntity], int]:
        """
        Return a slice of the tasks owned by `owner` and their total count.
        Ordered by created_at descending, ties broken by id descending.
        """

    @abstractmethod
    def update(self, owner: str, task_id: str, data: TaskUpdate) -> Optional[TaskEntity]:
        """Apply `completed`/`name` changes. Return the updated entity or None if not found."""

    @abstractmethod
    def delete(self, owner: str, task_id: str) -> bool:
        """Delete a task. Return True if deleted, False if not found."""


class InMemoryRepository(Repository):
    """
    Thread-safe in-memory repository used by the 'memory' backend and by tests.
    """

    def __init__(self) -> None:
        self._lock = RLock()
        self._items: dict[str, TaskEntity] = {}

    def create(self, owner: str, data: TaskCreate) -> TaskEntity:
        now = utcnow()
        entity: TaskEntity = {
            "id": str(ObjectId()),
            "name": data.name,
            "completed": False,
            "priority": data.priority,
            "category": data.category,
            "owner": owner,
            "created_at": now,
            "updated_at": now,
            "mock": False,
        }
        with self._lock:
            self._items[entity["id"]] = entity
            return entity.copy()

    def list(self, owner: str, query: Optional[ListQuery] = None) -> Tuple[List[TaskEntity], int]:
        q = query or ListQuery()
        with self._lock:
            owned = [t for t in self._items.values() if t["owner"] == owner]
            owned.sort(key=sort_key, reverse=True)
            return [t.copy() for t in paginate(owned, q)], len(owned)

    def update(self, owner: str, task_id: str, data: TaskUpdate) -> Optional[TaskEntity]:
        with self._lock:
            existing = self._items.get(task_id)
            if existing is None or existing["owner"] != owner:
                return None

            updated = existing.copy()
            if data.completed is not None:
                updated["completed"] = data.completed
            if data.name is not None:
                updated["name"] = data.name
            # updated_at must advance even when two writes land in the same clock tick
            updated["updated_at"] = max(utcnow(), existing["updated_at"] + timedelta(microseconds=1))

            self._items[task_id] = updated
            return updated.copy()

    def delete(self, owner: str, task_id: str) -> bool:
        with self._lock:
            existing = self._items.get(task_id)
            if existing is None or existing["owner"] != owner:
                return False
            del self._items[task_id]
            return True


class MockTaskRepository(Repository):
    """
    Fabricates transient tasks while the real store is unavailable.

    Nothing is remembered between calls; every returned entity carries mock=True.
    """

    persistent = False

    def _fabricate(self, owner: str, task_id: str, name: str, completed: bool = False,
                   priority: str = Priority.MEDIUM.value, category: str = Category.WORK.value) -> TaskEntity:
        now = utcnow()
        return {
            "id": task_id,
            "name": name,
            "completed": completed,
            "priority": priority,
            "category": category,
            "owner": owner,
            "created_at": now,
            "updated_at": now,
            "mock": True,
        }

    def create(self, owner: str, data: TaskCreate) -> TaskEntity:
        return self._fabricate(owner, str(ObjectId()), data.name,
                               priority=data.priority, category=data.category)

    def list(self, owner: str, query: Optional[ListQuery] = None) -> Tuple[List[TaskEntity], int]:
        samples = [
            self._fabricate(owner, "2", "Sample Task 2", completed=True,
                            priority=Priority.HIGH.value, category=Category.PERSONAL.value),
            self._fabricate(owner, "1", "Sample Task 1"),
        ]
        return paginate(samples, query or ListQuery()), len(samples)

    def update(self, owner: str, task_id: str, data: TaskUpdate) -> Optional[TaskEntity]:
        return self._fabricate(owner, task_id, data.name or "Updated Task", completed=bool(data.completed))

    def delete(self, owner: str, task_id: str) -> bool:
        return True
