from __future__ import annotations

import logging
from functools import lru_cache
from typing import Callable, List, Optional, Tuple, TypeVar

from fastapi import Depends
from pymongo.errors import PyMongoError

from .db import MongoTaskRepository, PersistenceGateway
from .models import TaskEntity
from .repositories import InMemoryRepository, ListQuery, MockTaskRepository, Repository
from .schemas import TaskCreate, TaskUpdate
from .settings import get_settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


# PUBLIC_INTERFACE
class TaskService:
    """
    Runs task operations against the active repository.

    Every result is paired with a `persisted` flag. A store error in the middle of
    an operation marks the gateway unavailable and the operation is answered from
    MockTaskRepository instead, so Create, Read, Update and Delete all degrade the
    same way.
    """

    def __init__(self, store: Repository, gateway: Optional[PersistenceGateway] = None) -> None:
        self.store = store
        self.gateway = gateway

    def _run(self, operation: str, fn: Callable[[Repository], T]) -> Tuple[T, bool]:
        try:
            return fn(self.store), self.store.persistent
        except PyMongoError:
            logger.exception("Task store failed during %s; answering with mock data", operation)
            if self.gateway is not None:
                self.gateway.mark_unavailable()
            return fn(MockTaskRepository()), False

    def create(self, owner: str, data: TaskCreate) -> Tuple[TaskEntity, bool]:
        return self._run("create", lambda repo: repo.create(owner, data))

    def list(self, owner: str, query: ListQuery) -> Tuple[Tuple[List[TaskEntity], int], bool]:
        return self._run("list", lambda repo: repo.list(owner, query))

    def update(self, owner: str, task_id: str, data: TaskUpdate) -> Tuple[Optional[TaskEntity], bool]:
        return self._run("update", lambda repo: repo.update(owner, task_id, data))

    def delete(self, owner: str, task_id: str) -> Tuple[bool, bool]:
        return self._run("delete", lambda repo: repo.delete(owner, task_id))


# PUBLIC_INTERFACE
@lru_cache(maxsize=1)
def get_gateway() -> PersistenceGateway:
    """Return the process-wide persistence gateway built from settings."""
    settings = get_settings()
    return PersistenceGateway(
        uri=settings.mongodb_uri,
        database=settings.mongodb_db,
        collection=settings.mongodb_collection,
        timeout_ms=settings.store_timeout_ms,
        backoff_initial=settings.reconnect_backoff_seconds,
        backoff_max=settings.reconnect_backoff_max_seconds,
    )


# PUBLIC_INTERFACE
@lru_cache(maxsize=1)
def get_memory_repository() -> InMemoryRepository:
    """Return the process-wide in-memory repository used by the 'memory' backend."""
    return InMemoryRepository()


# PUBLIC_INTERFACE
def get_task_service(
    gateway: PersistenceGateway = Depends(get_gateway),
    memory: InMemoryRepository = Depends(get_memory_repository),
) -> TaskService:
    """
    Pick the repository for this request.
    - memory: the shared InMemoryRepository
    - mongodb: MongoTaskRepository when the gateway is connected, MockTaskRepository otherwise
    """
    if get_settings().persistence_backend == "memory":
        return TaskService(memory)
    collection = gateway.acquire_collection()
    if collection is not None:
        return TaskService(MongoTaskRepository(collection), gateway)
    return TaskService(MockTaskRepository(), gateway)
