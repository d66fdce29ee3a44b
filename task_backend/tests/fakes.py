# tests/fakes.py

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.errors import ServerSelectionTimeoutError


def _matches(doc: Dict[str, Any], flt: Dict[str, Any]) -> bool:
    return all(doc.get(k) == v for k, v in flt.items())


@dataclass
class _InsertResult:
    inserted_id: ObjectId


@dataclass
class _DeleteResult:
    deleted_count: int


class FakeCursor:
    """
    Just enough of pymongo's Cursor for the task repository: sort/skip/limit/iteration.
    """

    def __init__(self, docs: List[Dict[str, Any]]) -> None:
        self._docs = docs
        self._skip = 0
        self._limit = 0

    def sort(self, keys):
        for key, direction in reversed(keys):
            self._docs.sort(key=lambda d: d[key], reverse=direction < 0)
        return self

    def skip(self, n: int):
        self._skip = n
        return self

    def limit(self, n: int):
        self._limit = n
        return self

    def __iter__(self):
        docs = self._docs[self._skip:]
        if self._limit:
            docs = docs[: self._limit]
        return iter([copy.deepcopy(d) for d in docs])


class FakeCollection:
    """
    In-memory stand-in for a pymongo Collection, supporting equality filters only.

    Set `fail_with` to make every call raise (simulates the store going away).
    """

    def __init__(self) -> None:
        self.docs: List[Dict[str, Any]] = []
        self.indexes: List[Any] = []
        self.fail_with: Optional[Exception] = None

    def _check(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with

    def create_index(self, keys, name: Optional[str] = None) -> str:
        self._check()
        self.indexes.append((keys, name))
        return name or "index"

    def insert_one(self, doc: Dict[str, Any]) -> _InsertResult:
        self._check()
        doc.setdefault("_id", ObjectId())
        self.docs.append(copy.deepcopy(doc))
        return _InsertResult(inserted_id=doc["_id"])

    def find_one(self, flt: Dict[str, Any], projection: Optional[Dict[str, Any]] = None):
        self._check()
        for d in self.docs:
            if _matches(d, flt):
                return copy.deepcopy(d)
        return None

    def count_documents(self, flt: Dict[str, Any]) -> int:
        self._check()
        return sum(1 for d in self.docs if _matches(d, flt))

    def find(self, flt: Dict[str, Any]) -> FakeCursor:
        self._check()
        return FakeCursor([d for d in self.docs if _matches(d, flt)])

    def find_one_and_update(self, flt, update, return_document=ReturnDocument.BEFORE):
        self._check()
        for d in self.docs:
            if _matches(d, flt):
                before = copy.deepcopy(d)
                d.update(update["$set"])
                return copy.deepcopy(d) if return_document == ReturnDocument.AFTER else before
        return None

    def delete_one(self, flt: Dict[str, Any]) -> _DeleteResult:
        self._check()
        for i, d in enumerate(self.docs):
            if _matches(d, flt):
                del self.docs[i]
                return _DeleteResult(deleted_count=1)
        return _DeleteResult(deleted_count=0)


class _FakeAdmin:
    def __init__(self, client: "FakeMongoClient") -> None:
        self._client = client

    def command(self, name: str):
        self._client.commands.append(name)
        if self._client.ping_error is not None:
            raise self._client.ping_error
        return {"ok": 1.0}


@dataclass
class FakeMongoClient:
    uri: str
    options: Dict[str, Any]
    collection: FakeCollection
    ping_error: Optional[Exception] = None
    commands: List[str] = field(default_factory=list)
    closed: bool = False

    @property
    def admin(self) -> _FakeAdmin:
        return _FakeAdmin(self)

    def __getitem__(self, name: str):
        return {"tasks": self.collection, "other": FakeCollection()}

    def close(self) -> None:
        self.closed = True


class FakeClientFactory:
    """
    Callable used as PersistenceGateway(client_factory=...).

    - Records every client it builds
    - `fail=True` makes the ping fail like an unreachable server
    """

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.collection = FakeCollection()
        self.clients: List[FakeMongoClient] = []

    def __call__(self, uri: str, **options: Any) -> FakeMongoClient:
        error = ServerSelectionTimeoutError("no servers available") if self.fail else None
        client = FakeMongoClient(uri=uri, options=options, collection=self.collection, ping_error=error)
        self.clients.append(client)
        return client


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds
