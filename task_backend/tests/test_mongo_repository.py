from __future__ import annotations

from datetime import datetime, timedelta, timezone

from bson import ObjectId

from task_api.db import MongoTaskRepository
from task_api.repositories import ListQuery
from task_api.schemas import TaskCreate, TaskUpdate

from .fakes import FakeCollection


def make_repo():
    collection = FakeCollection()
    return MongoTaskRepository(collection), collection


def test_create_writes_document():
    repo, collection = make_repo()
    entity = repo.create("default-user", TaskCreate(name="  Write report "))

    assert len(collection.docs) == 1
    doc = collection.docs[0]
    assert doc["name"] == "Write report"
    assert doc["priority"] == "medium"
    assert doc["category"] == "work"
    assert doc["owner"] == "default-user"
    assert doc["completed"] is False
    assert doc["createdAt"] == doc["updatedAt"]
    assert doc["createdAt"].microsecond % 1000 == 0

    assert entity["id"] == str(doc["_id"])
    assert entity["mock"] is False


def test_list_is_owner_scoped_and_newest_first():
    repo, collection = make_repo()
    base = datetime(2025, 1, 1, tzinfo=timezone.utc)
    tie = base + timedelta(hours=2)
    ids = [ObjectId() for _ in range(4)]
    collection.docs = [
        {"_id": ids[0], "name": "old", "completed": False, "priority": "low", "category": "work",
         "owner": "u1", "createdAt": base, "updatedAt": base},
        {"_id": ids[1], "name": "tie-a", "completed": False, "priority": "low", "category": "work",
         "owner": "u1", "createdAt": tie, "updatedAt": tie},
        {"_id": ids[2], "name": "tie-b", "completed": False, "priority": "low", "category": "work",
         "owner": "u1", "createdAt": tie, "updatedAt": tie},
        {"_id": ids[3], "name": "someone else", "completed": False, "priority": "low", "category": "work",
         "owner": "u2", "createdAt": tie, "updatedAt": tie},
    ]

    items, total = repo.list("u1")
    assert total == 3
    assert [t["name"] for t in items] == ["tie-b", "tie-a", "old"]

    page, total = repo.list("u1", ListQuery(limit=1, offset=1))
    assert total == 3
    assert [t["name"] for t in page] == ["tie-a"]

    empty, total = repo.list("u1", ListQuery(limit=0))
    assert empty == [] and total == 3


def test_update_scoped_to_owner():
    repo, collection = make_repo()
    created = repo.create("u1", TaskCreate(name="Toggle"))

    assert repo.update("u2", created["id"], TaskUpdate(completed=True)) is None
    assert collection.docs[0]["completed"] is False

    updated = repo.update("u1", created["id"], TaskUpdate(completed=True, name="Renamed"))
    assert updated["completed"] is True
    assert updated["name"] == "Renamed"
    assert updated["updated_at"] > created["updated_at"]
    assert updated["created_at"] == created["created_at"]


def test_malformed_ids_resolve_to_nothing():
    repo, collection = make_repo()
    repo.create("u1", TaskCreate(name="Stay"))

    assert repo.update("u1", "not-an-object-id", TaskUpdate(completed=True)) is None
    assert repo.delete("u1", "not-an-object-id") is False
    assert len(collection.docs) == 1


def test_delete():
    repo, collection = make_repo()
    created = repo.create("u1", TaskCreate(name="Remove"))

    assert repo.delete("u2", created["id"]) is False
    assert repo.delete("u1", created["id"]) is True
    assert collection.docs == []
    assert repo.delete("u1", created["id"]) is False


def test_updated_at_advances_within_one_millisecond(monkeypatch):
    frozen = datetime(2025, 1, 1, 12, 0, 0, 123456, tzinfo=timezone.utc)
    monkeypatch.setattr("task_api.db.utcnow", lambda: frozen)
    repo, _ = make_repo()

    created = repo.create("u1", TaskCreate(name="Toggle"))
    first = repo.update("u1", created["id"], TaskUpdate(completed=True))
    second = repo.update("u1", created["id"], TaskUpdate(completed=False))

    assert created["updated_at"] < first["updated_at"] < second["updated_at"]
    assert second["updated_at"] - created["updated_at"] == timedelta(milliseconds=2)
    assert second["completed"] is created["completed"]


class _RacingCollection(FakeCollection):
    """Another writer touches the task between the read and the conditional write, once."""

    def __init__(self) -> None:
        super().__init__()
        self.raced = False

    def find_one_and_update(self, flt, update, **kwargs):
        if not self.raced:
            self.raced = True
            for d in self.docs:
                d["updatedAt"] = d["updatedAt"] + timedelta(seconds=5)
        return super().find_one_and_update(flt, update, **kwargs)


def test_update_rereads_after_concurrent_write(monkeypatch):
    frozen = datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
    monkeypatch.setattr("task_api.db.utcnow", lambda: frozen)
    collection = _RacingCollection()
    repo = MongoTaskRepository(collection)
    created = repo.create("u1", TaskCreate(name="Contended"))

    updated = repo.update("u1", created["id"], TaskUpdate(completed=True))
    assert updated["completed"] is True
    assert updated["updated_at"] == frozen + timedelta(seconds=5, milliseconds=1)
