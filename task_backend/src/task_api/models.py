from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import TypedDict


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Category(str, Enum):
    WORK = "work"
    PERSONAL = "personal"
    SHOPPING = "shopping"


# PUBLIC_INTERFACE
class TaskEntity(TypedDict):
    """
    Storage-agnostic representation of a Task shared by every store back-end.

    Fields:
    - id: Store-generated identifier (ObjectId hex string)
    - name: Trimmed, non-empty task name
    - completed: Completion flag
    - priority: One of Priority
    - category: One of Category
    - owner: Identifier of the user the task belongs to
    - created_at: UTC creation timestamp, never modified
    - updated_at: UTC timestamp refreshed on every mutation
    - mock: True for synthetic records produced while the store is unavailable
    """

    id: str
    name: str
    completed: bool
    priority: str
    category: str
    owner: str
    created_at: datetime
    updated_at: datetime
    mock: bool
