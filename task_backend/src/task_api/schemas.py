from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .models import Category, Priority

NAME_MAX_LENGTH = 200


def _clean_name(value: str) -> str:
    """
    Strip surrounding whitespace and enforce 1..200 length.
    """
    s = value.strip()
    if not s:
        raise ValueError("Task name is required")
    if len(s) > NAME_MAX_LENGTH:
        raise ValueError(f"Task name must be at most {NAME_MAX_LENGTH} characters")
    return s


# PUBLIC_INTERFACE
class TaskCreate(BaseModel):
    """
    Schema for creating a new Task.
    """

    model_config = ConfigDict(
        use_enum_values=True,
        validate_default=True,
        json_schema_extra={
            "example": {
                "name": "Write report",
                "priority": "high",
                "category": "work",
            }
        },
    )

    name: str = Field(..., description="Task name; surrounding whitespace is removed")
    priority: Priority = Field(default=Priority.MEDIUM, description="low, medium or high")
    category: Category = Field(default=Category.WORK, description="work, personal or shopping")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _clean_name(v)

    @field_validator("priority", mode="before")
    @classmethod
    def default_priority(cls, v: Any) -> Any:
        """
        An explicit null means "use the default".
        """
        return Priority.MEDIUM if v is None else v

    @field_validator("category", mode="before")
    @classmethod
    def default_category(cls, v: Any) -> Any:
        return Category.WORK if v is None else v


# PUBLIC_INTERFACE
class TaskUpdate(BaseModel):
    """
    Schema for updating an existing Task.

    The identifier may be given here as `id` or as the `taskId` query parameter.
    At least one of `completed` and `name` must be provided; only provided fields change.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "65f1c2a4e1b2c3d4e5f60718",
                "completed": True,
            }
        }
    )

    id: Optional[str] = Field(default=None, description="Identifier of the task to update")
    completed: Optional[bool] = Field(default=None, description="New completion status")
    name: Optional[str] = Field(default=None, description="New task name")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return _clean_name(v)

    @model_validator(mode="after")
    def require_change(self) -> "TaskUpdate":
        if self.completed is None and self.name is None:
            raise ValueError("Provide at least one of 'completed' or 'name'")
        return self


# PUBLIC_INTERFACE
class TaskOut(BaseModel):
    """
    Schema returned by the API for a Task.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "id": "65f1c2a4e1b2c3d4e5f60718",
                "name": "Write report",
                "completed": False,
                "priority": "medium",
                "category": "work",
                "owner": "default-user",
                "createdAt": "2025-01-25T10:15:30.123000Z",
                "updatedAt": "2025-01-26T09:00:00.000000Z",
                "mock": False,
            }
        },
    )

    id: str = Field(..., description="Unique identifier of the task")
    name: str = Field(..., description="Task name")
    completed: bool = Field(..., description="Completion status flag")
    priority: Priority = Field(..., description="Task priority")
    category: Category = Field(..., description="Task category")
    owner: str = Field(..., description="Owner of the task")
    created_at: datetime = Field(..., alias="createdAt", description="Creation timestamp")
    updated_at: datetime = Field(..., alias="updatedAt", description="Last update timestamp")
    mock: bool = Field(default=False, description="True when the record was never written to the store")


class PersistedTaskOut(TaskOut):
    """
    A Task returned by a mutating operation, with the persistence disclosure flag.
    """

    persisted: bool = Field(..., description="False when the store was unavailable and nothing was saved")


class TaskListOut(BaseModel):
    """
    Envelope for list responses.
    """

    tasks: List[TaskOut] = Field(..., description="Tasks owned by the caller, newest first")
    persisted: bool = Field(..., description="False when the list is sample data")
    total: int = Field(..., description="Total number of tasks owned by the caller")
    limit: Optional[int] = Field(default=None, description="Limit applied to the query, if any")
    offset: int = Field(..., description="Offset applied to the query")


class TaskDeletedOut(BaseModel):
    message: str = Field(..., description="Confirmation message")
    id: str = Field(..., description="Identifier of the deleted task")
    persisted: bool = Field(..., description="False when the store was unavailable and nothing was deleted")
