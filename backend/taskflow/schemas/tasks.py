"""Task Pydantic schemas for API requests and responses."""

import uuid
from datetime import datetime

from pydantic import BaseModel, Field

from taskflow.domain.entities import Task, TaskPriority
from taskflow.services.automation_engine import FireResult


class CreateTaskRequest(BaseModel):
    project_id: uuid.UUID
    title: str = Field(min_length=1)
    description: str = ""
    status: str | None = Field(default=None, description="Defaults to the project's first status")
    assignee_id: str | None = None
    due_date: datetime | None = None
    priority: TaskPriority = TaskPriority.MEDIUM


class UpdateTaskRequest(BaseModel):
    """Partial update. assignee_id="unassign" clears the assignee."""

    title: str | None = None
    description: str | None = None
    status: str | None = None
    assignee_id: str | None = None
    due_date: datetime | None = None
    priority: TaskPriority | None = None


class CommentRequest(BaseModel):
    text: str


class TaskOutcome(BaseModel):
    """A task after a lifecycle operation, with the automation firings it caused."""

    task: Task
    automation: list[FireResult] = Field(default_factory=list)


class Pagination(BaseModel):
    page: int
    limit: int
    total_pages: int
    total_items: int


class TaskPage(BaseModel):
    items: list[Task] = Field(default_factory=list, description="Tasks, empty array when none exist")
    pagination: Pagination
