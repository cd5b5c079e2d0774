"""Records exchanged between services and stores.

Users are owned by the identity provider: user ids are opaque strings (the
token ``sub`` claim).
"""

import uuid
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field

from taskflow.domain.rules import Action, Trigger


def utcnow() -> datetime:
    return datetime.now(UTC)


class MemberRole(StrEnum):
    OWNER = "owner"
    EDITOR = "editor"
    VIEWER = "viewer"


class HistoryAction(StrEnum):
    CREATED = "created"
    UPDATED = "updated"
    STATUS_CHANGED = "status_changed"
    ASSIGNED = "assigned"
    COMMENTED = "commented"


class NotificationKind(StrEnum):
    TASK_ASSIGNMENT = "task_assignment"
    TASK_STATUS_CHANGE = "task_status_change"
    TASK_COMMENT = "task_comment"
    PROJECT_INVITATION = "project_invitation"
    DUE_DATE_REMINDER = "due_date_reminder"
    AUTOMATION_TRIGGERED = "automation_triggered"


class TaskPriority(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


DEFAULT_STATUSES = ("To Do", "In Progress", "Done")


class StatusDef(BaseModel):
    name: str
    order: int


class ProjectMember(BaseModel):
    user_id: str
    role: MemberRole = MemberRole.EDITOR
    added_at: datetime = Field(default_factory=utcnow)


class Project(BaseModel):
    """A project owns an ordered, non-empty status set and a membership list."""

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    title: str
    description: str = ""
    owner_id: str
    members: list[ProjectMember] = Field(default_factory=list)
    statuses: list[StatusDef] = Field(
        default_factory=lambda: [StatusDef(name=name, order=i) for i, name in enumerate(DEFAULT_STATUSES, 1)]
    )
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def status_names(self) -> list[str]:
        return [s.name for s in sorted(self.statuses, key=lambda s: s.order)]

    def has_status(self, name: str) -> bool:
        return any(s.name == name for s in self.statuses)

    def role_of(self, user_id: str | None) -> MemberRole | None:
        if user_id is None:
            return None
        for member in self.members:
            if member.user_id == user_id:
                return member.role
        return None

    def is_member(self, user_id: str | None) -> bool:
        return self.role_of(user_id) is not None


class HistoryEntry(BaseModel):
    """One append-only entry in a task's history log."""

    actor_id: str | None = None
    action: HistoryAction
    old_value: Any = None
    new_value: Any = None
    timestamp: datetime = Field(default_factory=utcnow)
    # Set when the mutation was performed by an automation rule
    rule_id: uuid.UUID | None = None


class Comment(BaseModel):
    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    user_id: str
    text: str
    created_at: datetime = Field(default_factory=utcnow)


class Task(BaseModel):
    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    project_id: uuid.UUID
    title: str
    description: str = ""
    status: str
    assignee_id: str | None = None
    creator_id: str
    due_date: datetime | None = None
    priority: TaskPriority = TaskPriority.MEDIUM
    comments: list[Comment] = Field(default_factory=list)
    history: list[HistoryEntry] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Badge(BaseModel):
    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    user_id: str
    name: str
    description: str | None = None
    awarded_at: datetime = Field(default_factory=utcnow)
    rule_id: uuid.UUID | None = None


class Notification(BaseModel):
    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    recipient_id: str
    kind: NotificationKind
    message: str
    project_id: uuid.UUID | None = None
    task_id: uuid.UUID | None = None
    read: bool = False
    created_at: datetime = Field(default_factory=utcnow)


class AutomationRule(BaseModel):
    """A project-scoped trigger/action rule plus its execution bookkeeping.

    execution_count / last_executed_at are written only by the automation
    engine through RuleStore.record_execution.
    """

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    project_id: uuid.UUID
    name: str
    trigger: Trigger
    action: Action
    creator_id: str
    active: bool = True
    execution_count: int = 0
    last_executed_at: datetime | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class RuleRef(BaseModel):
    """Who a rule belongs to, without its trigger and action."""

    id: uuid.UUID
    project_id: uuid.UUID
    creator_id: str
