"""Store protocols: the persistence boundary used by services.

Two implementations exist: InMemoryStore (tests, local dev) and the
SQLAlchemy-backed Sql*Store classes. All methods are async; each call is a
point where the event loop may switch to another request.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol, runtime_checkable

from taskflow.domain.entities import (
    AutomationRule,
    Badge,
    Comment,
    HistoryEntry,
    MemberRole,
    Notification,
    Project,
    ProjectMember,
    RuleRef,
    StatusDef,
    Task,
    TaskPriority,
)


@dataclass(frozen=True)
class TaskFilter:
    """Optional equality filters for task listings."""

    status: str | None = None
    assignee_id: str | None = None
    priority: TaskPriority | None = None


@runtime_checkable
class RuleStore(Protocol):
    async def create_rule(self, rule: AutomationRule) -> AutomationRule: ...

    async def list_rules(self, project_id: uuid.UUID, *, active_only: bool = False) -> list[AutomationRule]:
        """Rules of a project in stored (creation) order."""
        ...

    async def get_rule(self, rule_id: uuid.UUID) -> AutomationRule | None: ...

    async def get_rule_ref(self, rule_id: uuid.UUID) -> RuleRef | None:
        """Ownership of a rule, readable even when its trigger or action no longer parses."""
        ...

    async def update_rule(self, rule_id: uuid.UUID, changes: dict[str, Any]) -> AutomationRule | None:
        """Apply user-editable changes (name, trigger, action, active)."""
        ...

    async def delete_rule(self, rule_id: uuid.UUID) -> bool: ...

    async def record_execution(self, rule_id: uuid.UUID, executed_at: datetime) -> None:
        """Atomically increment execution_count and set last_executed_at."""
        ...


@runtime_checkable
class ProjectStore(Protocol):
    async def create_project(self, project: Project) -> Project: ...

    async def get_project(self, project_id: uuid.UUID) -> Project | None: ...

    async def list_projects_for_user(self, user_id: str) -> list[Project]: ...

    async def add_member(self, project_id: uuid.UUID, member: ProjectMember) -> Project: ...

    async def remove_member(self, project_id: uuid.UUID, user_id: str) -> Project: ...

    async def update_statuses(self, project_id: uuid.UUID, statuses: list[StatusDef]) -> Project: ...

    async def update_project(self, project_id: uuid.UUID, changes: dict[str, Any]) -> Project:
        """Set title and/or description."""
        ...

    async def update_member_role(self, project_id: uuid.UUID, user_id: str, role: MemberRole) -> Project: ...

    async def delete_project(self, project_id: uuid.UUID) -> bool:
        """Delete the project with its tasks, rules and notifications in one unit."""
        ...


@runtime_checkable
class TaskStore(Protocol):
    async def create_task(self, task: Task) -> Task: ...

    async def get_task(self, task_id: uuid.UUID) -> Task | None: ...

    async def list_tasks(
        self, project_id: uuid.UUID, filters: TaskFilter, *, offset: int = 0, limit: int = 50
    ) -> list[Task]:
        """Tasks of a project, newest first."""
        ...

    async def count_tasks(self, project_id: uuid.UUID, filters: TaskFilter) -> int: ...

    async def count_tasks_outside_statuses(self, project_id: uuid.UUID, statuses: list[str]) -> int:
        """Tasks of a project whose status is not one of ``statuses``."""
        ...

    async def apply_task_update(
        self, task_id: uuid.UUID, changes: dict[str, Any], history: list[HistoryEntry]
    ) -> Task:
        """Set fields and append history entries atomically for one task.

        Raises:
            NotFoundError: task does not exist
        """
        ...

    async def add_comment(self, task_id: uuid.UUID, comment: Comment, entry: HistoryEntry) -> Task: ...

    async def delete_task(self, task_id: uuid.UUID) -> bool: ...


@runtime_checkable
class BadgeStore(Protocol):
    async def award_badge(self, badge: Badge) -> Badge: ...

    async def list_badges(self, user_id: str) -> list[Badge]: ...


@runtime_checkable
class NotificationStore(Protocol):
    async def create_notification(self, notification: Notification) -> Notification: ...

    async def list_notifications(
        self, recipient_id: str, *, read: bool | None = None, offset: int = 0, limit: int = 20
    ) -> list[Notification]:
        """Notifications of a recipient, newest first."""
        ...

    async def count_notifications(self, recipient_id: str, *, read: bool | None = None) -> int: ...

    async def get_notification(self, notification_id: uuid.UUID) -> Notification | None: ...

    async def mark_read(self, notification_id: uuid.UUID) -> Notification | None: ...

    async def mark_all_read(self, recipient_id: str) -> int: ...

    async def delete_notification(self, notification_id: uuid.UUID) -> bool: ...

    async def delete_notifications_for_task(self, task_id: uuid.UUID) -> int: ...


@dataclass
class Stores:
    """The set of stores a request works with."""

    rules: RuleStore
    projects: ProjectStore
    tasks: TaskStore
    badges: BadgeStore
    notifications: NotificationStore
