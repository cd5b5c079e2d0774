"""In-memory store implementing every store protocol.

Used by the test suite and for running the API without a database. Records
are deep-copied on the way in and out so callers never share state with the
store.
"""

import uuid
from datetime import datetime
from typing import Any

from taskflow.core.exceptions import NotFoundError
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
    utcnow,
)
from taskflow.store.base import Stores, TaskFilter


class InMemoryStore:
    """Dict-backed storage double matching the SQL stores' behavior."""

    def __init__(self) -> None:
        # dicts keep insertion order, which is the stored order of rules
        self._rules: dict[uuid.UUID, AutomationRule] = {}
        self._projects: dict[uuid.UUID, Project] = {}
        self._tasks: dict[uuid.UUID, Task] = {}
        self._badges: list[Badge] = []
        self._notifications: dict[uuid.UUID, Notification] = {}

    def as_stores(self) -> Stores:
        return Stores(rules=self, projects=self, tasks=self, badges=self, notifications=self)

    # -- rules --------------------------------------------------------------

    async def create_rule(self, rule: AutomationRule) -> AutomationRule:
        self._rules[rule.id] = rule.model_copy(deep=True)
        return rule.model_copy(deep=True)

    async def list_rules(self, project_id: uuid.UUID, *, active_only: bool = False) -> list[AutomationRule]:
        return [
            rule.model_copy(deep=True)
            for rule in self._rules.values()
            if rule.project_id == project_id and (rule.active or not active_only)
        ]

    async def get_rule(self, rule_id: uuid.UUID) -> AutomationRule | None:
        rule = self._rules.get(rule_id)
        return rule.model_copy(deep=True) if rule else None

    async def get_rule_ref(self, rule_id: uuid.UUID) -> RuleRef | None:
        rule = self._rules.get(rule_id)
        if rule is None:
            return None
        return RuleRef(id=rule.id, project_id=rule.project_id, creator_id=rule.creator_id)

    async def update_rule(self, rule_id: uuid.UUID, changes: dict[str, Any]) -> AutomationRule | None:
        current = self._rules.get(rule_id)
        if current is None:
            return None
        updated = current.model_copy(update={**changes, "updated_at": utcnow()}, deep=True)
        self._rules[rule_id] = updated
        return updated.model_copy(deep=True)

    async def delete_rule(self, rule_id: uuid.UUID) -> bool:
        return self._rules.pop(rule_id, None) is not None

    async def record_execution(self, rule_id: uuid.UUID, executed_at: datetime) -> None:
        rule = self._rules.get(rule_id)
        if rule is None:
            return
        rule.execution_count += 1
        rule.last_executed_at = executed_at

    # -- projects -----------------------------------------------------------

    async def create_project(self, project: Project) -> Project:
        self._projects[project.id] = project.model_copy(deep=True)
        return project.model_copy(deep=True)

    async def get_project(self, project_id: uuid.UUID) -> Project | None:
        project = self._projects.get(project_id)
        return project.model_copy(deep=True) if project else None

    async def list_projects_for_user(self, user_id: str) -> list[Project]:
        return [p.model_copy(deep=True) for p in self._projects.values() if p.is_member(user_id)]

    async def add_member(self, project_id: uuid.UUID, member: ProjectMember) -> Project:
        project = self._require_project(project_id)
        project.members = [m for m in project.members if m.user_id != member.user_id]
        project.members.append(member.model_copy())
        project.updated_at = utcnow()
        return project.model_copy(deep=True)

    async def remove_member(self, project_id: uuid.UUID, user_id: str) -> Project:
        project = self._require_project(project_id)
        project.members = [m for m in project.members if m.user_id != user_id]
        project.updated_at = utcnow()
        return project.model_copy(deep=True)

    async def update_statuses(self, project_id: uuid.UUID, statuses: list[StatusDef]) -> Project:
        project = self._require_project(project_id)
        project.statuses = [s.model_copy() for s in statuses]
        project.updated_at = utcnow()
        return project.model_copy(deep=True)

    async def update_project(self, project_id: uuid.UUID, changes: dict[str, Any]) -> Project:
        project = self._require_project(project_id)
        updated = project.model_copy(update={**changes, "updated_at": utcnow()}, deep=True)
        self._projects[project_id] = updated
        return updated.model_copy(deep=True)

    async def update_member_role(self, project_id: uuid.UUID, user_id: str, role: MemberRole) -> Project:
        project = self._require_project(project_id)
        for member in project.members:
            if member.user_id == user_id:
                member.role = role
        project.updated_at = utcnow()
        return project.model_copy(deep=True)

    async def delete_project(self, project_id: uuid.UUID) -> bool:
        if self._projects.pop(project_id, None) is None:
            return False
        task_ids = {t.id for t in self._tasks.values() if t.project_id == project_id}
        self._tasks = {k: t for k, t in self._tasks.items() if t.id not in task_ids}
        self._rules = {k: r for k, r in self._rules.items() if r.project_id != project_id}
        self._notifications = {
            k: n
            for k, n in self._notifications.items()
            if n.project_id != project_id and n.task_id not in task_ids
        }
        return True

    def _require_project(self, project_id: uuid.UUID) -> Project:
        project = self._projects.get(project_id)
        if project is None:
            raise NotFoundError("Project", project_id)
        return project

    # -- tasks --------------------------------------------------------------

    async def create_task(self, task: Task) -> Task:
        self._tasks[task.id] = task.model_copy(deep=True)
        return task.model_copy(deep=True)

    async def get_task(self, task_id: uuid.UUID) -> Task | None:
        task = self._tasks.get(task_id)
        return task.model_copy(deep=True) if task else None

    def _filtered_tasks(self, project_id: uuid.UUID, filters: TaskFilter) -> list[Task]:
        tasks = [t for t in self._tasks.values() if t.project_id == project_id]
        if filters.status is not None:
            tasks = [t for t in tasks if t.status == filters.status]
        if filters.assignee_id is not None:
            tasks = [t for t in tasks if t.assignee_id == filters.assignee_id]
        if filters.priority is not None:
            tasks = [t for t in tasks if t.priority == filters.priority]
        return tasks

    async def list_tasks(
        self, project_id: uuid.UUID, filters: TaskFilter, *, offset: int = 0, limit: int = 50
    ) -> list[Task]:
        tasks = list(reversed(self._filtered_tasks(project_id, filters)))
        return [t.model_copy(deep=True) for t in tasks[offset : offset + limit]]

    async def count_tasks(self, project_id: uuid.UUID, filters: TaskFilter) -> int:
        return len(self._filtered_tasks(project_id, filters))

    async def count_tasks_outside_statuses(self, project_id: uuid.UUID, statuses: list[str]) -> int:
        return sum(1 for t in self._tasks.values() if t.project_id == project_id and t.status not in statuses)

    async def apply_task_update(
        self, task_id: uuid.UUID, changes: dict[str, Any], history: list[HistoryEntry]
    ) -> Task:
        current = self._tasks.get(task_id)
        if current is None:
            raise NotFoundError("Task", task_id)
        updated = current.model_copy(update={**changes, "updated_at": utcnow()}, deep=True)
        updated.history = [*updated.history, *(entry.model_copy() for entry in history)]
        self._tasks[task_id] = updated
        return updated.model_copy(deep=True)

    async def add_comment(self, task_id: uuid.UUID, comment: Comment, entry: HistoryEntry) -> Task:
        current = self._tasks.get(task_id)
        if current is None:
            raise NotFoundError("Task", task_id)
        current.comments.append(comment.model_copy())
        current.history.append(entry.model_copy())
        current.updated_at = utcnow()
        return current.model_copy(deep=True)

    async def delete_task(self, task_id: uuid.UUID) -> bool:
        return self._tasks.pop(task_id, None) is not None

    # -- badges -------------------------------------------------------------

    async def award_badge(self, badge: Badge) -> Badge:
        self._badges.append(badge.model_copy())
        return badge.model_copy()

    async def list_badges(self, user_id: str) -> list[Badge]:
        return [b.model_copy() for b in self._badges if b.user_id == user_id]

    # -- notifications ------------------------------------------------------

    async def create_notification(self, notification: Notification) -> Notification:
        self._notifications[notification.id] = notification.model_copy()
        return notification.model_copy()

    def _for_recipient(self, recipient_id: str, read: bool | None) -> list[Notification]:
        return [
            n
            for n in self._notifications.values()
            if n.recipient_id == recipient_id and (read is None or n.read == read)
        ]

    async def list_notifications(
        self, recipient_id: str, *, read: bool | None = None, offset: int = 0, limit: int = 20
    ) -> list[Notification]:
        items = list(reversed(self._for_recipient(recipient_id, read)))
        return [n.model_copy() for n in items[offset : offset + limit]]

    async def count_notifications(self, recipient_id: str, *, read: bool | None = None) -> int:
        return len(self._for_recipient(recipient_id, read))

    async def get_notification(self, notification_id: uuid.UUID) -> Notification | None:
        notification = self._notifications.get(notification_id)
        return notification.model_copy() if notification else None

    async def mark_read(self, notification_id: uuid.UUID) -> Notification | None:
        notification = self._notifications.get(notification_id)
        if notification is None:
            return None
        notification.read = True
        return notification.model_copy()

    async def mark_all_read(self, recipient_id: str) -> int:
        unread = self._for_recipient(recipient_id, read=False)
        for notification in unread:
            notification.read = True
        return len(unread)

    async def delete_notification(self, notification_id: uuid.UUID) -> bool:
        return self._notifications.pop(notification_id, None) is not None

    async def delete_notifications_for_task(self, task_id: uuid.UUID) -> int:
        doomed = [n.id for n in self._notifications.values() if n.task_id == task_id]
        for notification_id in doomed:
            del self._notifications[notification_id]
        return len(doomed)
