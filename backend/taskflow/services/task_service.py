"""TaskService: task lifecycle operations and the automation events they produce."""

import math
import uuid
from datetime import datetime
from typing import Any

import structlog

from taskflow.core.exceptions import NotFoundError, StoreError, ValidationError
from taskflow.domain.access import ensure_can_delete_task, ensure_member
from taskflow.domain.entities import (
    Comment,
    HistoryAction,
    HistoryEntry,
    Notification,
    NotificationKind,
    Project,
    Task,
    TaskPriority,
)
from taskflow.domain.rules import TriggerKind
from taskflow.schemas.tasks import Pagination, TaskOutcome, TaskPage
from taskflow.services.automation_engine import AutomationEngine, FireResult
from taskflow.store.base import NotificationStore, ProjectStore, TaskFilter, TaskStore

logger = structlog.get_logger(__name__)

UNASSIGN = "unassign"

# Distinguishes "leave due_date alone" from "clear due_date"
_UNSET: Any = object()


class TaskService:
    """Service layer for tasks.

    Every mutation is committed before automation fires, and automation
    results ride along in the returned TaskOutcome. A firing can never fail
    the primary operation.
    """

    def __init__(
        self,
        projects: ProjectStore,
        tasks: TaskStore,
        notifications: NotificationStore,
        engine: AutomationEngine | None,
        automation_enabled: bool = True,
        page_size: int = 50,
    ):
        self.projects = projects
        self.tasks = tasks
        self.notifications = notifications
        self.engine = engine
        self.automation_enabled = automation_enabled
        self.page_size = page_size

    async def _load_project(self, project_id: uuid.UUID) -> Project:
        project = await self.projects.get_project(project_id)
        if project is None:
            raise NotFoundError("Project", project_id)
        return project

    async def _load_task(self, task_id: uuid.UUID) -> tuple[Task, Project]:
        task = await self.tasks.get_task(task_id)
        if task is None:
            raise NotFoundError("Task", task_id)
        project = await self._load_project(task.project_id)
        return task, project

    @staticmethod
    def _check_status(project: Project, status: str) -> None:
        if not project.has_status(status):
            raise ValidationError(
                f"Invalid status: {status}. Must be one of the project's defined statuses.",
                errors=project.status_names(),
            )

    @staticmethod
    def _check_assignee(project: Project, assignee_id: str) -> None:
        if not project.is_member(assignee_id):
            raise ValidationError("Assignee must be a member of the project")

    async def _notify_assignment(self, task: Task, assignee_id: str) -> None:
        """Best-effort: the assignment it announces is already committed."""
        try:
            await self.notifications.create_notification(
                Notification(
                    recipient_id=assignee_id,
                    kind=NotificationKind.TASK_ASSIGNMENT,
                    message=f'You\'ve been assigned to the task "{task.title}"',
                    project_id=task.project_id,
                    task_id=task.id,
                )
            )
        except StoreError:
            logger.warning("assignment_notification_failed", task_id=str(task.id), assignee_id=assignee_id, exc_info=True)

    async def _fire(
        self, kind: TriggerKind, task_id: uuid.UUID, context: dict[str, Any] | None = None
    ) -> FireResult | None:
        """Fire one lifecycle event against the task as it is currently stored."""
        if not self.automation_enabled or self.engine is None:
            return None
        try:
            task = await self.tasks.get_task(task_id)
            if task is None:
                return None
            return await self.engine.fire(kind, task, context)
        except Exception:
            logger.error("automation_fire_failed", event_kind=kind.value, task_id=str(task_id), exc_info=True)
            return None

    async def _outcome(self, task: Task, firings: list[FireResult | None]) -> TaskOutcome:
        """Report the task as currently stored, or as committed when it cannot be re-read."""
        try:
            current = await self.tasks.get_task(task.id) or task
        except StoreError:
            logger.warning("task_reread_failed", task_id=str(task.id), exc_info=True)
            current = task
        return TaskOutcome(task=current, automation=[f for f in firings if f is not None])

    async def create_task(
        self,
        user_id: str,
        project_id: uuid.UUID,
        *,
        title: str,
        description: str = "",
        status: str | None = None,
        assignee_id: str | None = None,
        due_date: datetime | None = None,
        priority: TaskPriority = TaskPriority.MEDIUM,
    ) -> TaskOutcome:
        """Create a task and fire task_created.

        Args:
            user_id: Acting user (becomes the creator)
            project_id: Owning project
            title: Task title (non-empty)
            status: Defaults to the project's first status
            assignee_id: Optional assignee, must be a project member

        Returns:
            TaskOutcome with the stored task and the task_created firing

        Raises:
            NotFoundError: project missing
            AuthorizationError: user is not a member
            ValidationError: empty title, unknown status or non-member assignee
        """
        project = await self._load_project(project_id)
        ensure_member(project, user_id)

        cleaned_title = (title or "").strip()
        if not cleaned_title:
            raise ValidationError("Task title is required")
        if status is None:
            status = project.status_names()[0]
        self._check_status(project, status)
        if assignee_id:
            self._check_assignee(project, assignee_id)

        task = await self.tasks.create_task(
            Task(
                project_id=project.id,
                title=cleaned_title,
                description=description,
                status=status,
                assignee_id=assignee_id or None,
                creator_id=user_id,
                due_date=due_date,
                priority=priority,
                history=[HistoryEntry(actor_id=user_id, action=HistoryAction.CREATED, new_value=cleaned_title)],
            )
        )
        if task.assignee_id:
            await self._notify_assignment(task, task.assignee_id)
        logger.info("task_created", task_id=str(task.id), project_id=str(project.id), user_id=user_id)

        fired = await self._fire(TriggerKind.TASK_CREATED, task.id)
        return await self._outcome(task, [fired])

    async def update_task(
        self,
        user_id: str,
        task_id: uuid.UUID,
        *,
        title: str | None = None,
        description: str | None = None,
        status: str | None = None,
        assignee_id: str | None = None,
        due_date: datetime | None = _UNSET,
        priority: TaskPriority | None = None,
    ) -> TaskOutcome:
        """Apply a partial update, then fire the lifecycle events it implies.

        Events, in order: task_status_changed (when the status changed),
        task_assigned (when the assignee changed) and always task_updated.
        Each event sees the task as left by the previous event's rules.

        Raises:
            NotFoundError: task or project missing
            AuthorizationError: user is not a member
            ValidationError: empty title, unknown status or non-member assignee
        """
        task, project = await self._load_task(task_id)
        ensure_member(project, user_id)

        changes: dict[str, Any] = {}
        history: list[HistoryEntry] = []
        old_status = task.status
        old_assignee = task.assignee_id

        if title is not None:
            cleaned_title = title.strip()
            if not cleaned_title:
                raise ValidationError("Task title is required")
            changes["title"] = cleaned_title
        if description is not None:
            changes["description"] = description

        status_changed = False
        if status is not None:
            self._check_status(project, status)
            if status != old_status:
                changes["status"] = status
                history.append(
                    HistoryEntry(
                        actor_id=user_id,
                        action=HistoryAction.STATUS_CHANGED,
                        old_value=old_status,
                        new_value=status,
                    )
                )
                status_changed = True

        assignee_changed = False
        new_assignee = old_assignee
        if assignee_id is not None:
            if assignee_id == UNASSIGN:
                new_assignee = None
            else:
                self._check_assignee(project, assignee_id)
                new_assignee = assignee_id
            if new_assignee != old_assignee:
                changes["assignee_id"] = new_assignee
                history.append(
                    HistoryEntry(
                        actor_id=user_id,
                        action=HistoryAction.ASSIGNED,
                        old_value=old_assignee,
                        new_value=new_assignee,
                    )
                )
                assignee_changed = True

        if due_date is not _UNSET:
            changes["due_date"] = due_date
        if priority is not None:
            changes["priority"] = priority

        history.append(HistoryEntry(actor_id=user_id, action=HistoryAction.UPDATED))
        updated = await self.tasks.apply_task_update(task.id, changes, history)

        if assignee_changed and new_assignee:
            await self._notify_assignment(updated, new_assignee)
        logger.info("task_updated", task_id=str(task.id), fields=sorted(changes), user_id=user_id)

        firings: list[FireResult | None] = []
        if status_changed:
            firings.append(await self._fire(TriggerKind.TASK_STATUS_CHANGED, task.id, {"old_status": old_status}))
        if assignee_changed:
            firings.append(await self._fire(TriggerKind.TASK_ASSIGNED, task.id, {"old_assignee": old_assignee}))
        firings.append(await self._fire(TriggerKind.TASK_UPDATED, task.id))
        return await self._outcome(updated, firings)

    async def get_task(self, user_id: str, task_id: uuid.UUID) -> Task:
        task, project = await self._load_task(task_id)
        ensure_member(project, user_id)
        return task

    async def list_tasks(
        self,
        user_id: str,
        project_id: uuid.UUID,
        *,
        status: str | None = None,
        assignee_id: str | None = None,
        priority: TaskPriority | None = None,
        page: int = 1,
        limit: int | None = None,
    ) -> TaskPage:
        """Newest-first page of a project's tasks, optionally filtered."""
        project = await self._load_project(project_id)
        ensure_member(project, user_id)

        page = max(page, 1)
        limit = limit if limit and limit > 0 else self.page_size
        filters = TaskFilter(status=status, assignee_id=assignee_id, priority=priority)

        total = await self.tasks.count_tasks(project.id, filters)
        items = await self.tasks.list_tasks(project.id, filters, offset=(page - 1) * limit, limit=limit)
        return TaskPage(
            items=items,
            pagination=Pagination(
                page=page,
                limit=limit,
                total_pages=math.ceil(total / limit),
                total_items=total,
            ),
        )

    async def delete_task(self, user_id: str, task_id: uuid.UUID) -> None:
        """Delete a task and every notification that points at it.

        Raises:
            NotFoundError: task or project missing
            AuthorizationError: user is not owner, creator or editor
        """
        task, project = await self._load_task(task_id)
        ensure_can_delete_task(project, task, user_id)
        await self.tasks.delete_task(task.id)
        removed = await self.notifications.delete_notifications_for_task(task.id)
        logger.info("task_deleted", task_id=str(task.id), notifications_removed=removed, user_id=user_id)

    async def add_comment(self, user_id: str, task_id: uuid.UUID, text: str) -> Task:
        task, project = await self._load_task(task_id)
        ensure_member(project, user_id)

        cleaned = (text or "").strip()
        if not cleaned:
            raise ValidationError("Comment text is required")

        updated = await self.tasks.add_comment(
            task.id,
            Comment(user_id=user_id, text=cleaned),
            HistoryEntry(actor_id=user_id, action=HistoryAction.COMMENTED, new_value=cleaned),
        )
        if updated.assignee_id and updated.assignee_id != user_id:
            await self.notifications.create_notification(
                Notification(
                    recipient_id=updated.assignee_id,
                    kind=NotificationKind.TASK_COMMENT,
                    message=f'New comment on task "{updated.title}"',
                    project_id=updated.project_id,
                    task_id=updated.id,
                )
            )
        logger.info("task_commented", task_id=str(task.id), user_id=user_id)
        return updated

    async def fire_due_date_passed(self, task_id: uuid.UUID) -> FireResult | None:
        """Entry point for an external scheduler once a task's due date has passed."""
        task = await self.tasks.get_task(task_id)
        if task is None:
            raise NotFoundError("Task", task_id)
        return await self._fire(TriggerKind.TASK_DUE_DATE_PASSED, task.id)
