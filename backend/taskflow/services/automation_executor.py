"""ActionExecutor: performs the side effect of one matched automation rule."""

import uuid
from dataclasses import dataclass, field
from typing import Any

import structlog

from taskflow.core.exceptions import ActionError, ActionFailure, NotFoundError, StoreError
from taskflow.domain.entities import (
    Badge,
    HistoryAction,
    HistoryEntry,
    Notification,
    NotificationKind,
    Project,
    Task,
)
from taskflow.domain.rules import (
    Action,
    ActionKind,
    AssignBadgeAction,
    AssignUserAction,
    ChangeStatusAction,
    SendNotificationAction,
)
from taskflow.store.base import BadgeStore, NotificationStore, ProjectStore, TaskStore

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ActingContext:
    """Who an automated mutation is attributed to in task history."""

    rule_id: uuid.UUID | None = None
    actor_id: str | None = None


@dataclass
class EffectSummary:
    """Outcome of a successful action.

    ``task`` is the task as it stands after the action; ``changed`` is False
    when the action was a no-op (task already in the target state).
    """

    kind: ActionKind
    task: Task
    changed: bool = True
    detail: dict[str, Any] = field(default_factory=dict)


class ActionExecutor:
    """Executes typed actions against the task, badge and notification stores.

    Every failure surfaces as ActionError so the engine can isolate it per rule.
    """

    def __init__(
        self,
        projects: ProjectStore,
        tasks: TaskStore,
        badges: BadgeStore,
        notifications: NotificationStore,
    ):
        self.projects = projects
        self.tasks = tasks
        self.badges = badges
        self.notifications = notifications

    async def execute(self, action: Action, task: Task, context: ActingContext) -> EffectSummary:
        """Perform ``action`` for ``task``.

        Raises:
            ActionError: invalid target status, non-member assignee, missing
                recipient, missing task/project, or a store failure
        """
        try:
            if isinstance(action, ChangeStatusAction):
                return await self._change_status(action, task, context)
            if isinstance(action, AssignUserAction):
                return await self._assign_user(action, task, context)
            if isinstance(action, AssignBadgeAction):
                return await self._assign_badge(action, task, context)
            if isinstance(action, SendNotificationAction):
                return await self._send_notification(action, task)
        except NotFoundError as exc:
            raise ActionError(ActionFailure.TASK_MISSING, str(exc)) from exc
        except StoreError as exc:
            raise ActionError(ActionFailure.PERSISTENCE_FAILURE, str(exc)) from exc

        raise ActionError(ActionFailure.UNEXPECTED_ERROR, f"Unsupported action type: {getattr(action, 'type', None)}")

    async def _load_project(self, task: Task) -> Project:
        project = await self.projects.get_project(task.project_id)
        if project is None:
            raise ActionError(ActionFailure.PROJECT_MISSING, f"Project {task.project_id} not found")
        return project

    async def _change_status(self, action: ChangeStatusAction, task: Task, context: ActingContext) -> EffectSummary:
        project = await self._load_project(task)
        target = action.params.status
        if not project.has_status(target):
            raise ActionError(ActionFailure.INVALID_STATUS, f"'{target}' is not a status of project {project.id}")

        if task.status == target:
            return EffectSummary(kind=ActionKind.CHANGE_STATUS, task=task, changed=False, detail={"status": target})

        entry = HistoryEntry(
            actor_id=context.actor_id,
            action=HistoryAction.STATUS_CHANGED,
            old_value=task.status,
            new_value=target,
            rule_id=context.rule_id,
        )
        updated = await self.tasks.apply_task_update(task.id, {"status": target}, [entry])
        return EffectSummary(
            kind=ActionKind.CHANGE_STATUS,
            task=updated,
            detail={"old_status": task.status, "status": target},
        )

    async def _assign_user(self, action: AssignUserAction, task: Task, context: ActingContext) -> EffectSummary:
        project = await self._load_project(task)
        user_id = action.params.user_id
        if not project.is_member(user_id):
            raise ActionError(ActionFailure.NOT_A_MEMBER, f"User {user_id} is not a member of project {project.id}")

        if task.assignee_id == user_id:
            return EffectSummary(kind=ActionKind.ASSIGN_USER, task=task, changed=False, detail={"assignee_id": user_id})

        entry = HistoryEntry(
            actor_id=context.actor_id,
            action=HistoryAction.ASSIGNED,
            old_value=task.assignee_id,
            new_value=user_id,
            rule_id=context.rule_id,
        )
        updated = await self.tasks.apply_task_update(task.id, {"assignee_id": user_id}, [entry])

        # The assignment is already committed; a lost notice must not report it as failed
        notified = True
        try:
            await self.notifications.create_notification(
                Notification(
                    recipient_id=user_id,
                    kind=NotificationKind.TASK_ASSIGNMENT,
                    message=f'You\'ve been assigned to the task "{task.title}"',
                    project_id=task.project_id,
                    task_id=task.id,
                )
            )
        except StoreError as exc:
            notified = False
            logger.warning(
                "assignment_notification_failed",
                task_id=str(task.id),
                assignee_id=user_id,
                rule_id=str(context.rule_id) if context.rule_id else None,
                error=str(exc),
            )
        return EffectSummary(
            kind=ActionKind.ASSIGN_USER,
            task=updated,
            detail={"old_assignee_id": task.assignee_id, "assignee_id": user_id, "notified": notified},
        )

    async def _assign_badge(self, action: AssignBadgeAction, task: Task, context: ActingContext) -> EffectSummary:
        params = action.params
        if params.user_id:
            recipient = params.user_id
        elif params.recipient == "task_assignee":
            recipient = task.assignee_id
        else:
            recipient = task.creator_id
        if not recipient:
            raise ActionError(ActionFailure.NO_RECIPIENT, "No badge recipient could be resolved")

        # Not idempotent: every firing awards another badge
        badge = await self.badges.award_badge(
            Badge(
                user_id=recipient,
                name=params.badge_name,
                description=params.description,
                rule_id=context.rule_id,
            )
        )
        return EffectSummary(
            kind=ActionKind.ASSIGN_BADGE,
            task=task,
            detail={"badge_id": str(badge.id), "badge_name": badge.name, "user_id": recipient},
        )

    async def _send_notification(self, action: SendNotificationAction, task: Task) -> EffectSummary:
        params = action.params
        if params.user_id:
            recipient = params.user_id
        elif params.recipient == "task_assignee":
            recipient = task.assignee_id
        elif params.recipient == "task_creator":
            recipient = task.creator_id
        else:
            recipient = task.assignee_id or task.creator_id
        if not recipient:
            raise ActionError(ActionFailure.NO_RECIPIENT, "Task has no assignee to notify")

        notification = await self.notifications.create_notification(
            Notification(
                recipient_id=recipient,
                kind=NotificationKind.AUTOMATION_TRIGGERED,
                message=params.message,
                project_id=task.project_id,
                task_id=task.id,
            )
        )
        return EffectSummary(
            kind=ActionKind.SEND_NOTIFICATION,
            task=task,
            detail={"notification_id": str(notification.id), "recipient_id": recipient},
        )
