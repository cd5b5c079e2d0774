"""SQLAlchemy-backed stores (PostgreSQL via asyncpg).

Each store takes the shared async session factory and opens one session per
call. SQLAlchemy failures surface as StoreError so the automation engine can
isolate them per rule.
"""

import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any

import structlog
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from taskflow.core.exceptions import NotFoundError, StoreError
from taskflow.db.models import AutomationRule as RuleRow
from taskflow.db.models import Notification as NotificationRow
from taskflow.db.models import Project as ProjectRow
from taskflow.db.models import ProjectMember as MemberRow
from taskflow.db.models import Task as TaskRow
from taskflow.db.models import TaskComment as CommentRow
from taskflow.db.models import TaskHistory as HistoryRow
from taskflow.db.models import UserBadge as BadgeRow
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
from taskflow.domain.rules import dump_spec
from taskflow.store.base import Stores, TaskFilter

logger = structlog.get_logger(__name__)


class _SqlStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        try:
            async with self.session_factory() as session:
                yield session
        except SQLAlchemyError as exc:
            raise StoreError(f"{type(exc).__name__}: {exc}") from exc


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------


def _rule_from_row(row: RuleRow) -> AutomationRule | None:
    """Build a domain rule, or None when the stored trigger/action no longer parses."""
    try:
        return AutomationRule(
            id=row.id,
            project_id=row.project_id,
            name=row.name,
            trigger=row.trigger,
            action=row.action,
            creator_id=row.creator_id,
            active=row.active,
            execution_count=row.execution_count,
            last_executed_at=row.last_executed_at,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )
    except PydanticValidationError as exc:
        logger.warning("automation_rule_unparseable", rule_id=str(row.id), errors=exc.error_count())
        return None


class SqlRuleStore(_SqlStore):
    async def create_rule(self, rule: AutomationRule) -> AutomationRule:
        async with self._session() as session:
            row = RuleRow(
                id=rule.id,
                project_id=rule.project_id,
                name=rule.name,
                trigger=dump_spec(rule.trigger),
                action=dump_spec(rule.action),
                creator_id=rule.creator_id,
                active=rule.active,
                execution_count=0,
                created_at=rule.created_at,
                updated_at=rule.updated_at,
            )
            session.add(row)
            await session.commit()
            await session.refresh(row)
            return _rule_from_row(row) or rule

    async def list_rules(self, project_id: uuid.UUID, *, active_only: bool = False) -> list[AutomationRule]:
        async with self._session() as session:
            stmt = select(RuleRow).where(RuleRow.project_id == project_id)
            if active_only:
                stmt = stmt.where(RuleRow.active.is_(True))
            result = await session.execute(stmt.order_by(RuleRow.position))
            rules = [_rule_from_row(row) for row in result.scalars().all()]
            return [rule for rule in rules if rule is not None]

    async def get_rule(self, rule_id: uuid.UUID) -> AutomationRule | None:
        async with self._session() as session:
            row = await session.get(RuleRow, rule_id)
            return _rule_from_row(row) if row is not None else None

    async def get_rule_ref(self, rule_id: uuid.UUID) -> RuleRef | None:
        async with self._session() as session:
            result = await session.execute(
                select(RuleRow.id, RuleRow.project_id, RuleRow.creator_id).where(RuleRow.id == rule_id)
            )
            row = result.one_or_none()
            if row is None:
                return None
            return RuleRef(id=row.id, project_id=row.project_id, creator_id=row.creator_id)

    async def update_rule(self, rule_id: uuid.UUID, changes: dict[str, Any]) -> AutomationRule | None:
        async with self._session() as session:
            result = await session.execute(select(RuleRow).where(RuleRow.id == rule_id).with_for_update())
            row = result.scalar_one_or_none()
            if row is None:
                return None
            for key, value in changes.items():
                # JSONB columns are reassigned wholesale, so no flag_modified needed
                setattr(row, key, dump_spec(value) if isinstance(value, BaseModel) else value)
            await session.commit()
            await session.refresh(row)
            return _rule_from_row(row)

    async def delete_rule(self, rule_id: uuid.UUID) -> bool:
        async with self._session() as session:
            result = await session.execute(delete(RuleRow).where(RuleRow.id == rule_id))
            await session.commit()
            return result.rowcount > 0

    async def record_execution(self, rule_id: uuid.UUID, executed_at: datetime) -> None:
        async with self._session() as session:
            # Increment in SQL so concurrent firings never lose a count
            await session.execute(
                update(RuleRow)
                .where(RuleRow.id == rule_id)
                .values(execution_count=RuleRow.execution_count + 1, last_executed_at=executed_at)
            )
            await session.commit()


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------


class SqlProjectStore(_SqlStore):
    async def _build(self, session: AsyncSession, row: ProjectRow) -> Project:
        result = await session.execute(
            select(MemberRow).where(MemberRow.project_id == row.id).order_by(MemberRow.added_at)
        )
        return Project(
            id=row.id,
            title=row.title,
            description=row.description,
            owner_id=row.owner_id,
            members=[
                ProjectMember(user_id=m.user_id, role=MemberRole(m.role), added_at=m.added_at)
                for m in result.scalars().all()
            ],
            statuses=[StatusDef(**status) for status in row.statuses or []],
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    async def _require(self, session: AsyncSession, project_id: uuid.UUID) -> ProjectRow:
        row = await session.get(ProjectRow, project_id)
        if row is None:
            raise NotFoundError("Project", project_id)
        return row

    async def create_project(self, project: Project) -> Project:
        async with self._session() as session:
            row = ProjectRow(
                id=project.id,
                owner_id=project.owner_id,
                title=project.title,
                description=project.description,
                statuses=[s.model_dump() for s in project.statuses],
                created_at=project.created_at,
                updated_at=project.updated_at,
            )
            session.add(row)
            await session.flush()
            for member in project.members:
                session.add(
                    MemberRow(
                        project_id=project.id,
                        user_id=member.user_id,
                        role=member.role.value,
                        added_at=member.added_at,
                    )
                )
            await session.commit()
            return await self._build(session, row)

    async def get_project(self, project_id: uuid.UUID) -> Project | None:
        async with self._session() as session:
            row = await session.get(ProjectRow, project_id)
            return await self._build(session, row) if row is not None else None

    async def list_projects_for_user(self, user_id: str) -> list[Project]:
        async with self._session() as session:
            result = await session.execute(
                select(ProjectRow)
                .join(MemberRow, MemberRow.project_id == ProjectRow.id)
                .where(MemberRow.user_id == user_id)
                .order_by(ProjectRow.created_at.desc())
            )
            return [await self._build(session, row) for row in result.scalars().all()]

    async def add_member(self, project_id: uuid.UUID, member: ProjectMember) -> Project:
        async with self._session() as session:
            row = await self._require(session, project_id)
            await session.execute(
                delete(MemberRow).where(MemberRow.project_id == project_id, MemberRow.user_id == member.user_id)
            )
            session.add(
                MemberRow(
                    project_id=project_id,
                    user_id=member.user_id,
                    role=member.role.value,
                    added_at=member.added_at,
                )
            )
            await session.commit()
            return await self._build(session, row)

    async def remove_member(self, project_id: uuid.UUID, user_id: str) -> Project:
        async with self._session() as session:
            row = await self._require(session, project_id)
            await session.execute(
                delete(MemberRow).where(MemberRow.project_id == project_id, MemberRow.user_id == user_id)
            )
            await session.commit()
            return await self._build(session, row)

    async def update_statuses(self, project_id: uuid.UUID, statuses: list[StatusDef]) -> Project:
        async with self._session() as session:
            row = await self._require(session, project_id)
            row.statuses = [s.model_dump() for s in statuses]
            await session.commit()
            await session.refresh(row)
            return await self._build(session, row)

    async def update_project(self, project_id: uuid.UUID, changes: dict[str, Any]) -> Project:
        async with self._session() as session:
            row = await self._require(session, project_id)
            for key, value in changes.items():
                setattr(row, key, value)
            await session.commit()
            await session.refresh(row)
            return await self._build(session, row)

    async def update_member_role(self, project_id: uuid.UUID, user_id: str, role: MemberRole) -> Project:
        async with self._session() as session:
            row = await self._require(session, project_id)
            await session.execute(
                update(MemberRow)
                .where(MemberRow.project_id == project_id, MemberRow.user_id == user_id)
                .values(role=role.value)
            )
            await session.commit()
            return await self._build(session, row)

    async def delete_project(self, project_id: uuid.UUID) -> bool:
        async with self._session() as session:
            # Notifications carry no foreign key, so they are removed explicitly
            task_ids = select(TaskRow.id).where(TaskRow.project_id == project_id)
            await session.execute(
                delete(NotificationRow).where(
                    or_(NotificationRow.project_id == project_id, NotificationRow.task_id.in_(task_ids))
                )
            )
            # Members, tasks (with history and comments) and rules go via ON DELETE CASCADE
            result = await session.execute(delete(ProjectRow).where(ProjectRow.id == project_id))
            await session.commit()
            return result.rowcount > 0


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------


def _apply_filters(stmt, project_id: uuid.UUID, filters: TaskFilter):
    stmt = stmt.where(TaskRow.project_id == project_id)
    if filters.status is not None:
        stmt = stmt.where(TaskRow.status == filters.status)
    if filters.assignee_id is not None:
        stmt = stmt.where(TaskRow.assignee_id == filters.assignee_id)
    if filters.priority is not None:
        stmt = stmt.where(TaskRow.priority == filters.priority.value)
    return stmt


def _history_row(task_id: uuid.UUID, entry: HistoryEntry) -> HistoryRow:
    return HistoryRow(
        task_id=task_id,
        actor_id=entry.actor_id,
        action=entry.action.value,
        old_value=entry.old_value,
        new_value=entry.new_value,
        rule_id=entry.rule_id,
        timestamp=entry.timestamp,
    )


class SqlTaskStore(_SqlStore):
    async def _build(self, session: AsyncSession, row: TaskRow) -> Task:
        history = await session.execute(
            select(HistoryRow).where(HistoryRow.task_id == row.id).order_by(HistoryRow.seq)
        )
        comments = await session.execute(
            select(CommentRow).where(CommentRow.task_id == row.id).order_by(CommentRow.created_at)
        )
        return Task(
            id=row.id,
            project_id=row.project_id,
            title=row.title,
            description=row.description,
            status=row.status,
            assignee_id=row.assignee_id,
            creator_id=row.creator_id,
            due_date=row.due_date,
            priority=TaskPriority(row.priority),
            comments=[
                Comment(id=c.id, user_id=c.user_id, text=c.text, created_at=c.created_at)
                for c in comments.scalars().all()
            ],
            history=[
                HistoryEntry(
                    actor_id=h.actor_id,
                    action=h.action,
                    old_value=h.old_value,
                    new_value=h.new_value,
                    timestamp=h.timestamp,
                    rule_id=h.rule_id,
                )
                for h in history.scalars().all()
            ],
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    async def create_task(self, task: Task) -> Task:
        async with self._session() as session:
            row = TaskRow(
                id=task.id,
                project_id=task.project_id,
                title=task.title,
                description=task.description,
                status=task.status,
                assignee_id=task.assignee_id,
                creator_id=task.creator_id,
                due_date=task.due_date,
                priority=task.priority.value,
                created_at=task.created_at,
                updated_at=task.updated_at,
            )
            session.add(row)
            await session.flush()
            session.add_all(_history_row(task.id, entry) for entry in task.history)
            await session.commit()
            return await self._build(session, row)

    async def get_task(self, task_id: uuid.UUID) -> Task | None:
        async with self._session() as session:
            row = await session.get(TaskRow, task_id)
            return await self._build(session, row) if row is not None else None

    async def list_tasks(
        self, project_id: uuid.UUID, filters: TaskFilter, *, offset: int = 0, limit: int = 50
    ) -> list[Task]:
        async with self._session() as session:
            stmt = _apply_filters(select(TaskRow), project_id, filters)
            result = await session.execute(
                stmt.order_by(TaskRow.created_at.desc(), TaskRow.id).offset(offset).limit(limit)
            )
            return [await self._build(session, row) for row in result.scalars().all()]

    async def count_tasks(self, project_id: uuid.UUID, filters: TaskFilter) -> int:
        async with self._session() as session:
            stmt = _apply_filters(select(func.count()).select_from(TaskRow), project_id, filters)
            return (await session.execute(stmt)).scalar_one()

    async def count_tasks_outside_statuses(self, project_id: uuid.UUID, statuses: list[str]) -> int:
        async with self._session() as session:
            stmt = select(func.count()).select_from(TaskRow).where(
                TaskRow.project_id == project_id, TaskRow.status.not_in(statuses)
            )
            return (await session.execute(stmt)).scalar_one()

    async def apply_task_update(
        self, task_id: uuid.UUID, changes: dict[str, Any], history: list[HistoryEntry]
    ) -> Task:
        async with self._session() as session:
            # Row lock serializes concurrent mutations of the same task
            result = await session.execute(select(TaskRow).where(TaskRow.id == task_id).with_for_update())
            row = result.scalar_one_or_none()
            if row is None:
                raise NotFoundError("Task", task_id)
            for key, value in changes.items():
                setattr(row, key, value.value if isinstance(value, TaskPriority) else value)
            session.add_all(_history_row(task_id, entry) for entry in history)
            await session.commit()
            await session.refresh(row)
            return await self._build(session, row)

    async def add_comment(self, task_id: uuid.UUID, comment: Comment, entry: HistoryEntry) -> Task:
        async with self._session() as session:
            result = await session.execute(select(TaskRow).where(TaskRow.id == task_id).with_for_update())
            row = result.scalar_one_or_none()
            if row is None:
                raise NotFoundError("Task", task_id)
            session.add(
                CommentRow(
                    id=comment.id,
                    task_id=task_id,
                    user_id=comment.user_id,
                    text=comment.text,
                    created_at=comment.created_at,
                )
            )
            session.add(_history_row(task_id, entry))
            row.updated_at = entry.timestamp
            await session.commit()
            await session.refresh(row)
            return await self._build(session, row)

    async def delete_task(self, task_id: uuid.UUID) -> bool:
        async with self._session() as session:
            # History and comments go with the task via ON DELETE CASCADE
            result = await session.execute(delete(TaskRow).where(TaskRow.id == task_id))
            await session.commit()
            return result.rowcount > 0


# ---------------------------------------------------------------------------
# Badges
# ---------------------------------------------------------------------------


def _badge_from_row(row: BadgeRow) -> Badge:
    return Badge(
        id=row.id,
        user_id=row.user_id,
        name=row.name,
        description=row.description,
        awarded_at=row.awarded_at,
        rule_id=row.rule_id,
    )


class SqlBadgeStore(_SqlStore):
    async def award_badge(self, badge: Badge) -> Badge:
        async with self._session() as session:
            row = BadgeRow(
                id=badge.id,
                user_id=badge.user_id,
                name=badge.name,
                description=badge.description,
                rule_id=badge.rule_id,
                awarded_at=badge.awarded_at,
            )
            session.add(row)
            await session.commit()
            return _badge_from_row(row)

    async def list_badges(self, user_id: str) -> list[Badge]:
        async with self._session() as session:
            result = await session.execute(
                select(BadgeRow).where(BadgeRow.user_id == user_id).order_by(BadgeRow.awarded_at)
            )
            return [_badge_from_row(row) for row in result.scalars().all()]


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------


def _notification_from_row(row: NotificationRow) -> Notification:
    return Notification(
        id=row.id,
        recipient_id=row.recipient_id,
        kind=row.kind,
        message=row.message,
        project_id=row.project_id,
        task_id=row.task_id,
        read=row.read,
        created_at=row.created_at,
    )


def _recipient_filter(stmt, recipient_id: str, read: bool | None):
    stmt = stmt.where(NotificationRow.recipient_id == recipient_id)
    if read is not None:
        stmt = stmt.where(NotificationRow.read.is_(read))
    return stmt


class SqlNotificationStore(_SqlStore):
    async def create_notification(self, notification: Notification) -> Notification:
        async with self._session() as session:
            row = NotificationRow(
                id=notification.id,
                recipient_id=notification.recipient_id,
                kind=notification.kind.value,
                message=notification.message,
                project_id=notification.project_id,
                task_id=notification.task_id,
                read=notification.read,
                created_at=notification.created_at,
            )
            session.add(row)
            await session.commit()
            await session.refresh(row)
            return _notification_from_row(row)

    async def list_notifications(
        self, recipient_id: str, *, read: bool | None = None, offset: int = 0, limit: int = 20
    ) -> list[Notification]:
        async with self._session() as session:
            stmt = _recipient_filter(select(NotificationRow), recipient_id, read)
            result = await session.execute(stmt.order_by(NotificationRow.seq.desc()).offset(offset).limit(limit))
            return [_notification_from_row(row) for row in result.scalars().all()]

    async def count_notifications(self, recipient_id: str, *, read: bool | None = None) -> int:
        async with self._session() as session:
            stmt = _recipient_filter(select(func.count()).select_from(NotificationRow), recipient_id, read)
            return (await session.execute(stmt)).scalar_one()

    async def get_notification(self, notification_id: uuid.UUID) -> Notification | None:
        async with self._session() as session:
            row = await session.get(NotificationRow, notification_id)
            return _notification_from_row(row) if row is not None else None

    async def mark_read(self, notification_id: uuid.UUID) -> Notification | None:
        async with self._session() as session:
            row = await session.get(NotificationRow, notification_id)
            if row is None:
                return None
            row.read = True
            await session.commit()
            return _notification_from_row(row)

    async def mark_all_read(self, recipient_id: str) -> int:
        async with self._session() as session:
            result = await session.execute(
                update(NotificationRow)
                .where(NotificationRow.recipient_id == recipient_id, NotificationRow.read.is_(False))
                .values(read=True)
            )
            await session.commit()
            return result.rowcount

    async def delete_notification(self, notification_id: uuid.UUID) -> bool:
        async with self._session() as session:
            result = await session.execute(delete(NotificationRow).where(NotificationRow.id == notification_id))
            await session.commit()
            return result.rowcount > 0

    async def delete_notifications_for_task(self, task_id: uuid.UUID) -> int:
        async with self._session() as session:
            result = await session.execute(delete(NotificationRow).where(NotificationRow.task_id == task_id))
            await session.commit()
            return result.rowcount


def build_sql_stores(session_factory: async_sessionmaker[AsyncSession]) -> Stores:
    return Stores(
        rules=SqlRuleStore(session_factory),
        projects=SqlProjectStore(session_factory),
        tasks=SqlTaskStore(session_factory),
        badges=SqlBadgeStore(session_factory),
        notifications=SqlNotificationStore(session_factory),
    )
