"""ProjectService: project creation, membership and status-set management."""

import uuid

import structlog

from taskflow.core.exceptions import NotFoundError, ValidationError
from taskflow.domain.access import ensure_can_manage_project, ensure_member
from taskflow.domain.entities import (
    MemberRole,
    Notification,
    NotificationKind,
    Project,
    ProjectMember,
    StatusDef,
)
from taskflow.store.base import NotificationStore, ProjectStore, TaskStore

logger = structlog.get_logger(__name__)


class ProjectService:
    def __init__(self, projects: ProjectStore, tasks: TaskStore, notifications: NotificationStore):
        self.projects = projects
        self.tasks = tasks
        self.notifications = notifications

    async def _load(self, project_id: uuid.UUID) -> Project:
        project = await self.projects.get_project(project_id)
        if project is None:
            raise NotFoundError("Project", project_id)
        return project

    async def create_project(self, user_id: str, title: str, description: str = "") -> Project:
        """Create a project owned by ``user_id`` with the default status set.

        The owner is recorded as a member with role owner.
        """
        cleaned = (title or "").strip()
        if not cleaned:
            raise ValidationError("Project title is required")

        project = await self.projects.create_project(
            Project(
                title=cleaned,
                description=description,
                owner_id=user_id,
                members=[ProjectMember(user_id=user_id, role=MemberRole.OWNER)],
            )
        )
        logger.info("project_created", project_id=str(project.id), user_id=user_id)
        return project

    async def get_project(self, user_id: str, project_id: uuid.UUID) -> Project:
        project = await self._load(project_id)
        ensure_member(project, user_id)
        return project

    async def list_projects(self, user_id: str) -> list[Project]:
        return await self.projects.list_projects_for_user(user_id)

    async def add_member(
        self,
        user_id: str,
        project_id: uuid.UUID,
        member_id: str,
        role: MemberRole = MemberRole.EDITOR,
    ) -> Project:
        """Add a new member and send them a project invitation.

        Existing members keep their role here; use update_member_role to change it.

        Raises:
            NotFoundError: project missing
            AuthorizationError: acting user is not the owner
            ValidationError: empty member id, role owner, or member already present
        """
        project = await self._load(project_id)
        ensure_can_manage_project(project, user_id)

        member_id = (member_id or "").strip()
        if not member_id:
            raise ValidationError("Member user id is required")
        if role == MemberRole.OWNER:
            raise ValidationError("A project has exactly one owner")
        if project.is_member(member_id):
            raise ValidationError("User is already a member of this project")

        updated = await self.projects.add_member(project.id, ProjectMember(user_id=member_id, role=role))
        await self.notifications.create_notification(
            Notification(
                recipient_id=member_id,
                kind=NotificationKind.PROJECT_INVITATION,
                message=f'You have been added to the project "{project.title}"',
                project_id=project.id,
            )
        )
        logger.info("project_member_added", project_id=str(project.id), member_id=member_id, role=role.value)
        return updated

    async def remove_member(self, user_id: str, project_id: uuid.UUID, member_id: str) -> Project:
        project = await self._load(project_id)
        ensure_can_manage_project(project, user_id)
        if member_id == project.owner_id:
            raise ValidationError("Cannot remove the project owner")
        if not project.is_member(member_id):
            raise NotFoundError("Member", member_id)

        updated = await self.projects.remove_member(project.id, member_id)
        logger.info("project_member_removed", project_id=str(project.id), member_id=member_id)
        return updated

    async def update_statuses(self, user_id: str, project_id: uuid.UUID, names: list[str]) -> Project:
        """Replace the project's ordered status set.

        Existing automation rules are not revalidated; a rule that now names
        a missing status fails at execution time with invalid_status.

        Raises:
            NotFoundError: project missing
            AuthorizationError: acting user is not the owner
            ValidationError: empty list, blank or duplicate names, or tasks still
                using a status that would be removed
        """
        project = await self._load(project_id)
        ensure_can_manage_project(project, user_id)

        cleaned = [(name or "").strip() for name in names]
        if not cleaned:
            raise ValidationError("A project needs at least one status")
        if any(not name for name in cleaned):
            raise ValidationError("Status names cannot be empty")
        duplicates = sorted({name for name in cleaned if cleaned.count(name) > 1})
        if duplicates:
            raise ValidationError("Status names must be unique", errors=duplicates)

        stranded = await self.tasks.count_tasks_outside_statuses(project.id, cleaned)
        if stranded:
            raise ValidationError(
                f"Cannot remove statuses that are still in use by tasks. {stranded} tasks would be affected."
            )

        statuses = [StatusDef(name=name, order=i) for i, name in enumerate(cleaned, 1)]
        updated = await self.projects.update_statuses(project.id, statuses)
        logger.info("project_statuses_updated", project_id=str(project.id), statuses=cleaned)
        return updated

    async def update_project(
        self,
        user_id: str,
        project_id: uuid.UUID,
        *,
        title: str | None = None,
        description: str | None = None,
    ) -> Project:
        """Change the project's title and/or description (owner only)."""
        project = await self._load(project_id)
        ensure_can_manage_project(project, user_id)

        changes: dict[str, str] = {}
        if title is not None:
            cleaned = title.strip()
            if not cleaned:
                raise ValidationError("Project title is required")
            changes["title"] = cleaned
        if description is not None:
            changes["description"] = description
        if not changes:
            return project

        updated = await self.projects.update_project(project.id, changes)
        logger.info("project_updated", project_id=str(project.id), fields=sorted(changes), user_id=user_id)
        return updated

    async def update_member_role(
        self, user_id: str, project_id: uuid.UUID, member_id: str, role: MemberRole
    ) -> Project:
        """Switch a member between editor and viewer.

        Raises:
            NotFoundError: project missing, or member_id is not a member
            AuthorizationError: acting user is not the owner
            ValidationError: role owner requested, or member_id is the owner
        """
        project = await self._load(project_id)
        ensure_can_manage_project(project, user_id)
        if role == MemberRole.OWNER:
            raise ValidationError("Valid role is required (editor or viewer)")
        if member_id == project.owner_id:
            raise ValidationError("Cannot change the role of the project owner")
        if not project.is_member(member_id):
            raise NotFoundError("Member", member_id)

        updated = await self.projects.update_member_role(project.id, member_id, role)
        logger.info("project_member_role_updated", project_id=str(project.id), member_id=member_id, role=role.value)
        return updated

    async def delete_project(self, user_id: str, project_id: uuid.UUID) -> None:
        """Delete a project together with its tasks, rules and notifications (owner only)."""
        project = await self._load(project_id)
        ensure_can_manage_project(project, user_id)
        await self.projects.delete_project(project.id)
        logger.info("project_deleted", project_id=str(project.id), user_id=user_id)
