"""Access policy for projects, tasks and automation rules.

Pure functions over a Project and the acting user id. The ``ensure_*``
variants raise AuthorizationError so services can reject before persisting.
"""

from taskflow.core.exceptions import AuthorizationError
from taskflow.domain.entities import AutomationRule, MemberRole, Project, RuleRef, Task


def is_owner(project: Project, user_id: str) -> bool:
    return project.owner_id == user_id


def can_read_project(project: Project, user_id: str) -> bool:
    """Any member, whatever the role, may read."""
    return project.is_member(user_id)


def can_create_rule(project: Project, user_id: str) -> bool:
    """Project owner or an editor may create automation rules."""
    return is_owner(project, user_id) or project.role_of(user_id) == MemberRole.EDITOR


def can_manage_rule(project: Project, rule: AutomationRule | RuleRef, user_id: str) -> bool:
    """Update, delete and toggle: a member who owns the project, authored the rule or edits."""
    if not project.is_member(user_id):
        return False
    return (
        is_owner(project, user_id)
        or rule.creator_id == user_id
        or project.role_of(user_id) == MemberRole.EDITOR
    )


def can_manage_project(project: Project, user_id: str) -> bool:
    """Membership and status-set changes are owner-only."""
    return is_owner(project, user_id)


def can_delete_task(project: Project, task: Task, user_id: str) -> bool:
    if not project.is_member(user_id):
        return False
    return (
        is_owner(project, user_id)
        or task.creator_id == user_id
        or project.role_of(user_id) == MemberRole.EDITOR
    )


def ensure_member(project: Project, user_id: str) -> None:
    if not can_read_project(project, user_id):
        raise AuthorizationError("Access denied: You are not a member of this project")


def ensure_can_create_rule(project: Project, user_id: str) -> None:
    ensure_member(project, user_id)
    if not can_create_rule(project, user_id):
        raise AuthorizationError("Access denied: Only project owners and editors can create automations")


def ensure_can_manage_rule(project: Project, rule: AutomationRule | RuleRef, user_id: str) -> None:
    ensure_member(project, user_id)
    if not can_manage_rule(project, rule, user_id):
        raise AuthorizationError(
            "Access denied: Only project owners, automation creators, and editors can modify automations"
        )


def ensure_can_manage_project(project: Project, user_id: str) -> None:
    if not can_manage_project(project, user_id):
        raise AuthorizationError("Access denied: Only the project owner can perform this action")


def ensure_can_delete_task(project: Project, task: Task, user_id: str) -> None:
    ensure_member(project, user_id)
    if not can_delete_task(project, task, user_id):
        raise AuthorizationError("Access denied: You do not have permission to delete this task")
