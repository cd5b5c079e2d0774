"""Re-export all models so Base.metadata sees them."""

from taskflow.db.models.automation_rule import AutomationRule
from taskflow.db.models.notification import Notification
from taskflow.db.models.project import Project, ProjectMember
from taskflow.db.models.task import Task, TaskComment, TaskHistory
from taskflow.db.models.user_badge import UserBadge

__all__ = [
    "AutomationRule",
    "Notification",
    "Project",
    "ProjectMember",
    "Task",
    "TaskComment",
    "TaskHistory",
    "UserBadge",
]
