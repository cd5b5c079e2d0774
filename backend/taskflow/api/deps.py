"""FastAPI dependency providers for stores and services.

Override ``get_stores`` in tests via app.dependency_overrides to run the API
against an InMemoryStore.
"""

from fastapi import Depends

from taskflow.core.config import get_settings
from taskflow.db.base import get_session_factory
from taskflow.services.automation_engine import AutomationEngine
from taskflow.services.automation_executor import ActionExecutor
from taskflow.services.automation_service import AutomationService
from taskflow.services.notification_service import NotificationService
from taskflow.services.project_service import ProjectService
from taskflow.services.task_service import TaskService
from taskflow.store.base import Stores
from taskflow.store.sql import build_sql_stores


def get_stores() -> Stores:
    return build_sql_stores(get_session_factory())


def build_automation_engine(stores: Stores) -> AutomationEngine:
    executor = ActionExecutor(stores.projects, stores.tasks, stores.badges, stores.notifications)
    return AutomationEngine(stores.rules, executor)


def get_task_service(stores: Stores = Depends(get_stores)) -> TaskService:
    settings = get_settings()
    return TaskService(
        stores.projects,
        stores.tasks,
        stores.notifications,
        build_automation_engine(stores),
        automation_enabled=settings.automation_enabled,
        page_size=settings.task_page_size,
    )


def get_project_service(stores: Stores = Depends(get_stores)) -> ProjectService:
    return ProjectService(stores.projects, stores.tasks, stores.notifications)


def get_automation_service(stores: Stores = Depends(get_stores)) -> AutomationService:
    return AutomationService(stores.projects, stores.rules)


def get_notification_service(stores: Stores = Depends(get_stores)) -> NotificationService:
    return NotificationService(stores.notifications, page_size=get_settings().notification_page_size)
