"""Shared test fixtures for all test groups.

Everything runs against InMemoryStore; only tests/store/test_sql_stores.py
touches PostgreSQL.
"""

import pytest

from taskflow.domain.entities import AutomationRule, MemberRole, Project, ProjectMember, Task
from taskflow.domain.rules import validate_rule_spec
from taskflow.services.automation_engine import AutomationEngine
from taskflow.services.automation_executor import ActionExecutor
from taskflow.services.automation_service import AutomationService
from taskflow.services.notification_service import NotificationService
from taskflow.services.project_service import ProjectService
from taskflow.services.task_service import TaskService
from taskflow.store.memory import InMemoryStore

OWNER = "user-owner"
EDITOR = "user-editor"
VIEWER = "user-viewer"
OUTSIDER = "user-outsider"


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def project() -> Project:
    """Project with default statuses and one member per role."""
    return Project(
        title="Website relaunch",
        owner_id=OWNER,
        members=[
            ProjectMember(user_id=OWNER, role=MemberRole.OWNER),
            ProjectMember(user_id=EDITOR, role=MemberRole.EDITOR),
            ProjectMember(user_id=VIEWER, role=MemberRole.VIEWER),
        ],
    )


@pytest.fixture
async def stored_project(store, project) -> Project:
    return await store.create_project(project)


@pytest.fixture
async def stored_task(store, stored_project) -> Task:
    return await store.create_task(
        Task(project_id=stored_project.id, title="Write copy", status="To Do", creator_id=EDITOR)
    )


@pytest.fixture
def executor(store) -> ActionExecutor:
    return ActionExecutor(store, store, store, store)


@pytest.fixture
def engine(store, executor) -> AutomationEngine:
    return AutomationEngine(store, executor)


@pytest.fixture
def task_service(store, engine) -> TaskService:
    return TaskService(store, store, store, engine)


@pytest.fixture
def automation_service(store) -> AutomationService:
    return AutomationService(store, store)


@pytest.fixture
def project_service(store) -> ProjectService:
    return ProjectService(store, store, store)


@pytest.fixture
def notification_service(store) -> NotificationService:
    return NotificationService(store)


@pytest.fixture
def add_rule(store, stored_project):
    """Persist a validated rule directly, bypassing access checks."""

    async def _add(trigger: dict, action: dict, *, name: str = "rule", active: bool = True, creator_id: str = OWNER):
        spec = validate_rule_spec(trigger, action, stored_project)
        return await store.create_rule(
            AutomationRule(
                project_id=stored_project.id,
                name=name,
                trigger=spec.trigger,
                action=spec.action,
                creator_id=creator_id,
                active=active,
            )
        )

    return _add
