"""Tests for ActionExecutor against InMemoryStore."""

import uuid

import pytest

from taskflow.core.exceptions import ActionError, ActionFailure, StoreError
from taskflow.domain.entities import HistoryAction, NotificationKind, Task
from taskflow.domain.rules import parse_action
from taskflow.services.automation_executor import ActingContext, ActionExecutor

pytestmark = pytest.mark.unit

RULE_ID = uuid.uuid4()
CONTEXT = ActingContext(rule_id=RULE_ID, actor_id="user-owner")


async def test_change_status_updates_task_and_history(store, executor, stored_task):
    effect = await executor.execute(
        parse_action({"type": "change_status", "params": {"status": "Done"}}), stored_task, CONTEXT
    )

    assert effect.changed
    assert effect.task.status == "Done"
    stored = await store.get_task(stored_task.id)
    assert stored.status == "Done"
    entry = stored.history[-1]
    assert entry.action == HistoryAction.STATUS_CHANGED
    assert (entry.old_value, entry.new_value) == ("To Do", "Done")
    assert entry.rule_id == RULE_ID
    assert entry.actor_id == "user-owner"


async def test_change_status_to_current_status_is_noop(store, executor, stored_task):
    effect = await executor.execute(
        parse_action({"type": "change_status", "params": {"status": "To Do"}}), stored_task, CONTEXT
    )

    assert not effect.changed
    stored = await store.get_task(stored_task.id)
    assert len(stored.history) == len(stored_task.history)


async def test_change_status_to_unknown_status_fails(store, executor, stored_task):
    with pytest.raises(ActionError) as exc_info:
        await executor.execute(
            parse_action({"type": "change_status", "params": {"status": "Archived"}}), stored_task, CONTEXT
        )
    assert exc_info.value.reason == ActionFailure.INVALID_STATUS
    assert (await store.get_task(stored_task.id)).status == "To Do"


async def test_assign_user_sets_assignee_and_notifies(store, executor, stored_task):
    effect = await executor.execute(
        parse_action({"type": "assign_user", "params": {"userId": "user-viewer"}}), stored_task, CONTEXT
    )

    assert effect.task.assignee_id == "user-viewer"
    inbox = await store.list_notifications("user-viewer")
    assert [n.kind for n in inbox] == [NotificationKind.TASK_ASSIGNMENT]
    assert (await store.get_task(stored_task.id)).history[-1].action == HistoryAction.ASSIGNED


async def test_assign_user_rejects_non_member(store, executor, stored_task):
    with pytest.raises(ActionError) as exc_info:
        await executor.execute(
            parse_action({"type": "assign_user", "params": {"userId": "user-outsider"}}), stored_task, CONTEXT
        )
    assert exc_info.value.reason == ActionFailure.NOT_A_MEMBER
    assert (await store.get_task(stored_task.id)).assignee_id is None


async def test_assign_user_already_assigned_is_noop(store, executor, stored_task):
    task = await store.apply_task_update(stored_task.id, {"assignee_id": "user-viewer"}, [])
    effect = await executor.execute(
        parse_action({"type": "assign_user", "params": {"userId": "user-viewer"}}), task, CONTEXT
    )
    assert not effect.changed
    assert await store.list_notifications("user-viewer") == []


async def test_assign_badge_defaults_to_creator(store, executor, stored_task):
    await executor.execute(
        parse_action({"type": "assign_badge", "params": {"badgeName": "Mover"}}), stored_task, CONTEXT
    )

    badges = await store.list_badges(stored_task.creator_id)
    assert [b.name for b in badges] == ["Mover"]
    assert badges[0].rule_id == RULE_ID


async def test_assign_badge_to_assignee_requires_assignee(executor, stored_task):
    with pytest.raises(ActionError) as exc_info:
        await executor.execute(
            parse_action({"type": "assign_badge", "params": {"badgeName": "Helper", "recipient": "task_assignee"}}),
            stored_task,
            CONTEXT,
        )
    assert exc_info.value.reason == ActionFailure.NO_RECIPIENT


async def test_assign_badge_is_not_idempotent(store, executor, stored_task):
    action = parse_action({"type": "assign_badge", "params": {"badgeName": "Mover"}})
    await executor.execute(action, stored_task, CONTEXT)
    await executor.execute(action, stored_task, CONTEXT)
    assert len(await store.list_badges(stored_task.creator_id)) == 2


async def test_send_notification_falls_back_to_creator(store, executor, stored_task):
    await executor.execute(
        parse_action({"type": "send_notification", "params": {"message": "Ping"}}), stored_task, CONTEXT
    )
    inbox = await store.list_notifications(stored_task.creator_id)
    assert len(inbox) == 1
    assert inbox[0].kind == NotificationKind.AUTOMATION_TRIGGERED
    assert inbox[0].message == "Ping"
    assert inbox[0].task_id == stored_task.id


async def test_send_notification_explicit_user(store, executor, stored_task):
    await executor.execute(
        parse_action({"type": "send_notification", "params": {"message": "Ping", "userId": "user-viewer"}}),
        stored_task,
        CONTEXT,
    )
    assert len(await store.list_notifications("user-viewer")) == 1


async def test_missing_task_maps_to_task_missing(executor, stored_project):
    ghost = Task(project_id=stored_project.id, title="ghost", status="To Do", creator_id="user-owner")
    with pytest.raises(ActionError) as exc_info:
        await executor.execute(parse_action({"type": "change_status", "params": {"status": "Done"}}), ghost, CONTEXT)
    assert exc_info.value.reason == ActionFailure.TASK_MISSING


async def test_missing_project_maps_to_project_missing(executor):
    orphan = Task(project_id=uuid.uuid4(), title="orphan", status="To Do", creator_id="user-owner")
    with pytest.raises(ActionError) as exc_info:
        await executor.execute(parse_action({"type": "change_status", "params": {"status": "Done"}}), orphan, CONTEXT)
    assert exc_info.value.reason == ActionFailure.PROJECT_MISSING


class _BrokenBadgeStore:
    async def award_badge(self, badge):
        raise StoreError("disk full")

    async def list_badges(self, user_id):
        return []


async def test_store_error_maps_to_persistence_failure(store, stored_task):
    executor = ActionExecutor(store, store, _BrokenBadgeStore(), store)
    with pytest.raises(ActionError) as exc_info:
        await executor.execute(parse_action({"type": "assign_badge", "params": {"badgeName": "X"}}), stored_task, CONTEXT)
    assert exc_info.value.reason == ActionFailure.PERSISTENCE_FAILURE


async def test_assign_badge_without_creator_reports_generic_recipient_failure(executor, stored_project):
    task = Task(project_id=stored_project.id, title="Imported", status="To Do", creator_id="")
    with pytest.raises(ActionError) as exc_info:
        await executor.execute(parse_action({"type": "assign_badge", "params": {"badgeName": "X"}}), task, CONTEXT)
    assert exc_info.value.reason == ActionFailure.NO_RECIPIENT
    assert "No badge recipient" in str(exc_info.value)


class _DownNotificationStore:
    async def create_notification(self, notification):
        raise StoreError("notifications unavailable")


async def test_assign_user_survives_notification_outage(store, stored_task):
    executor = ActionExecutor(store, store, store, _DownNotificationStore())

    summary = await executor.execute(
        parse_action({"type": "assign_user", "params": {"userId": "user-viewer"}}), stored_task, CONTEXT
    )

    assert summary.changed is True
    assert summary.detail["notified"] is False
    assert (await store.get_task(stored_task.id)).assignee_id == "user-viewer"
