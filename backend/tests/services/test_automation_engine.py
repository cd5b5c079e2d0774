"""Tests for AutomationEngine.fire: matching, ordering, isolation, counters."""

import asyncio
from datetime import UTC, datetime

import pytest

from taskflow.core.exceptions import ActionFailure, StoreError
from taskflow.domain.entities import NotificationKind
from taskflow.domain.rules import TriggerKind
from taskflow.services.automation_engine import AutomationEngine
from taskflow.services.automation_executor import ActionExecutor

pytestmark = pytest.mark.unit


def _status_trigger(value: str) -> dict:
    return {"type": "task_status_changed", "condition": {"field": "status", "operator": "equals", "value": value}}


async def _move(store, task, status):
    return await store.apply_task_update(task.id, {"status": status}, [])


async def test_status_change_awards_badge_to_creator(store, engine, stored_task, add_rule):
    """A matching status rule awards its badge to the task creator."""
    rule = await add_rule(_status_trigger("In Progress"), {"type": "assign_badge", "params": {"badgeName": "Mover"}})
    moved = await _move(store, stored_task, "In Progress")

    result = await engine.fire(TriggerKind.TASK_STATUS_CHANGED, moved, {"old_status": "To Do"})

    assert (result.attempted, result.succeeded) == (1, 1)
    assert result.attempted_rule_ids == [rule.id]
    assert [b.name for b in await store.list_badges(stored_task.creator_id)] == ["Mover"]


async def test_invalid_target_status_recorded_as_failure(store, engine, stored_project, stored_task, add_rule):
    """A rule whose target status was removed from the project fails without touching the task."""
    rule = await add_rule({"type": "task_created"}, {"type": "change_status", "params": {"status": "Done"}})
    await store.update_statuses(stored_project.id, [s for s in stored_project.statuses if s.name != "Done"])

    result = await engine.fire(TriggerKind.TASK_CREATED, stored_task)

    assert (result.attempted, result.succeeded) == (1, 0)
    assert len(result.failures) == 1
    assert result.failures[0].reason == ActionFailure.INVALID_STATUS
    assert result.failures[0].rule_id == rule.id
    assert (await store.get_task(stored_task.id)).status == "To Do"
    assert (await store.get_rule(rule.id)).execution_count == 0


async def test_rules_run_in_stored_order(store, engine, stored_task, add_rule):
    """Two matching rules both run, the earlier-created one first."""
    notify = await add_rule(
        {"type": "task_created"}, {"type": "send_notification", "params": {"message": "New"}}, name="notify"
    )
    badge = await add_rule({"type": "task_created"}, {"type": "assign_badge", "params": {"badgeName": "Starter"}})

    result = await engine.fire(TriggerKind.TASK_CREATED, stored_task)

    assert (result.attempted, result.succeeded) == (2, 2)
    assert result.attempted_rule_ids == [notify.id, badge.id]
    assert len(await store.list_notifications(stored_task.creator_id)) == 1
    assert len(await store.list_badges(stored_task.creator_id)) == 1


async def test_inactive_rules_never_attempted(store, engine, stored_task, add_rule):
    inactive = await add_rule(
        {"type": "task_created"}, {"type": "assign_badge", "params": {"badgeName": "Ghost"}}, active=False
    )

    result = await engine.fire(TriggerKind.TASK_CREATED, stored_task)

    assert result.attempted == 0
    assert inactive.id not in result.attempted_rule_ids
    assert await store.list_badges(stored_task.creator_id) == []


async def test_failure_does_not_stop_later_rules(store, engine, stored_task, add_rule):
    failing = await add_rule(
        {"type": "task_created"},
        {"type": "assign_badge", "params": {"badgeName": "Helper", "recipient": "task_assignee"}},
    )
    ok = await add_rule({"type": "task_created"}, {"type": "send_notification", "params": {"message": "Hi"}})

    result = await engine.fire(TriggerKind.TASK_CREATED, stored_task)

    assert (result.attempted, result.succeeded) == (2, 1)
    assert [f.rule_id for f in result.failures] == [failing.id]
    assert result.failures[0].reason == ActionFailure.NO_RECIPIENT
    assert (await store.get_rule(ok.id)).execution_count == 1


async def test_counter_and_timestamp_updated_on_success(store, stored_task, add_rule, executor):
    fixed = datetime(2030, 1, 1, tzinfo=UTC)
    engine = AutomationEngine(store, executor, clock=lambda: fixed)
    rule = await add_rule({"type": "task_updated"}, {"type": "send_notification", "params": {"message": "x"}})

    await engine.fire(TriggerKind.TASK_UPDATED, stored_task)
    await engine.fire(TriggerKind.TASK_UPDATED, stored_task)

    stored = await store.get_rule(rule.id)
    assert stored.execution_count == 2
    assert stored.last_executed_at == fixed


async def test_concurrent_firings_do_not_lose_counts(store, engine, stored_task, add_rule):
    rule = await add_rule({"type": "task_updated"}, {"type": "send_notification", "params": {"message": "x"}})

    await asyncio.gather(*(engine.fire(TriggerKind.TASK_UPDATED, stored_task) for _ in range(10)))

    assert (await store.get_rule(rule.id)).execution_count == 10


async def test_later_actions_see_earlier_effects(store, engine, stored_task, add_rule):
    await add_rule({"type": "task_created"}, {"type": "assign_user", "params": {"userId": "user-viewer"}})
    await add_rule(
        {"type": "task_created"},
        {"type": "assign_badge", "params": {"badgeName": "Helper", "recipient": "task_assignee"}},
    )

    result = await engine.fire(TriggerKind.TASK_CREATED, stored_task)

    assert result.succeeded == 2
    assert [b.name for b in await store.list_badges("user-viewer")] == ["Helper"]


async def test_automation_does_not_cascade(store, engine, stored_task, add_rule):
    await add_rule({"type": "task_created"}, {"type": "change_status", "params": {"status": "Done"}})
    downstream = await add_rule(_status_trigger("Done"), {"type": "assign_badge", "params": {"badgeName": "Never"}})

    result = await engine.fire(TriggerKind.TASK_CREATED, stored_task)

    assert result.succeeded == 1
    assert downstream.id not in result.attempted_rule_ids
    assert await store.list_badges(stored_task.creator_id) == []


async def test_unexpected_exception_is_isolated(store, stored_task, add_rule):
    class _ExplodingExecutor:
        async def execute(self, action, task, context):
            raise RuntimeError("boom")

    await add_rule({"type": "task_created"}, {"type": "send_notification", "params": {"message": "x"}})
    engine = AutomationEngine(store, _ExplodingExecutor())

    result = await engine.fire(TriggerKind.TASK_CREATED, stored_task)

    assert (result.attempted, result.succeeded) == (1, 0)
    assert result.failures[0].reason == ActionFailure.UNEXPECTED_ERROR
    assert "boom" in result.failures[0].detail


async def test_unavailable_rule_store_yields_empty_result(stored_task, executor):
    class _DownRuleStore:
        async def list_rules(self, project_id, *, active_only=False):
            raise StoreError("connection refused")

    result = await AutomationEngine(_DownRuleStore(), executor).fire(TriggerKind.TASK_CREATED, stored_task)

    assert result.attempted == 0
    assert result.failures == []


async def test_counter_failure_still_counts_as_success(store, stored_task, add_rule, executor):
    class _CounterlessRuleStore:
        async def list_rules(self, project_id, *, active_only=False):
            return await store.list_rules(project_id, active_only=active_only)

        async def record_execution(self, rule_id, executed_at):
            raise StoreError("read only")

    await add_rule({"type": "task_created"}, {"type": "send_notification", "params": {"message": "x"}})

    result = await AutomationEngine(_CounterlessRuleStore(), executor).fire(TriggerKind.TASK_CREATED, stored_task)

    assert result.succeeded == 1
    inbox = await store.list_notifications(stored_task.creator_id)
    assert [n.kind for n in inbox] == [NotificationKind.AUTOMATION_TRIGGERED]


async def test_unknown_event_kind_rejected(engine, stored_task):
    with pytest.raises(ValueError):
        await engine.fire("task_deleted", stored_task)


async def test_reassignment_counts_as_success_when_notice_cannot_be_stored(store, stored_task, add_rule):
    class _DownNotificationStore:
        async def create_notification(self, notification):
            raise StoreError("notifications unavailable")

    rule = await add_rule({"type": "task_created"}, {"type": "assign_user", "params": {"userId": "user-viewer"}})
    executor = ActionExecutor(store, store, store, _DownNotificationStore())

    result = await AutomationEngine(store, executor).fire(TriggerKind.TASK_CREATED, stored_task)

    assert (result.attempted, result.succeeded) == (1, 1)
    assert result.failures == []
    assert (await store.get_task(stored_task.id)).assignee_id == "user-viewer"
    assert (await store.get_rule(rule.id)).execution_count == 1
