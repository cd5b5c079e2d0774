"""Tests for automation rule parsing and validation.

Pure function behavior: no store access, same verdict on every call.
"""

import pytest

from taskflow.core.exceptions import ValidationError
from taskflow.domain.entities import Project, StatusDef
from taskflow.domain.rules import (
    AssignBadgeAction,
    AssignedTrigger,
    SendNotificationAction,
    StatusChangedTrigger,
    TaskCreatedTrigger,
    dump_spec,
    parse_action,
    parse_trigger,
    validate_rule_spec,
)

pytestmark = pytest.mark.unit


def _project(*names: str) -> Project:
    statuses = [StatusDef(name=n, order=i) for i, n in enumerate(names or ("To Do", "In Progress", "Done"), 1)]
    return Project(title="P", owner_id="owner", statuses=statuses)


STATUS_TRIGGER = {
    "type": "task_status_changed",
    "condition": {"field": "status", "operator": "equals", "value": "Done"},
}
BADGE_ACTION = {"type": "assign_badge", "params": {"badgeName": "Finisher"}}


def test_valid_status_trigger_and_badge_action():
    spec = validate_rule_spec(STATUS_TRIGGER, BADGE_ACTION, _project())

    assert isinstance(spec.trigger, StatusChangedTrigger)
    assert spec.trigger.condition.value == "Done"
    assert isinstance(spec.action, AssignBadgeAction)
    assert spec.action.params.badge_name == "Finisher"
    assert spec.action.params.recipient == "task_creator"


def test_snake_case_keys_are_accepted():
    action = parse_action({"type": "assign_badge", "params": {"badge_name": "Finisher"}})
    assert action.params.badge_name == "Finisher"


def test_status_trigger_without_condition_rejected():
    with pytest.raises(ValidationError) as exc_info:
        validate_rule_spec({"type": "task_status_changed"}, BADGE_ACTION, _project())
    assert exc_info.value.message == "Invalid trigger condition for the specified trigger type"
    assert exc_info.value.errors


def test_status_trigger_with_wrong_field_rejected():
    trigger = {"type": "task_status_changed", "condition": {"field": "assignee", "operator": "equals", "value": "Done"}}
    with pytest.raises(ValidationError):
        parse_trigger(trigger)


def test_unsupported_operator_rejected():
    trigger = {"type": "task_status_changed", "condition": {"field": "status", "operator": "contains", "value": "Do"}}
    with pytest.raises(ValidationError):
        parse_trigger(trigger)


def test_unknown_trigger_type_rejected():
    with pytest.raises(ValidationError) as exc_info:
        parse_trigger({"type": "task_deleted"})
    assert "trigger" in exc_info.value.message


def test_unknown_action_type_rejected():
    with pytest.raises(ValidationError) as exc_info:
        parse_action({"type": "delete_task", "params": {}})
    assert exc_info.value.message == "Invalid action parameters for the specified action type"


def test_status_trigger_value_must_be_project_status():
    with pytest.raises(ValidationError) as exc_info:
        validate_rule_spec(
            {"type": "task_status_changed", "condition": {"field": "status", "operator": "equals", "value": "Archived"}},
            BADGE_ACTION,
            _project(),
        )
    assert exc_info.value.message == "Invalid status in trigger condition: Archived"


def test_change_status_target_must_be_project_status():
    with pytest.raises(ValidationError) as exc_info:
        validate_rule_spec(STATUS_TRIGGER, {"type": "change_status", "params": {"status": "Archived"}}, _project())
    assert exc_info.value.message == "Invalid status in action params: Archived"


def test_both_invalid_statuses_reported():
    with pytest.raises(ValidationError) as exc_info:
        validate_rule_spec(
            {"type": "task_status_changed", "condition": {"field": "status", "operator": "equals", "value": "X"}},
            {"type": "change_status", "params": {"status": "Y"}},
            _project(),
        )
    assert len(exc_info.value.errors) == 2


def test_status_check_uses_the_given_project():
    custom = _project("Backlog", "Shipped")
    spec = validate_rule_spec(
        {"type": "task_status_changed", "condition": {"field": "status", "operator": "equals", "value": "Shipped"}},
        {"type": "change_status", "params": {"status": "Backlog"}},
        custom,
    )
    assert spec.action.params.status == "Backlog"
    with pytest.raises(ValidationError):
        validate_rule_spec(STATUS_TRIGGER, BADGE_ACTION, custom)


def test_assigned_trigger_condition_is_optional():
    assert parse_trigger({"type": "task_assigned"}).condition is None
    trigger = parse_trigger(
        {"type": "task_assigned", "condition": {"field": "assignee", "operator": "equals", "value": "u1"}}
    )
    assert isinstance(trigger, AssignedTrigger)
    assert trigger.condition.value == "u1"


def test_unconditional_triggers_ignore_condition_shape():
    trigger = parse_trigger({"type": "task_created", "condition": {"field": "anything", "value": 3}})
    assert isinstance(trigger, TaskCreatedTrigger)


@pytest.mark.parametrize(
    "action",
    [
        {"type": "assign_badge", "params": {}},
        {"type": "assign_badge", "params": {"badgeName": "   "}},
        {"type": "change_status", "params": {}},
        {"type": "assign_user", "params": {}},
        {"type": "send_notification", "params": {}},
        {"type": "send_notification"},
    ],
)
def test_missing_required_params_rejected(action):
    with pytest.raises(ValidationError):
        parse_action(action)


def test_send_notification_recipient_defaults_to_none():
    action = parse_action({"type": "send_notification", "params": {"message": "Heads up"}})
    assert isinstance(action, SendNotificationAction)
    assert action.params.recipient is None
    assert action.params.user_id is None


def test_validation_is_deterministic():
    project = _project()
    first = validate_rule_spec(STATUS_TRIGGER, BADGE_ACTION, project)
    second = validate_rule_spec(STATUS_TRIGGER, BADGE_ACTION, project)
    assert first == second


def test_dump_spec_uses_snake_case_and_reparses():
    action = parse_action(BADGE_ACTION)
    dumped = dump_spec(action)
    assert dumped["params"]["badge_name"] == "Finisher"
    assert parse_action(dumped) == action
