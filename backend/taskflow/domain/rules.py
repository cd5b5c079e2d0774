"""Automation rule specification types and validation.

Triggers and actions are closed tagged unions discriminated on ``type``.
Pure domain logic: no DB access, deterministic.
"""

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from taskflow.core.exceptions import ValidationError

if TYPE_CHECKING:
    from taskflow.domain.entities import Project


class TriggerKind(StrEnum):
    """Lifecycle events a rule can react to."""

    TASK_STATUS_CHANGED = "task_status_changed"
    TASK_ASSIGNED = "task_assigned"
    TASK_DUE_DATE_PASSED = "task_due_date_passed"
    TASK_CREATED = "task_created"
    TASK_UPDATED = "task_updated"


class ActionKind(StrEnum):
    """Side effects a rule can perform."""

    ASSIGN_BADGE = "assign_badge"
    CHANGE_STATUS = "change_status"
    ASSIGN_USER = "assign_user"
    SEND_NOTIFICATION = "send_notification"


NonEmptyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


class _SpecModel(BaseModel):
    # Accept both snake_case and the camelCase keys API clients send (badgeName, userId)
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Trigger conditions
# ---------------------------------------------------------------------------


class TriggerCondition(_SpecModel):
    """Free-form condition carried by unconditional trigger kinds. Never evaluated."""

    field: str | None = None
    operator: str | None = None
    value: Any = None


class StatusCondition(_SpecModel):
    field: Literal["status"] = "status"
    operator: Literal["equals"] = "equals"
    value: NonEmptyStr


class AssigneeCondition(_SpecModel):
    field: Literal["assignee"] = "assignee"
    operator: Literal["equals"] = "equals"
    value: NonEmptyStr


# ---------------------------------------------------------------------------
# Triggers
# ---------------------------------------------------------------------------


class StatusChangedTrigger(_SpecModel):
    type: Literal["task_status_changed"]
    condition: StatusCondition


class AssignedTrigger(_SpecModel):
    type: Literal["task_assigned"]
    # No condition = any assignment event in the project
    condition: AssigneeCondition | None = None


class DueDatePassedTrigger(_SpecModel):
    type: Literal["task_due_date_passed"]
    condition: TriggerCondition | None = None


class TaskCreatedTrigger(_SpecModel):
    type: Literal["task_created"]
    condition: TriggerCondition | None = None


class TaskUpdatedTrigger(_SpecModel):
    type: Literal["task_updated"]
    condition: TriggerCondition | None = None


Trigger = Annotated[
    Union[
        StatusChangedTrigger,
        AssignedTrigger,
        DueDatePassedTrigger,
        TaskCreatedTrigger,
        TaskUpdatedTrigger,
    ],
    Field(discriminator="type"),
]


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------


class AssignBadgeParams(_SpecModel):
    badge_name: NonEmptyStr
    description: str | None = None
    recipient: Literal["task_creator", "task_assignee"] = "task_creator"
    # Explicit recipient, overrides ``recipient``
    user_id: NonEmptyStr | None = None


class ChangeStatusParams(_SpecModel):
    status: NonEmptyStr


class AssignUserParams(_SpecModel):
    user_id: NonEmptyStr


class SendNotificationParams(_SpecModel):
    message: NonEmptyStr
    recipient: Literal["task_assignee", "task_creator"] | None = None
    user_id: NonEmptyStr | None = None


class AssignBadgeAction(_SpecModel):
    type: Literal["assign_badge"]
    params: AssignBadgeParams


class ChangeStatusAction(_SpecModel):
    type: Literal["change_status"]
    params: ChangeStatusParams


class AssignUserAction(_SpecModel):
    type: Literal["assign_user"]
    params: AssignUserParams


class SendNotificationAction(_SpecModel):
    type: Literal["send_notification"]
    params: SendNotificationParams


Action = Annotated[
    Union[
        AssignBadgeAction,
        ChangeStatusAction,
        AssignUserAction,
        SendNotificationAction,
    ],
    Field(discriminator="type"),
]

_TRIGGER_ADAPTER: TypeAdapter = TypeAdapter(Trigger)
_ACTION_ADAPTER: TypeAdapter = TypeAdapter(Action)


@dataclass(frozen=True)
class RuleSpec:
    """A structurally and referentially valid trigger/action pair."""

    trigger: Trigger
    action: Action


def _format_errors(exc: PydanticValidationError) -> list[str]:
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"])
        messages.append(f"{location}: {error['msg']}" if location else error["msg"])
    return messages


def parse_trigger(raw: Any) -> Trigger:
    """Parse a raw trigger mapping into its typed variant.

    Raises:
        ValidationError: unknown kind or kind-specific condition shape invalid
    """
    if isinstance(raw, BaseModel):
        raw = raw.model_dump()
    try:
        return _TRIGGER_ADAPTER.validate_python(raw)
    except PydanticValidationError as exc:
        raise ValidationError(
            "Invalid trigger condition for the specified trigger type",
            errors=_format_errors(exc),
        ) from exc


def parse_action(raw: Any) -> Action:
    """Parse a raw action mapping into its typed variant.

    Raises:
        ValidationError: unknown kind or required params missing
    """
    if isinstance(raw, BaseModel):
        raw = raw.model_dump()
    try:
        return _ACTION_ADAPTER.validate_python(raw)
    except PydanticValidationError as exc:
        raise ValidationError(
            "Invalid action parameters for the specified action type",
            errors=_format_errors(exc),
        ) from exc


def dump_spec(spec: BaseModel) -> dict:
    """Serialize a trigger or action for persistence (snake_case keys)."""
    return spec.model_dump(mode="json")


def validate_rule_spec(trigger: Any, action: Any, project: "Project") -> RuleSpec:
    """Validate a trigger/action pair against a project.

    Pure function -- no side effects, calling it twice yields the same verdict.

    Args:
        trigger: Raw trigger mapping or typed trigger
        action: Raw action mapping or typed action
        project: Owning project (its status set is the reference)

    Returns:
        RuleSpec holding the typed trigger and action

    Raises:
        ValidationError: structurally invalid, or a referenced status does not
            exist in the project

    Rules:
        - task_status_changed condition value must be a project status
        - change_status target must be a project status
        - Statuses are checked only here; later status edits do not revalidate rules
    """
    parsed_trigger = parse_trigger(trigger)
    parsed_action = parse_action(action)

    errors: list[str] = []
    if isinstance(parsed_trigger, StatusChangedTrigger):
        value = parsed_trigger.condition.value
        if not project.has_status(value):
            errors.append(f"Invalid status in trigger condition: {value}")

    if isinstance(parsed_action, ChangeStatusAction):
        status = parsed_action.params.status
        if not project.has_status(status):
            errors.append(f"Invalid status in action params: {status}")

    if errors:
        raise ValidationError(errors[0] if len(errors) == 1 else "Invalid automation rule", errors=errors)

    return RuleSpec(trigger=parsed_trigger, action=parsed_action)
