"""Trigger matching: which rules qualify for a lifecycle event.

Pure domain logic. Output preserves the stored order of the input rules.
"""

from dataclasses import dataclass, field
from typing import Any

from taskflow.domain.entities import AutomationRule, Task
from taskflow.domain.rules import (
    AssignedTrigger,
    DueDatePassedTrigger,
    StatusChangedTrigger,
    TaskCreatedTrigger,
    TaskUpdatedTrigger,
    TriggerKind,
)


@dataclass
class LifecycleEvent:
    """A task lifecycle event submitted to the automation engine.

    context carries ``old_status`` for status changes and ``old_assignee``
    for assignments; matching never reads it.
    """

    kind: TriggerKind
    task: Task
    context: dict[str, Any] = field(default_factory=dict)


def trigger_matches(rule: AutomationRule, event: LifecycleEvent) -> bool:
    """Kind-specific condition check for one rule. Unknown kinds never match."""
    trigger = rule.trigger
    if trigger.type != event.kind:
        return False

    if isinstance(trigger, StatusChangedTrigger):
        # Compare against the task's current (new) status, never context["old_status"]
        return trigger.condition.value == event.task.status

    if isinstance(trigger, AssignedTrigger):
        if trigger.condition is None:
            return True
        return trigger.condition.value == event.task.assignee_id

    if isinstance(trigger, (TaskCreatedTrigger, TaskUpdatedTrigger, DueDatePassedTrigger)):
        return True

    return False


def match_rules(rules: list[AutomationRule], event: LifecycleEvent) -> list[AutomationRule]:
    """Return the qualifying subsequence of ``rules`` for ``event``.

    A rule qualifies iff it is active, belongs to the task's project, has the
    event's trigger kind and its condition holds.
    """
    return [
        rule
        for rule in rules
        if rule.active
        and rule.project_id == event.task.project_id
        and trigger_matches(rule, event)
    ]
