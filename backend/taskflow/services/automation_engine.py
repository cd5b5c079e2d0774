"""AutomationEngine: evaluates project rules for a task lifecycle event.

Entry point for lifecycle producers (task create / update / status change /
assignment). One firing loads the project's active rules, keeps the ones
whose trigger matches, and executes their actions one after another in
stored order. A failing rule never stops its siblings and never raises to
the caller.
"""

import uuid
from collections.abc import Callable
from datetime import datetime
from typing import Any

import structlog
from pydantic import BaseModel, Field

from taskflow.core.exceptions import ActionError, ActionFailure, StoreError
from taskflow.domain.entities import Task, utcnow
from taskflow.domain.matcher import LifecycleEvent, match_rules
from taskflow.domain.rules import TriggerKind
from taskflow.services.automation_executor import ActingContext, ActionExecutor
from taskflow.store.base import RuleStore

logger = structlog.get_logger(__name__)


class RuleFailure(BaseModel):
    """One rule whose action failed during a firing."""

    rule_id: uuid.UUID
    rule_name: str
    reason: ActionFailure
    detail: str = ""


class FireResult(BaseModel):
    """Aggregate outcome of one firing."""

    event: TriggerKind
    task_id: uuid.UUID
    attempted: int = 0
    succeeded: int = 0
    attempted_rule_ids: list[uuid.UUID] = Field(default_factory=list)
    failures: list[RuleFailure] = Field(default_factory=list)


class AutomationEngine:
    """Orchestrates matching and execution of automation rules.

    Concurrent firings share nothing but the stores. Counter updates go
    through RuleStore.record_execution (an atomic increment), so two firings
    of the same rule may interleave without losing counts.
    """

    def __init__(
        self,
        rules: RuleStore,
        executor: ActionExecutor,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.rules = rules
        self.executor = executor
        self._clock = clock

    async def fire(self, event_kind: TriggerKind | str, task: Task, context: dict[str, Any] | None = None) -> FireResult:
        """Run every matching active rule of ``task``'s project for one event.

        Args:
            event_kind: Lifecycle event kind
            task: Task as committed by the producer
            context: Event context (old_status / old_assignee)

        Returns:
            FireResult with attempted / succeeded counts and per-rule failures
        """
        kind = TriggerKind(event_kind)
        result = FireResult(event=kind, task_id=task.id)

        try:
            rules = await self.rules.list_rules(task.project_id, active_only=True)
        except StoreError:
            logger.error("automation_rules_unavailable", event_kind=kind.value, task_id=str(task.id), exc_info=True)
            return result

        matched = match_rules(rules, LifecycleEvent(kind=kind, task=task, context=context or {}))

        # Later actions see the task as left by earlier ones
        current = task
        for rule in matched:
            result.attempted += 1
            result.attempted_rule_ids.append(rule.id)
            acting = ActingContext(rule_id=rule.id, actor_id=rule.creator_id)
            try:
                effect = await self.executor.execute(rule.action, current, acting)
            except ActionError as exc:
                result.failures.append(
                    RuleFailure(rule_id=rule.id, rule_name=rule.name, reason=exc.reason, detail=exc.detail)
                )
                logger.warning(
                    "automation_rule_failed",
                    rule_id=str(rule.id),
                    task_id=str(task.id),
                    action_type=rule.action.type,
                    reason=exc.reason.value,
                    detail=exc.detail,
                )
                continue
            except Exception as exc:
                result.failures.append(
                    RuleFailure(
                        rule_id=rule.id,
                        rule_name=rule.name,
                        reason=ActionFailure.UNEXPECTED_ERROR,
                        detail=str(exc),
                    )
                )
                logger.error(
                    "automation_rule_crashed",
                    rule_id=str(rule.id),
                    task_id=str(task.id),
                    error_type=type(exc).__name__,
                    exc_info=True,
                )
                continue

            current = effect.task
            result.succeeded += 1
            try:
                await self.rules.record_execution(rule.id, self._clock())
            except StoreError:
                # Counter is informational; the action already took effect
                logger.warning("automation_counter_update_failed", rule_id=str(rule.id), exc_info=True)

        logger.info(
            "automation_fired",
            event_kind=kind.value,
            task_id=str(task.id),
            project_id=str(task.project_id),
            candidates=len(rules),
            attempted=result.attempted,
            succeeded=result.succeeded,
            failed=len(result.failures),
        )
        return result
