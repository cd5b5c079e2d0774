"""AutomationService: rule lifecycle (create, read, update, delete, toggle)."""

import uuid
from typing import Any

import structlog

from taskflow.core.exceptions import NotFoundError, ValidationError
from taskflow.domain.access import ensure_can_create_rule, ensure_can_manage_rule, ensure_member
from taskflow.domain.entities import AutomationRule, Project, RuleRef
from taskflow.domain.rules import validate_rule_spec
from taskflow.store.base import ProjectStore, RuleStore

logger = structlog.get_logger(__name__)


class AutomationService:
    """Service layer for automation rule management.

    Access policy and rule validation run before anything is persisted.
    Execution metadata (execution_count, last_executed_at) is never written
    here; only the automation engine updates it.
    """

    def __init__(self, projects: ProjectStore, rules: RuleStore):
        self.projects = projects
        self.rules = rules

    async def _load_project(self, project_id: uuid.UUID) -> Project:
        project = await self.projects.get_project(project_id)
        if project is None:
            raise NotFoundError("Project", project_id)
        return project

    async def _load_rule(self, rule_id: uuid.UUID) -> tuple[AutomationRule, Project]:
        rule = await self.rules.get_rule(rule_id)
        if rule is None:
            raise NotFoundError("Automation", rule_id)
        project = await self._load_project(rule.project_id)
        return rule, project

    async def _load_rule_ref(self, rule_id: uuid.UUID) -> tuple[RuleRef, Project]:
        ref = await self.rules.get_rule_ref(rule_id)
        if ref is None:
            raise NotFoundError("Automation", rule_id)
        project = await self._load_project(ref.project_id)
        return ref, project

    @staticmethod
    def _clean_name(name: str | None) -> str:
        cleaned = (name or "").strip()
        if not cleaned:
            raise ValidationError("Automation name is required")
        return cleaned

    async def create_rule(
        self,
        user_id: str,
        project_id: uuid.UUID,
        name: str,
        trigger: Any,
        action: Any,
    ) -> AutomationRule:
        """Create an automation rule in a project.

        Args:
            user_id: Acting user
            project_id: Owning project
            name: Human label (non-empty)
            trigger: Raw or typed trigger specification
            action: Raw or typed action specification

        Returns:
            The persisted rule (active, execution_count 0)

        Raises:
            NotFoundError: project missing
            AuthorizationError: user is neither owner nor editor
            ValidationError: empty name or invalid trigger/action
        """
        project = await self._load_project(project_id)
        ensure_can_create_rule(project, user_id)
        cleaned_name = self._clean_name(name)
        spec = validate_rule_spec(trigger, action, project)

        rule = await self.rules.create_rule(
            AutomationRule(
                project_id=project.id,
                name=cleaned_name,
                trigger=spec.trigger,
                action=spec.action,
                creator_id=user_id,
            )
        )
        logger.info(
            "rule_created",
            rule_id=str(rule.id),
            project_id=str(project.id),
            trigger_type=rule.trigger.type,
            action_type=rule.action.type,
            user_id=user_id,
        )
        return rule

    async def list_rules(self, user_id: str, project_id: uuid.UUID) -> list[AutomationRule]:
        """All rules of a project, active or not, in stored order. Members only."""
        project = await self._load_project(project_id)
        ensure_member(project, user_id)
        return await self.rules.list_rules(project.id)

    async def get_rule(self, user_id: str, rule_id: uuid.UUID) -> AutomationRule:
        rule, project = await self._load_rule(rule_id)
        ensure_member(project, user_id)
        return rule

    async def update_rule(
        self,
        user_id: str,
        rule_id: uuid.UUID,
        *,
        name: str | None = None,
        trigger: Any = None,
        action: Any = None,
        active: bool | None = None,
    ) -> AutomationRule:
        """Update name, trigger, action and/or active flag.

        The resulting trigger/action pair is revalidated against the project
        whenever either side changes. A rule whose stored trigger or action
        no longer parses can be repaired by supplying both.

        Raises:
            NotFoundError: rule or project missing
            AuthorizationError: user is not owner, creator or editor
            ValidationError: invalid name or resulting spec, or a partial
                update of an unreadable rule
        """
        ref, project = await self._load_rule_ref(rule_id)
        ensure_can_manage_rule(project, ref, user_id)
        rule = await self.rules.get_rule(ref.id)
        if rule is None and (trigger is None or action is None):
            raise ValidationError("Stored trigger or action can no longer be read; supply both to repair the rule")

        changes: dict[str, Any] = {}
        if name is not None:
            changes["name"] = self._clean_name(name)
        if trigger is not None or action is not None:
            spec = validate_rule_spec(
                trigger if trigger is not None else rule.trigger,
                action if action is not None else rule.action,
                project,
            )
            changes["trigger"] = spec.trigger
            changes["action"] = spec.action
        if active is not None:
            changes["active"] = active

        if not changes:
            return rule

        updated = await self.rules.update_rule(ref.id, changes)
        if updated is None:
            raise NotFoundError("Automation", rule_id)
        logger.info("rule_updated", rule_id=str(ref.id), fields=sorted(changes), user_id=user_id)
        return updated

    async def delete_rule(self, user_id: str, rule_id: uuid.UUID) -> None:
        """Delete a rule, including one whose stored trigger or action no longer parses."""
        ref, project = await self._load_rule_ref(rule_id)
        ensure_can_manage_rule(project, ref, user_id)
        await self.rules.delete_rule(ref.id)
        logger.info("rule_deleted", rule_id=str(ref.id), project_id=str(project.id), user_id=user_id)

    async def toggle_rule(self, user_id: str, rule_id: uuid.UUID) -> AutomationRule:
        """Flip the active flag. Inactive rules are never matched."""
        rule, project = await self._load_rule(rule_id)
        ensure_can_manage_rule(project, rule, user_id)
        updated = await self.rules.update_rule(rule.id, {"active": not rule.active})
        if updated is None:
            raise NotFoundError("Automation", rule_id)
        logger.info("rule_toggled", rule_id=str(rule.id), active=updated.active, user_id=user_id)
        return updated
