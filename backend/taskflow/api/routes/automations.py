"""Automation rule API routes."""

import uuid

from fastapi import APIRouter, Depends, Response

from taskflow.api.deps import get_automation_service
from taskflow.core.auth import AuthUser, require_auth
from taskflow.domain.entities import AutomationRule
from taskflow.schemas.automations import CreateAutomationRequest, UpdateAutomationRequest
from taskflow.services.automation_service import AutomationService

router = APIRouter()


@router.post("", response_model=AutomationRule, status_code=201)
async def create_automation(
    request: CreateAutomationRequest,
    user: AuthUser = Depends(require_auth),
    service: AutomationService = Depends(get_automation_service),
):
    """Create an automation rule.

    Raises:
        HTTPException(403): Caller is neither project owner nor editor
        HTTPException(404): Project not found
        HTTPException(422): Invalid trigger/action, or a status not in the project
    """
    return await service.create_rule(user.user_id, request.project_id, request.name, request.trigger, request.action)


@router.get("", response_model=list[AutomationRule])
async def list_automations(
    project_id: uuid.UUID,
    user: AuthUser = Depends(require_auth),
    service: AutomationService = Depends(get_automation_service),
):
    return await service.list_rules(user.user_id, project_id)


@router.get("/{rule_id}", response_model=AutomationRule)
async def get_automation(
    rule_id: uuid.UUID,
    user: AuthUser = Depends(require_auth),
    service: AutomationService = Depends(get_automation_service),
):
    return await service.get_rule(user.user_id, rule_id)


@router.patch("/{rule_id}", response_model=AutomationRule)
async def update_automation(
    rule_id: uuid.UUID,
    request: UpdateAutomationRequest,
    user: AuthUser = Depends(require_auth),
    service: AutomationService = Depends(get_automation_service),
):
    return await service.update_rule(
        user.user_id,
        rule_id,
        name=request.name,
        trigger=request.trigger,
        action=request.action,
        active=request.active,
    )


@router.delete("/{rule_id}", status_code=204)
async def delete_automation(
    rule_id: uuid.UUID,
    user: AuthUser = Depends(require_auth),
    service: AutomationService = Depends(get_automation_service),
):
    await service.delete_rule(user.user_id, rule_id)
    return Response(status_code=204)


@router.post("/{rule_id}/toggle", response_model=AutomationRule)
async def toggle_automation(
    rule_id: uuid.UUID,
    user: AuthUser = Depends(require_auth),
    service: AutomationService = Depends(get_automation_service),
):
    """Flip the rule between active and inactive."""
    return await service.toggle_rule(user.user_id, rule_id)
