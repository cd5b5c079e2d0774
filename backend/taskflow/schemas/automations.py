"""Automation rule Pydantic schemas for API requests.

trigger and action stay raw mappings here; the automation service parses
them into their typed variants so every invalid shape gets the same error.
"""

import uuid
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class CreateAutomationRequest(BaseModel):
    model_config = ConfigDict(json_schema_extra={
        "example": {
            "project_id": "3fa85f64-5717-4562-b3fc-2c963f66afa6",
            "name": "Reward finishers",
            "trigger": {"type": "task_status_changed", "condition": {"field": "status", "operator": "equals", "value": "Done"}},
            "action": {"type": "assign_badge", "params": {"badgeName": "Finisher", "recipient": "task_assignee"}},
        }
    })

    project_id: uuid.UUID
    name: str
    trigger: dict[str, Any]
    action: dict[str, Any]


class UpdateAutomationRequest(BaseModel):
    name: str | None = None
    trigger: dict[str, Any] | None = None
    action: dict[str, Any] | None = None
    active: bool | None = Field(default=None, description="Enable or disable the rule")
