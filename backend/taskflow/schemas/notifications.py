"""Notification Pydantic schemas."""

from pydantic import BaseModel, Field

from taskflow.domain.entities import Notification
from taskflow.schemas.tasks import Pagination


class NotificationPage(BaseModel):
    items: list[Notification] = Field(default_factory=list)
    unread_count: int = 0
    pagination: Pagination


class MarkAllReadResponse(BaseModel):
    updated: int
