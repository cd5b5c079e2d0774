"""Notification inbox API routes."""

import uuid

from fastapi import APIRouter, Depends, Query, Response

from taskflow.api.deps import get_notification_service
from taskflow.core.auth import AuthUser, require_auth
from taskflow.domain.entities import Notification
from taskflow.schemas.notifications import MarkAllReadResponse, NotificationPage
from taskflow.services.notification_service import NotificationService

router = APIRouter()


@router.get("", response_model=NotificationPage)
async def list_notifications(
    read: bool | None = None,
    page: int = Query(default=1, ge=1),
    limit: int | None = Query(default=None, ge=1, le=100),
    user: AuthUser = Depends(require_auth),
    service: NotificationService = Depends(get_notification_service),
):
    return await service.list_notifications(user.user_id, read=read, page=page, limit=limit)


@router.patch("/read-all", response_model=MarkAllReadResponse)
async def mark_all_read(
    user: AuthUser = Depends(require_auth),
    service: NotificationService = Depends(get_notification_service),
):
    return MarkAllReadResponse(updated=await service.mark_all_read(user.user_id))


@router.patch("/{notification_id}/read", response_model=Notification)
async def mark_read(
    notification_id: uuid.UUID,
    user: AuthUser = Depends(require_auth),
    service: NotificationService = Depends(get_notification_service),
):
    return await service.mark_read(user.user_id, notification_id)


@router.delete("/{notification_id}", status_code=204)
async def delete_notification(
    notification_id: uuid.UUID,
    user: AuthUser = Depends(require_auth),
    service: NotificationService = Depends(get_notification_service),
):
    await service.delete_notification(user.user_id, notification_id)
    return Response(status_code=204)
