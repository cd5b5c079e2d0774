"""Task API routes. Mutations report the automation firings they caused."""

import uuid

from fastapi import APIRouter, Depends, Query, Response

from taskflow.api.deps import get_task_service
from taskflow.core.auth import AuthUser, require_auth
from taskflow.domain.entities import Task, TaskPriority
from taskflow.schemas.tasks import CommentRequest, CreateTaskRequest, TaskOutcome, TaskPage, UpdateTaskRequest
from taskflow.services.task_service import TaskService

router = APIRouter()


@router.post("", response_model=TaskOutcome, status_code=201)
async def create_task(
    request: CreateTaskRequest,
    user: AuthUser = Depends(require_auth),
    service: TaskService = Depends(get_task_service),
):
    """Create a task and run task_created automations.

    Raises:
        HTTPException(403): Caller is not a project member
        HTTPException(404): Project not found
        HTTPException(422): Unknown status or non-member assignee
    """
    return await service.create_task(
        user.user_id,
        request.project_id,
        title=request.title,
        description=request.description,
        status=request.status,
        assignee_id=request.assignee_id,
        due_date=request.due_date,
        priority=request.priority,
    )


@router.get("", response_model=TaskPage)
async def list_tasks(
    project_id: uuid.UUID,
    status: str | None = None,
    assignee_id: str | None = None,
    priority: TaskPriority | None = None,
    page: int = Query(default=1, ge=1),
    limit: int | None = Query(default=None, ge=1, le=200),
    user: AuthUser = Depends(require_auth),
    service: TaskService = Depends(get_task_service),
):
    return await service.list_tasks(
        user.user_id,
        project_id,
        status=status,
        assignee_id=assignee_id,
        priority=priority,
        page=page,
        limit=limit,
    )


@router.get("/{task_id}", response_model=Task)
async def get_task(
    task_id: uuid.UUID,
    user: AuthUser = Depends(require_auth),
    service: TaskService = Depends(get_task_service),
):
    return await service.get_task(user.user_id, task_id)


@router.patch("/{task_id}", response_model=TaskOutcome)
async def update_task(
    task_id: uuid.UUID,
    request: UpdateTaskRequest,
    user: AuthUser = Depends(require_auth),
    service: TaskService = Depends(get_task_service),
):
    """Partially update a task.

    Fires task_status_changed / task_assigned when those fields change, then
    task_updated. Send assignee_id="unassign" to clear the assignee and an
    explicit null due_date to clear it.
    """
    extra = {}
    if "due_date" in request.model_fields_set:
        extra["due_date"] = request.due_date
    return await service.update_task(
        user.user_id,
        task_id,
        title=request.title,
        description=request.description,
        status=request.status,
        assignee_id=request.assignee_id,
        priority=request.priority,
        **extra,
    )


@router.delete("/{task_id}", status_code=204)
async def delete_task(
    task_id: uuid.UUID,
    user: AuthUser = Depends(require_auth),
    service: TaskService = Depends(get_task_service),
):
    await service.delete_task(user.user_id, task_id)
    return Response(status_code=204)


@router.post("/{task_id}/comments", response_model=Task, status_code=201)
async def add_comment(
    task_id: uuid.UUID,
    request: CommentRequest,
    user: AuthUser = Depends(require_auth),
    service: TaskService = Depends(get_task_service),
):
    return await service.add_comment(user.user_id, task_id, request.text)
