"""Project API routes: projects, members and status sets."""

import uuid

from fastapi import APIRouter, Depends, Response

from taskflow.api.deps import get_project_service
from taskflow.core.auth import AuthUser, require_auth
from taskflow.domain.entities import Project
from taskflow.schemas.projects import (
    AddMemberRequest,
    CreateProjectRequest,
    UpdateMemberRoleRequest,
    UpdateProjectRequest,
    UpdateStatusesRequest,
)
from taskflow.services.project_service import ProjectService

router = APIRouter()


@router.post("", response_model=Project, status_code=201)
async def create_project(
    request: CreateProjectRequest,
    user: AuthUser = Depends(require_auth),
    service: ProjectService = Depends(get_project_service),
):
    """Create a project owned by the caller with the default statuses."""
    return await service.create_project(user.user_id, request.title, request.description)


@router.get("", response_model=list[Project])
async def list_projects(
    user: AuthUser = Depends(require_auth),
    service: ProjectService = Depends(get_project_service),
):
    return await service.list_projects(user.user_id)


@router.get("/{project_id}", response_model=Project)
async def get_project(
    project_id: uuid.UUID,
    user: AuthUser = Depends(require_auth),
    service: ProjectService = Depends(get_project_service),
):
    return await service.get_project(user.user_id, project_id)


@router.patch("/{project_id}", response_model=Project)
async def update_project(
    project_id: uuid.UUID,
    request: UpdateProjectRequest,
    user: AuthUser = Depends(require_auth),
    service: ProjectService = Depends(get_project_service),
):
    """Change title and/or description (owner only)."""
    return await service.update_project(
        user.user_id, project_id, title=request.title, description=request.description
    )


@router.delete("/{project_id}", status_code=204)
async def delete_project(
    project_id: uuid.UUID,
    user: AuthUser = Depends(require_auth),
    service: ProjectService = Depends(get_project_service),
):
    """Delete the project with its tasks, automations and notifications (owner only)."""
    await service.delete_project(user.user_id, project_id)
    return Response(status_code=204)


@router.post("/{project_id}/members", response_model=Project, status_code=201)
async def add_member(
    project_id: uuid.UUID,
    request: AddMemberRequest,
    user: AuthUser = Depends(require_auth),
    service: ProjectService = Depends(get_project_service),
):
    """Add a member (owner only). The new member gets a project invitation.

    Raises:
        HTTPException(403): Caller is not the project owner
        HTTPException(422): Member already present or role owner requested
    """
    return await service.add_member(user.user_id, project_id, request.user_id, request.role)


@router.delete("/{project_id}/members/{member_id}", response_model=Project)
async def remove_member(
    project_id: uuid.UUID,
    member_id: str,
    user: AuthUser = Depends(require_auth),
    service: ProjectService = Depends(get_project_service),
):
    return await service.remove_member(user.user_id, project_id, member_id)


@router.put("/{project_id}/members/{member_id}", response_model=Project)
async def update_member_role(
    project_id: uuid.UUID,
    member_id: str,
    request: UpdateMemberRoleRequest,
    user: AuthUser = Depends(require_auth),
    service: ProjectService = Depends(get_project_service),
):
    """Switch a member between editor and viewer (owner only)."""
    return await service.update_member_role(user.user_id, project_id, member_id, request.role)


@router.put("/{project_id}/statuses", response_model=Project)
async def update_statuses(
    project_id: uuid.UUID,
    request: UpdateStatusesRequest,
    user: AuthUser = Depends(require_auth),
    service: ProjectService = Depends(get_project_service),
):
    """Replace the ordered status set (owner only). Existing rules are not revalidated."""
    return await service.update_statuses(user.user_id, project_id, request.statuses)
