"""Project Pydantic schemas for API requests."""

from pydantic import BaseModel, Field

from taskflow.domain.entities import MemberRole


class CreateProjectRequest(BaseModel):
    title: str = Field(min_length=1)
    description: str = ""


class AddMemberRequest(BaseModel):
    user_id: str = Field(min_length=1)
    role: MemberRole = MemberRole.EDITOR


class UpdateStatusesRequest(BaseModel):
    statuses: list[str] = Field(description="Ordered status names; first one is the default for new tasks")


class UpdateProjectRequest(BaseModel):
    title: str | None = None
    description: str | None = None


class UpdateMemberRoleRequest(BaseModel):
    role: MemberRole
