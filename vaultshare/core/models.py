"""
Pydantic models for request/responses to APIs. Requests reject fields they
do not know about.
"""

from pydantic import BaseModel, ConfigDict

from vaultshare.core.group import Role
from vaultshare.core.uuid import UUID


class RequestModel(BaseModel):
    model_config = ConfigDict(extra="forbid")


class GroupCreationRequest(RequestModel):
    name: str


class GroupRenameRequest(RequestModel):
    name: str


class AddMemberRequest(RequestModel):
    user_id: str
    role: Role


class UpdateRoleRequest(RequestModel):
    role: Role


class CategoryShareRequest(RequestModel):
    category_name: str
    group_id: UUID


class CredentialCreationRequest(RequestModel):
    name: str
    login: str
    password: str | None = None
    url: str | None = None
    notes: str | None = None
    category: str | None = None
    custom_fields: list[dict[str, str]] = []
    is_favorite: bool = False


class CredentialUpdateRequest(RequestModel):
    name: str | None = None
    login: str | None = None
    password: str | None = None
    url: str | None = None
    notes: str | None = None
    category: str | None = None
    custom_fields: list[dict[str, str]] | None = None
    is_favorite: bool | None = None


class MessageResponse(BaseModel):
    message: str
