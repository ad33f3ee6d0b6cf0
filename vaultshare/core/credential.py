"""
Core credential data models.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from vaultshare.core.uuid import UUID


class HistoryEntryData(BaseModel):
    action: str
    user_id: str
    timestamp: datetime
    details: dict[str, Any] | None = None


class ModifiedByData(BaseModel):
    user_id: str
    timestamp: datetime


class SharedViaData(BaseModel):
    """
    How a credential owned by someone else became visible: through a
    category share to a group the reader belongs to.
    """

    category_owner_id: str
    category_name: str
    group_id: UUID
    group_name: str


class CredentialData(BaseModel):
    credential_id: UUID
    owner_id: str | None
    user_id: str | None
    name: str
    login: str
    password: str | None = None
    url: str | None = None
    notes: str | None = None
    category: str | None = None
    custom_fields: list[dict[str, str]] = Field(default_factory=list)
    is_favorite: bool = False
    is_deleted: bool = False
    created_at: datetime
    created_by: str | None = None
    last_modified_by: ModifiedByData | None = None
    shared_with_group_ids: list[UUID] = Field(default_factory=list)
    history: list[HistoryEntryData] = Field(default_factory=list)
    shared_via: SharedViaData | None = None
