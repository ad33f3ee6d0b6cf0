"""
ORM for stored credential entries.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Column, DateTime
from sqlmodel import Field, Relationship, SQLModel

from vaultshare.core.credential import CredentialData, SharedViaData
from vaultshare.core.uuid import UUID, uuid7


class CredentialGroupShare(SQLModel, table=True):
    """
    Legacy per-credential share with a group. The composite key gives the
    set semantics of the old `sharedWithGroupIds` list.
    """

    __tablename__ = "credential_group_share"

    credential_id: UUID = Field(
        primary_key=True, foreign_key="credential.credential_id", ondelete="CASCADE"
    )
    # Not a foreign key: a deleted group may leave a dangling id behind that
    # the credential owner must still be able to clear.
    group_id: UUID = Field(primary_key=True, index=True)


class Credential(SQLModel, table=True):
    credential_id: UUID = Field(primary_key=True, default_factory=uuid7)

    owner_id: str | None = Field(default=None, index=True)
    # Older entries only carry `user_id`; see `effective_owner_id`.
    user_id: str | None = None

    name: str
    login: str
    password: str | None = None
    url: str | None = None
    notes: str | None = None
    category: str | None = Field(default=None, index=True)
    custom_fields: list[dict[str, str]] = Field(
        default_factory=list, sa_column=Column(JSON)
    )
    is_favorite: bool = False

    is_deleted: bool = False
    deleted_at: datetime | None = Field(
        sa_column=Column(DateTime(timezone=True)), default=None
    )
    deleted_by: str | None = None

    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True)))
    created_by: str | None = None
    last_modified_by: dict[str, Any] | None = Field(
        default=None, sa_column=Column(JSON)
    )

    # Most recent first. Always reassigned, never mutated in place, so that
    # the JSON column registers the change.
    history: list[dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON))

    group_shares: list[CredentialGroupShare] = Relationship(
        sa_relationship_kwargs=dict(lazy="selectin", cascade="all, delete-orphan")
    )

    @property
    def effective_owner_id(self) -> str | None:
        return self.owner_id or self.user_id

    @property
    def shared_with_group_ids(self) -> list[UUID]:
        return [share.group_id for share in self.group_shares]

    def to_core(self, shared_via: SharedViaData | None = None) -> CredentialData:
        return CredentialData(
            credential_id=self.credential_id,
            owner_id=self.owner_id,
            user_id=self.user_id,
            name=self.name,
            login=self.login,
            password=self.password,
            url=self.url,
            notes=self.notes,
            category=self.category,
            custom_fields=self.custom_fields or [],
            is_favorite=self.is_favorite,
            is_deleted=self.is_deleted,
            created_at=self.created_at,
            created_by=self.created_by,
            last_modified_by=self.last_modified_by,
            shared_with_group_ids=self.shared_with_group_ids,
            history=self.history or [],
            shared_via=shared_via,
        )
