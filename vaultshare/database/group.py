"""
Group ORM
"""

from datetime import datetime

from sqlalchemy import Column, DateTime
from sqlmodel import Field, Relationship, SQLModel

from vaultshare.core.group import GroupData, GroupMemberData
from vaultshare.core.uuid import UUID, uuid7


class GroupMember(SQLModel, table=True):
    """
    A record of a user's membership of a group. The composite primary key
    makes membership unique by user.
    """

    __tablename__ = "group_member"

    group_id: UUID = Field(
        primary_key=True, foreign_key="group.group_id", ondelete="CASCADE"
    )
    user_id: str = Field(primary_key=True)

    role: str = Field(default="member")
    added_at: datetime = Field(sa_column=Column(DateTime(timezone=True)))
    added_by: str

    group: "Group" = Relationship(back_populates="members")

    def to_core(self) -> GroupMemberData:
        return GroupMemberData(
            user_id=self.user_id,
            role=self.role,
            added_at=self.added_at,
            added_by=self.added_by,
        )


class Group(SQLModel, table=True):
    group_id: UUID = Field(primary_key=True, default_factory=uuid7)

    name: str
    # Immutable after creation.
    owner_id: str = Field(index=True)

    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True)))
    updated_at: datetime = Field(sa_column=Column(DateTime(timezone=True)))

    members: list[GroupMember] = Relationship(
        back_populates="group",
        sa_relationship_kwargs=dict(
            lazy="selectin",
            cascade="all, delete-orphan",
            order_by="GroupMember.added_at",
        ),
    )

    def to_core(self) -> GroupData:
        """
        Convert this Group ORM object to a GroupData core object.
        """
        return GroupData(
            group_id=self.group_id,
            name=self.name,
            owner_id=self.owner_id,
            members=[member.to_core() for member in self.members],
            created_at=self.created_at,
            updated_at=self.updated_at,
        )
