"""
Core group data models.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel

from vaultshare.core.uuid import UUID

Role = Literal["member", "admin"]


class GroupMemberData(BaseModel):
    user_id: str
    role: Role
    added_at: datetime
    added_by: str


class GroupData(BaseModel):
    group_id: UUID
    name: str
    owner_id: str
    members: list[GroupMemberData]
    created_at: datetime
    updated_at: datetime

    def member(self, user_id: str) -> GroupMemberData | None:
        """
        The membership record for `user_id`, or None if they are not a member.
        """
        for member in self.members:
            if member.user_id == user_id:
                return member
        return None

    def is_admin(self, user_id: str) -> bool:
        member = self.member(user_id)
        return member is not None and member.role == "admin"


class GroupDeletionReport(BaseModel):
    group_id: UUID
    credentials_unshared: int
    category_shares_removed: int
