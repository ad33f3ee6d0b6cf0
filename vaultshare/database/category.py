"""
Category share ORM
"""

from datetime import datetime

from sqlalchemy import Column, DateTime, UniqueConstraint
from sqlmodel import Field, SQLModel

from vaultshare.core.category import CategoryShareData
from vaultshare.core.uuid import UUID, uuid7


class CategoryShare(SQLModel, table=True):
    """
    Grants the members of `group_id` visibility of every credential owned
    by `owner_id` that is tagged with `category_name`.

    `group_id` is not a foreign key: the group deletion sequence removes
    shares after the group row itself is gone, and may be re-run.
    """

    __tablename__ = "category_share"
    __table_args__ = (
        UniqueConstraint(
            "owner_id", "category_name", "group_id", name="uq_category_share"
        ),
    )

    share_id: UUID = Field(primary_key=True, default_factory=uuid7)

    owner_id: str = Field(index=True)
    category_name: str
    group_id: UUID = Field(index=True)

    shared_at: datetime = Field(sa_column=Column(DateTime(timezone=True)))
    shared_by: str

    def to_core(self) -> CategoryShareData:
        return CategoryShareData(
            share_id=self.share_id,
            owner_id=self.owner_id,
            category_name=self.category_name,
            group_id=self.group_id,
            shared_at=self.shared_at,
            shared_by=self.shared_by,
        )
