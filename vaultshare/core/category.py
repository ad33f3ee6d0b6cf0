"""
Core category share data models.
"""

from datetime import datetime

from pydantic import BaseModel

from vaultshare.core.uuid import UUID


class CategoryShareData(BaseModel):
    share_id: UUID
    owner_id: str
    category_name: str
    group_id: UUID
    shared_at: datetime
    shared_by: str
