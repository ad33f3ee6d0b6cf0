"""
Statement helpers that need dialect-specific SQL.
"""

from typing import Any

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.dml import Insert
from sqlmodel import SQLModel


def insert_ignoring_duplicates(
    conn: AsyncSession, model: type[SQLModel], **values: Any
) -> Insert:
    """
    An INSERT that silently skips the row when it collides with an existing
    primary key, giving set-insert semantics. The resulting rowcount is 0
    when nothing was inserted.
    """
    match conn.get_bind().dialect.name:
        case "postgresql":
            statement = postgresql.insert(model)
        case "sqlite":
            statement = sqlite.insert(model)
        case dialect:
            raise ValueError(f"Unsupported database dialect {dialect}")

    return statement.values(**values).on_conflict_do_nothing()
