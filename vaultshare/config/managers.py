"""
Database session management. A manager is the store handle: it is built
explicitly from the settings, handed to whoever needs it, and closed by its
owner.
"""

from sqlalchemy import Engine
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel, create_engine


def _import_tables():
    # Registers every table on SQLModel.metadata before create_all.
    from vaultshare.database.meta import ALL_TABLES

    return ALL_TABLES


class SyncSessionManager:
    """
    Blocking access to the vaultshare tables, for the `vaultshare setup`
    command and the test fixtures that prepare the schema:

    manager = Settings().sync_manager()
    manager.create_all()
    manager.close()
    """

    connection_url: str
    engine: Engine
    session: sessionmaker

    def __init__(self, connection_url: str, echo: bool = False):
        self.connection_url = connection_url
        self.engine = create_engine(self.connection_url, echo=echo)
        self.session = sessionmaker(self.engine)

    def create_all(self):
        """
        Create the group, membership, category share and credential tables
        that do not exist yet. Existing tables are left alone.
        """
        _import_tables()
        with self.engine.begin() as conn:
            SQLModel.metadata.create_all(conn)

    def close(self):
        self.engine.dispose()


class AsyncSessionManager:
    """
    The store handle used by the API and the services. One session per unit
    of work, committed or rolled back as a whole:

    async with manager.session() as conn:
        async with conn.begin():
            group = await groups_service.read_by_id(
                group_id=group_id, conn=conn, log=log
            )

    Objects stay usable after commit (`expire_on_commit=False`), so
    routers can convert them with `to_core()` once the transaction ends.
    """

    connection_url: str
    engine: AsyncEngine
    session: async_sessionmaker

    def __init__(self, connection_url: str, echo: bool = False):
        self.connection_url = connection_url
        self.engine = create_async_engine(self.connection_url, echo=echo)
        self.session = async_sessionmaker(self.engine, expire_on_commit=False)

    async def create_all(self):
        """
        Create any missing vaultshare tables. Run from the application
        lifespan when `Settings.create_tables` is set.
        """
        _import_tables()
        async with self.engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all)

    async def close(self):
        """
        Release every pooled connection. Call once at shutdown.
        """
        await self.engine.dispose()
