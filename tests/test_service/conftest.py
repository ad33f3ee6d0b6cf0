"""
Fixtures for the service layer tests.
"""

import pytest
import pytest_asyncio
import structlog
from sqlalchemy import Delete
from sqlalchemy.exc import SQLAlchemyError

from vaultshare.config.settings import Settings
from vaultshare.service import groups as groups_service
from vaultshare.service import membership as membership_service


@pytest_asyncio.fixture(scope="session")
async def session_manager(server_settings: Settings, database):
    manager = server_settings.async_manager()
    yield manager
    await manager.close()


@pytest_asyncio.fixture(scope="session")
def logger():
    yield structlog.get_logger()


@pytest_asyncio.fixture
async def group(session_manager, logger, users):
    """
    A group owned by users[0], with users[1] as an admin and users[2] as a
    plain member. users[3] belongs to nothing.
    """
    owner, admin, member, _ = users

    async with session_manager.session() as conn:
        async with conn.begin():
            group = await groups_service.create(
                name="Operations", actor_id=owner, conn=conn, log=logger
            )
            await membership_service.add_member(
                group_id=group.group_id,
                user_id=admin,
                role="admin",
                actor_id=owner,
                conn=conn,
                log=logger,
            )
            await membership_service.add_member(
                group_id=group.group_id,
                user_id=member,
                role="member",
                actor_id=owner,
                conn=conn,
                log=logger,
            )

            GROUP_ID = group.group_id

    yield GROUP_ID


def _deletes_from(statement, table_name: str) -> bool:
    return isinstance(statement, Delete) and statement.table.name == table_name


@pytest.fixture
def failing_deletes(monkeypatch):
    """
    Make a session raise a store error on any DELETE against `table_name`.
    """

    def patch(conn, table_name: str):
        execute = conn.execute

        async def execute_or_fail(statement, *args, **kwargs):
            if _deletes_from(statement, table_name):
                raise SQLAlchemyError("database is locked")
            return await execute(statement, *args, **kwargs)

        monkeypatch.setattr(conn, "execute", execute_or_fail)

    return patch


@pytest.fixture
def racing_deletes(monkeypatch):
    """
    Let another request win the race: any DELETE against `table_name` runs
    once before the session's own, which then matches no rows.
    """

    def patch(conn, table_name: str):
        execute = conn.execute

        async def execute_after_rival(statement, *args, **kwargs):
            if _deletes_from(statement, table_name):
                await execute(statement, *args, **kwargs)
            return await execute(statement, *args, **kwargs)

        monkeypatch.setattr(conn, "execute", execute_after_rival)

    return patch
