"""
Core configuration
"""

import os
from uuid import uuid4

import pytest
import pytest_asyncio

from vaultshare.config.settings import Settings


@pytest_asyncio.fixture(scope="session")
def database_config(tmp_path_factory):
    # SQLite by default; set VAULTSHARE_TEST_POSTGRES=1 to run against a
    # throwaway PostgreSQL container instead.
    if os.environ.get("VAULTSHARE_TEST_POSTGRES"):
        from testcontainers.postgres import PostgresContainer

        with PostgresContainer() as container:
            yield {
                "database_type": "postgres",
                "database_user": container.username,
                "database_password": container.password,
                "database_port": container.get_exposed_port(container.port),
                "database_host": "localhost",
                "database_db": container.dbname,
            }
    else:
        yield {
            "database_type": "sqlite",
            "database_db": str(tmp_path_factory.mktemp("database") / "vaultshare.db"),
        }


@pytest_asyncio.fixture(scope="session")
def server_settings(database_config):
    yield Settings(**database_config)


@pytest_asyncio.fixture(scope="session")
def database(server_settings: Settings):
    manager = server_settings.sync_manager()
    manager.create_all()
    yield
    manager.close()


@pytest.fixture
def users():
    """
    Four fresh user ids, so tests sharing the database never see each
    other's groups or credentials.
    """
    return [f"user-{uuid4().hex[:12]}" for _ in range(4)]
