"""
Fixtures for the HTTP API tests: one application, started through its
lifespan, and a client talking to it in-process.
"""

import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from vaultshare.api.app import create_app
from vaultshare.config.settings import Settings


@pytest_asyncio.fixture(scope="session")
async def app(server_settings: Settings, database):
    app = create_app(server_settings)

    async with app.router.lifespan_context(app):
        yield app


@pytest_asyncio.fixture(scope="session")
async def client(app):
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://vaultshare.test"
    ) as client:
        yield client
