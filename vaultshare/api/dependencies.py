"""
Dependencies used by the API.

The settings and the database manager live on `app.state`; they are created
by the application factory and opened/closed by its lifespan handler.
"""

from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger
from structlog.typing import FilteringBoundLogger

from vaultshare.config.managers import AsyncSessionManager
from vaultshare.config.settings import Settings


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_database_manager(request: Request) -> AsyncSessionManager:
    return request.app.state.database_manager


async def get_async_session(request: Request):
    async with get_database_manager(request).session() as session:
        async with session.begin():
            yield session


def logger():
    return get_logger()


SettingsDependency = Annotated[Settings, Depends(get_settings)]
DatabaseDependency = Annotated[AsyncSession, Depends(get_async_session)]
LoggerDependency = Annotated[FilteringBoundLogger, Depends(logger)]
