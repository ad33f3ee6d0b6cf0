"""
FastAPI app
"""

from contextlib import asynccontextmanager
from importlib.metadata import version

from fastapi import FastAPI

from vaultshare.config.settings import Settings
from vaultshare.toolkit.fastapi import add_exception_handlers

from .categories import category_app
from .dependencies import logger
from .groups import group_app
from .passwords import password_app


def create_app(settings: Settings | None = None) -> FastAPI:
    """
    Build the application. The database manager is opened when the app
    starts and closed when it stops; nothing is shared between apps.
    """
    settings = settings or Settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        log = logger().bind(database_type=settings.database_type)

        manager = settings.async_manager()

        if settings.create_tables:
            await manager.create_all()

        app.state.settings = settings
        app.state.database_manager = manager

        await log.ainfo("api.startup")

        try:
            yield
        finally:
            await manager.close()
            await log.ainfo("api.shutdown")

    app = FastAPI(
        lifespan=lifespan,
        title="vaultshare API",
        summary=(
            "Credential storage with groups, role-based membership and sharing of "
            "credential categories with groups."
        ),
        version=version("vaultshare"),
    )

    # Available before startup as well, for dependencies resolved in tests.
    app.state.settings = settings

    app = add_exception_handlers(app)

    app.include_router(group_app, prefix="/groups")
    app.include_router(category_app, prefix="/categories")
    app.include_router(password_app, prefix="/passwords")

    return app
