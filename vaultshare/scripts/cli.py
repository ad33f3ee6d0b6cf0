"""
A simple CLI for running the server.
"""

import os
import sys

import uvicorn


def run_server(**kwargs):
    for k, v in kwargs.items():
        os.environ[k] = v

    from vaultshare.config.settings import Settings

    settings = Settings()

    uvicorn.run(
        "vaultshare.api.app:create_app",
        factory=True,
        host=settings.hostname,
        port=settings.port,
    )


def main():
    try:
        run = sys.argv[1] == "run"
        setup = sys.argv[1] == "setup"
        dev = run and len(sys.argv) > 2 and sys.argv[2] == "dev"
    except IndexError:
        print("Only supported commands are vaultshare run [dev|prod] and vaultshare setup")
        exit(1)

    if run and dev:
        from testcontainers.postgres import PostgresContainer

        with PostgresContainer() as container:
            print(
                f"Container details: username={container.username}, password={container.password}, port={container.get_exposed_port(container.port)}"
            )

            run_server(
                VAULTSHARE_DATABASE_TYPE="postgres",
                VAULTSHARE_DATABASE_USER=container.username,
                VAULTSHARE_DATABASE_PASSWORD=container.password,
                VAULTSHARE_DATABASE_PORT=str(container.get_exposed_port(container.port)),
                VAULTSHARE_DATABASE_HOST="localhost",
                VAULTSHARE_DATABASE_DB=container.dbname,
                VAULTSHARE_DATABASE_ECHO="False",
            )
    elif run:
        run_server()

    if setup:
        from vaultshare.config.settings import Settings

        manager = Settings().sync_manager()
        manager.create_all()
        manager.close()

        print("Setup complete, tables created")
        exit(0)
