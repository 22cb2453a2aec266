"""Litestar application factory and CLI entry point."""

from __future__ import annotations

import argparse
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from litestar import Litestar
from litestar.datastructures import State
from litestar.di import Provide

from iclock_server.config import ConfigLoader, Settings
from iclock_server.controllers.commands import CommandController
from iclock_server.controllers.directory import DirectoryController
from iclock_server.controllers.health import HealthController
from iclock_server.controllers.iclock import IclockController
from iclock_server.dao.command_log_dao import CommandLogDAO
from iclock_server.dao.device_dao import DeviceDAO
from iclock_server.dao.queue_dao import QueueDAO
from iclock_server.dao.user_dao import UserDAO
from iclock_server.resources.commands import CommandResource
from iclock_server.resources.directory import DirectoryResource
from iclock_server.resources.health import HealthResource
from iclock_server.resources.iclock import IclockResource
from iclock_server.services.delivery_service import DeliveryService
from iclock_server.services.device_service import DeviceService
from iclock_server.services.queue_service import QueueService
from iclock_server.services.result_service import ResultService
from iclock_server.services.user_service import UserService
from iclock_server.utils.db import Database
from iclock_server.utils.logging import LogSetup


class AppFactory:
    """Builds and configures the Litestar application. All methods are static."""

    @staticmethod
    def _build(settings: Settings) -> State:
        """Construct the full object graph once.

        pool → queue_dao ─┬→ queue_service ─┬→ user_service ─┬→ device_service
        pool → log_dao ───┤                 │                │
                          ├→ delivery_service ───────────────┼→ IclockResource
                          └→ result_service ─────────────────┘
        queue_service + log_dao → CommandResource
        user_service + device_service → DirectoryResource
        queue_service → HealthResource
        """
        pool = Database.init(settings.database_url)
        queue_dao = QueueDAO(pool)
        log_dao = CommandLogDAO(pool)
        queue_service = QueueService(
            queue_dao, log_dao, retry_limit=settings.enqueue_retry_limit,
        )
        delivery_service = DeliveryService(
            queue_dao, log_dao, max_attempts=settings.max_delivery_attempts,
        )
        result_service = ResultService(
            log_dao, success_code=settings.success_return_code,
        )
        user_service = UserService(UserDAO(pool), queue_service)
        device_service = DeviceService(
            DeviceDAO(pool),
            user_service,
            queue_service,
            seed_new_devices=settings.seed_new_devices,
        )
        return State({
            "health": HealthResource(queue_service=queue_service),
            "iclock": IclockResource(
                device_service=device_service,
                delivery_service=delivery_service,
                result_service=result_service,
                ack_text=settings.ack_text,
                poll_interval=settings.device_poll_interval,
                timezone_offset=settings.device_timezone,
            ),
            "commands": CommandResource(
                queue_service=queue_service,
                log_dao=log_dao,
                page_limit=settings.log_page_limit,
            ),
            "directory": DirectoryResource(
                user_service=user_service,
                device_service=device_service,
            ),
        })

    @staticmethod
    @asynccontextmanager
    async def _lifespan(app: Litestar) -> AsyncIterator[None]:
        """Create tables on startup, dispose engine on shutdown."""
        await Database.create_tables()
        yield
        await Database.close()

    @staticmethod
    def provide_health(state: State) -> HealthResource:
        """Provide the pre-built HealthResource from app state."""
        health_resource: HealthResource = state.health
        return health_resource

    @staticmethod
    def provide_iclock(state: State) -> IclockResource:
        """Provide the pre-built IclockResource from app state."""
        iclock_resource: IclockResource = state.iclock
        return iclock_resource

    @staticmethod
    def provide_commands(state: State) -> CommandResource:
        """Provide the pre-built CommandResource from app state."""
        command_resource: CommandResource = state.commands
        return command_resource

    @staticmethod
    def provide_directory(state: State) -> DirectoryResource:
        """Provide the pre-built DirectoryResource from app state."""
        directory_resource: DirectoryResource = state.directory
        return directory_resource

    @staticmethod
    def create_app(settings: Settings | None = None) -> Litestar:
        """Create and configure the Litestar application."""
        if settings is None:
            settings = ConfigLoader.load_settings()
        LogSetup.configure(settings.log_level, settings.log_format)
        return Litestar(
            route_handlers=[
                HealthController, IclockController,
                CommandController, DirectoryController,
            ],
            state=AppFactory._build(settings),
            lifespan=[AppFactory._lifespan],
            dependencies={
                "health_resource": Provide(AppFactory.provide_health, sync_to_thread=False),
                "iclock_resource": Provide(AppFactory.provide_iclock, sync_to_thread=False),
                "command_resource": Provide(AppFactory.provide_commands, sync_to_thread=False),
                "directory_resource": Provide(
                    AppFactory.provide_directory, sync_to_thread=False,
                ),
            },
        )


# Public alias so conftest / uvicorn can call create_app() without knowing AppFactory.
create_app = AppFactory.create_app


class CLI:
    """Command-line interface for iclock-server."""

    @staticmethod
    def _build_parser() -> argparse.ArgumentParser:
        """Build the CLI argument parser."""
        parser = argparse.ArgumentParser(
            prog="iclock-server", description="Terminal command queue server",
        )
        subparsers = parser.add_subparsers(dest="command")

        run_parser = subparsers.add_parser("run", help="Start the server")
        run_parser.add_argument("--host", default="0.0.0.0")
        run_parser.add_argument("--port", type=int, default=8081)
        run_parser.add_argument("--reload", action="store_true", help="Auto-reload on file changes")

        return parser

    @staticmethod
    def main(argv: list[str] | None = None) -> None:
        """CLI entry point. Catches all exceptions and exits cleanly."""
        parser = CLI._build_parser()
        args = parser.parse_args(argv)

        if args.command is None:
            parser.print_help()
            sys.exit(1)

        try:
            if args.command == "run":
                import uvicorn

                uvicorn.run(
                    "iclock_server.app:create_app",
                    factory=True,
                    host=args.host,
                    port=args.port,
                    reload=args.reload,
                )
        except KeyboardInterrupt:
            pass
        except Exception as error:
            print(f"Error: {error}", file=sys.stderr)
            sys.exit(1)


if __name__ == "__main__":
    CLI.main()
