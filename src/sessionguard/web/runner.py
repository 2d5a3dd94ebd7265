"""Uvicorn server runner with custom configuration and crash handling."""

import asyncio
import sys
from types import TracebackType
from typing import Any

import structlog
import uvicorn
from uvicorn.config import LOGGING_CONFIG

from sessionguard.app import App
from sessionguard.config import Config
from sessionguard.web.server import create_fastapi_app

logger = structlog.get_logger(__name__)


class CrashGuard:
    """Stops the server when an exception escapes to the event loop.

    Failures nobody awaits (crashed background tasks, callbacks) would
    otherwise leave the process half-working, so they shut it down instead.
    """

    def __init__(self, server: uvicorn.Server) -> None:
        self._server = server
        self.crashed = False

    async def serve(self) -> None:
        asyncio.get_running_loop().set_exception_handler(self.handle_loop_exception)
        await self._server.serve()

    def handle_loop_exception(self, _: asyncio.AbstractEventLoop, context: dict[str, Any]) -> None:
        exc = context.get("exception")
        logger.critical("unhandled_async_exception", message=context.get("message"), exc_info=exc)
        self.crashed = True
        self._server.should_exit = True

    @staticmethod
    def handle_uncaught_exception(
        exc_type: type[BaseException], exc: BaseException, tb: TracebackType | None
    ) -> None:
        logger.critical("uncaught_exception", exc_info=(exc_type, exc, tb))


def run_server(app: App, config: Config) -> int:
    """Run the Uvicorn server and return the process exit code."""
    fastapi_app = create_fastapi_app(app, config)

    log_config = LOGGING_CONFIG.copy()
    log_config["formatters"]["access"]["fmt"] = '%(asctime)s - "%(request_line)s" %(status_code)s'
    log_config["formatters"]["default"]["fmt"] = "%(asctime)s - %(levelname)s - %(message)s"

    server = uvicorn.Server(
        uvicorn.Config(fastapi_app, host=config.host, port=config.port, log_config=log_config, access_log=True)
    )
    guard = CrashGuard(server)
    sys.excepthook = guard.handle_uncaught_exception
    asyncio.run(guard.serve())

    if guard.crashed or not server.started:
        return 1
    return 0
