"""FastAPI application: HTTP views, downstream WebSocket, gateway lifecycle."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api import create_api_router
from .config import GatewaySettings
from .market import MarketGateway, create_gateway, create_stream_router

logger = logging.getLogger(__name__)


def _log_unhandled(loop: asyncio.AbstractEventLoop, context: dict) -> None:
    """Loop exception handler: log and keep serving."""
    exc = context.get("exception")
    logger.error("Unhandled error in background task: %s", context.get("message"), exc_info=exc)


def create_app(
    settings: GatewaySettings | None = None,
    gateway: MarketGateway | None = None,
) -> FastAPI:
    """Build the application. The gateway starts and stops with the app lifespan."""
    settings = settings or GatewaySettings.from_env()
    gateway = gateway or create_gateway(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        asyncio.get_running_loop().set_exception_handler(_log_unhandled)
        await gateway.start()
        try:
            yield
        finally:
            await gateway.stop()

    app = FastAPI(title="Pocket Gateway", lifespan=lifespan)
    app.state.gateway = gateway
    app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])

    @app.exception_handler(Exception)
    async def unhandled_exception(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error serving %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    app.include_router(create_api_router(gateway))
    app.include_router(create_stream_router(gateway.hub))
    return app


def run() -> None:
    """Console entry point: configure logging and serve with uvicorn."""
    import uvicorn

    settings = GatewaySettings.from_env()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info("Starting gateway on %s:%d", settings.host, settings.port)
    logger.info("Email configured: %s", "yes" if settings.email else "no")
    logger.info("SSID configured: %s", "yes" if settings.ssid else "no")
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
