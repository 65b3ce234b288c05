from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager, suppress
import logging

import punq
import uvicorn
from fastapi import FastAPI
from pydantic import ValidationError

from convai_bridge.api.routers.health import router as health_router
from convai_bridge.core.logging import configure_logging
from convai_bridge.core.settings import Settings, get_settings
from convai_bridge.dependency_injection import build_container
from convai_bridge.services.contracts import ChatPlatformProtocol, LanePoolProtocol
from convai_bridge.services.poll_loop import PollLoop

logger = logging.getLogger(__name__)


def create_app(settings: Settings, container: punq.Container | None = None) -> FastAPI:
    container = container if container is not None else build_container(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "starting telegram convai bridge",
            extra={"app_env": settings.app_env, "agent_id": settings.elevenlabs_agent_id},
        )
        poll_loop = container.resolve(PollLoop)
        poll_task = asyncio.create_task(poll_loop.run_forever(), name="telegram-poll-loop")

        try:
            yield
        finally:
            poll_task.cancel()
            with suppress(asyncio.CancelledError):
                await poll_task
            await container.resolve(LanePoolProtocol).close()
            await container.resolve(ChatPlatformProtocol).close()
            logger.info("telegram convai bridge shutdown complete")

    app = FastAPI(
        title="Telegram ConvAI Bridge",
        version="0.1.0",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        lifespan=lifespan,
    )
    app.include_router(health_router)
    return app


def run() -> None:
    try:
        settings = get_settings()
    except ValidationError as exc:
        configure_logging("INFO")
        logger.error("missing or invalid configuration, copy .env.example to .env and fill required values:\n%s", exc)
        raise SystemExit(1) from exc

    configure_logging(settings.effective_log_level)
    logger.info("health endpoint listening", extra={"host": settings.host, "port": settings.port})
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port, log_config=None)
