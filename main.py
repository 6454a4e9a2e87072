"""Run the FastAPI app for the memory-grounded chat backend."""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI

from src.chat_orchestrator.container import Services, build_services
from src.memory_core.config import MemoryCoreConfig
from src.routers import cache_router, chat_router, conversations_router, memories_router


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def create_app(services: Optional[Services] = None) -> FastAPI:
    """Build the app; ``services`` are constructed at startup unless supplied."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = services is None
        if owned:
            config = MemoryCoreConfig()
            configure_logging(config.log_level)
            app.state.services = build_services(config)
        else:
            app.state.services = services
        try:
            yield
        finally:
            if owned:
                await app.state.services.shutdown()
            else:
                await app.state.services.orchestrator.wait_for_background()

    app = FastAPI(title="Memory Chat", version="0.1.0", lifespan=lifespan)
    app.include_router(conversations_router)
    app.include_router(chat_router)
    app.include_router(memories_router)
    app.include_router(cache_router)
    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
