from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from hotkeys.api.dependencies import get_scheduler_service
from hotkeys.api.routes.auth import router as auth_router
from hotkeys.api.routes.collect import router as collect_router
from hotkeys.api.routes.cron import router as cron_router
from hotkeys.api.routes.system import router as system_router
from hotkeys.core.config import get_settings
from hotkeys.core.logging import configure_logging


@asynccontextmanager
async def app_lifespan(_: FastAPI):
    settings = get_settings()
    scheduler = None
    if settings.SCHEDULER_ENABLED:
        scheduler = get_scheduler_service()
        scheduler.start()
    else:
        logging.info("Scheduler disabled; collection runs only via /api/collect or /api/cron/collect")

    yield

    if scheduler is not None:
        await scheduler.stop()
        await scheduler.collector.persistence.wait_for_pending_writes()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application instance."""
    settings = get_settings()
    configure_logging(settings.LOG_LEVEL)

    application = FastAPI(
        title="Hot Keyword Aggregator",
        version="1.0",
        lifespan=app_lifespan,
    )

    allowed_origins = {"http://localhost:3000", "http://127.0.0.1:3000"}
    allowed_origins.update(str(origin).rstrip("/") for origin in settings.CORS_ORIGINS)

    application.add_middleware(
        CORSMiddleware,
        allow_origins=sorted(allowed_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    application.include_router(collect_router)
    application.include_router(cron_router)
    application.include_router(auth_router)
    application.include_router(system_router)

    @application.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logging.error("Unhandled exception at %s", request.url.path, exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "status": "error",
                "msg": "An internal system error occurred. Please check server logs.",
            },
        )

    @application.get("/")
    def read_root() -> dict[str, str]:
        return {"status": "System Operational", "message": "Hot Keyword Aggregator is Running"}

    return application


app = create_app()
