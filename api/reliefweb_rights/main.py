from contextlib import asynccontextmanager
import logging
import time

from fastapi import FastAPI
from starlette.requests import Request

from reliefweb_rights.api.router import api_router
from reliefweb_rights.core.config import get_settings
from reliefweb_rights.core.telemetry import (
    TelemetryRuntime,
    configure_api_logging,
    setup_api_telemetry,
    shutdown_api_telemetry,
)
from reliefweb_rights.services.repository import get_repository

settings = get_settings()
_telemetry_runtime: TelemetryRuntime | None = None
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    logger.info(
        "posting rights service starting environment=%s privileged_domains=%s",
        settings.environment,
        len(settings.privileged_domains),
    )
    try:
        yield
    finally:
        if _telemetry_runtime is not None:
            shutdown_api_telemetry(app, _telemetry_runtime)
        await get_repository().close()
        get_repository.cache_clear()


configure_api_logging(settings)
app = FastAPI(
    title=settings.app_name,
    description="Posting rights consolidation and edit access rules for ReliefWeb sources.",
    lifespan=lifespan,
)
_telemetry_runtime = setup_api_telemetry(app, settings)


@app.middleware("http")
async def request_logging_middleware(request: Request, call_next):
    started_at = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - started_at) * 1000.0
    logger.info(
        "http request method=%s path=%s client=%s status=%s duration_ms=%.2f",
        request.method,
        request.url.path,
        request.headers.get(settings.client_id_header, "-"),
        response.status_code,
        elapsed_ms,
    )
    return response


app.include_router(api_router)
