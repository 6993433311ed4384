from contextlib import asynccontextmanager
import logging
import time

from fastapi import FastAPI
from starlette.requests import Request

from voice_recipe.api.router import api_router
from voice_recipe.core.config import get_settings, require_api_token
from voice_recipe.core.telemetry import configure_logging, setup_telemetry, shutdown_telemetry

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    settings = get_settings()
    require_api_token(settings)
    configure_logging(correlate=settings.otel_log_correlation)
    telemetry_runtime = setup_telemetry(settings)
    try:
        yield
    finally:
        shutdown_telemetry(telemetry_runtime)


app = FastAPI(title="voice-recipe", lifespan=lifespan)


@app.middleware("http")
async def request_logging_middleware(request: Request, call_next):
    started_at = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - started_at) * 1000.0
    logger.info(
        "http request method=%s path=%s status=%s duration_ms=%.2f",
        request.method,
        request.url.path,
        response.status_code,
        elapsed_ms,
    )
    return response


app.include_router(api_router)
