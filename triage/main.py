from contextlib import asynccontextmanager
import logging
import time

from fastapi import FastAPI
from starlette.requests import Request

from triage.api.router import api_router
from triage.core.config import get_settings
from triage.core.telemetry import configure_logging, setup_telemetry, shutdown_telemetry
from triage.review.session import get_review_session

settings = get_settings()
configure_logging(settings.log_level)
_telemetry_runtime = setup_telemetry(settings)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    try:
        yield
    finally:
        # Pending stage writes are dropped on shutdown; they do not survive a restart.
        if get_review_session.cache_info().currsize:
            await get_review_session().aclose()
            get_review_session.cache_clear()
        shutdown_telemetry(_telemetry_runtime)


app = FastAPI(title=settings.app_name, lifespan=lifespan)


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
