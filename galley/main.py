import logging
import os
import time
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

if "PYTEST_CURRENT_TEST" not in os.environ:
    load_dotenv()

from galley.core.config import settings, validate_config
from galley.core.database import create_all_tables
from galley.core.errors import (
    AppError,
    app_error_handler,
    http_error_handler,
    request_validation_handler,
    unhandled_exception_handler,
)
from galley.core.logging import configure_logging
from galley.core.middleware.cors import EdgeCORSMiddleware
from galley.core.middleware.metrics import MetricsMiddleware
from galley.core.middleware.request_id import RequestIdMiddleware
from galley.core.middleware.tracing import TracingMiddleware
from galley.core.tracing import setup_tracing
from galley.core.validation import validate_env
from galley.api import automation, functions, health, metrics, signaling, usage

configure_logging(settings.ENV)
validate_env()
validate_config(strict=settings.CONFIG_STRICT)
setup_tracing(enabled=settings.OTEL_ENABLED, exporter_name=settings.OTEL_EXPORTER)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger = logging.getLogger("galley")
    logger.info("Starting Galley backend...")
    create_all_tables()
    app.state.startup_time = time.time()
    try:
        yield
    finally:
        logger.info("Stopping Galley backend...")


app = FastAPI(title="Galley - restaurant operations backend", lifespan=lifespan)

# Middlewares (last added runs first)
app.add_middleware(RequestIdMiddleware)
app.add_middleware(TracingMiddleware)
app.add_middleware(MetricsMiddleware)
app.add_middleware(EdgeCORSMiddleware, allow_origin=settings.CORS_ALLOW_ORIGIN)

app.add_exception_handler(AppError, app_error_handler)
app.add_exception_handler(StarletteHTTPException, http_error_handler)
app.add_exception_handler(RequestValidationError, request_validation_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

app.include_router(functions.router)
app.include_router(signaling.router, tags=["signaling"])
app.include_router(usage.router)
app.include_router(automation.router)
app.include_router(health.router)
app.include_router(metrics.router)


def run():
    import uvicorn

    uvicorn.run(
        "galley.main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        log_level="info",
        access_log=True,
    )


if __name__ == "__main__":
    run()
