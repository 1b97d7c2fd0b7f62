from contextlib import asynccontextmanager
import logging
import time
from typing import Any

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.requests import Request

from jobly.api.router import api_router
from jobly.core.config import get_settings
from jobly.core.telemetry import TelemetryRuntime, configure_api_logging, setup_api_telemetry, shutdown_api_telemetry
from jobly.services.repository import get_repository

settings = get_settings()
configure_api_logging(settings)
_telemetry_runtime: TelemetryRuntime | None = None
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    try:
        yield
    finally:
        if _telemetry_runtime is not None:
            shutdown_api_telemetry(app, _telemetry_runtime)
        # Ensure asyncpg pool shuts down on app teardown.
        await get_repository().close()
        get_repository.cache_clear()


app = FastAPI(title=settings.app_name, version=settings.app_version, lifespan=lifespan)
_telemetry_runtime = setup_api_telemetry(app, settings)


def _error_response(status_code: int, message: Any, headers: dict[str, str] | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": {"message": message, "status": status_code}},
        headers=headers,
    )


def _validation_messages(errors: list[dict[str, Any]]) -> list[str]:
    messages: list[str] = []
    for error in errors:
        location = [str(part) for part in error.get("loc", ()) if part not in {"body", "query", "path"}]
        prefix = ".".join(location)
        messages.append(f"{prefix}: {error['msg']}" if prefix else error["msg"])
    return messages


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(_: Request, exc: StarletteHTTPException) -> JSONResponse:
    return _error_response(exc.status_code, exc.detail, getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def request_validation_exception_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
    return _error_response(400, _validation_messages(list(exc.errors())))


@app.exception_handler(ValidationError)
async def validation_exception_handler(_: Request, exc: ValidationError) -> JSONResponse:
    return _error_response(400, _validation_messages(list(exc.errors())))


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled error method=%s path=%s", request.method, request.url.path, exc_info=exc)
    return _error_response(500, "Internal Server Error")


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
