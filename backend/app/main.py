from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from uuid import uuid4

from fastapi import FastAPI, Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from structlog.contextvars import bound_contextvars

from backend.app.api.routes import error_response, router
from backend.app.dependencies import get_settings, get_telemetry
from backend.app.logging_config import configure_application_logging

REQUEST_ID_HEADER = "X-Request-ID"


def health_check() -> dict[str, object]:
    settings = get_settings()
    return {"status": "ok", "youtubeApiKeyConfigured": settings.youtube_api_key is not None}


@asynccontextmanager
async def app_lifespan(_: FastAPI) -> AsyncIterator[None]:
    configure_application_logging(get_settings())
    yield


async def _handle_validation_error(_: Request, exc: Exception) -> JSONResponse:
    details = exc.errors() if isinstance(exc, RequestValidationError) else str(exc)
    return error_response(400, "Invalid request body", details=jsonable_encoder(details))


def _request_id(request: Request) -> str:
    incoming = request.headers.get(REQUEST_ID_HEADER, "").strip()
    return incoming or str(uuid4())


async def _trace_request(
    request: Request,
    call_next: Callable[[Request], Awaitable[Response]],
) -> Response:
    """Tag every log line and telemetry event of one request with its id."""
    request_id = _request_id(request)
    with bound_contextvars(
        http_request_id=request_id,
        http_method=request.method,
        http_path=request.url.path,
    ):
        with get_telemetry().span(
            "http.request",
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        ) as span:
            response = await call_next(request)
            span.annotate(status_code=response.status_code)
    response.headers[REQUEST_ID_HEADER] = request_id
    return response


def create_app() -> FastAPI:
    app = FastAPI(title="Channel Keyword Monitor API", version="0.1.0", lifespan=app_lifespan)
    app.middleware("http")(_trace_request)
    app.add_exception_handler(RequestValidationError, _handle_validation_error)
    app.include_router(router)
    app.add_api_route(
        "/health",
        health_check,
        methods=["GET"],
        tags=["system"],
        operation_id="health_check",
    )
    return app


app = create_app()
