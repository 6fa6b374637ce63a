import uuid

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from dealwear.api.routes import assistant, health, search
from dealwear.api.routes.search import (
    INVALID_REQUEST_MESSAGE,
    UNAVAILABLE_MESSAGE,
    QueryValidationError,
)
from dealwear.logging import configure_logging
from dealwear.models.contracts import ErrorResponse, SearchErrorResponse, SearchResponse

configure_logging()

logger = structlog.get_logger()

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}

app = FastAPI(
    title="Deal & Wear API",
    version=health.VERSION,
    docs_url="/docs",
    redoc_url=None,
)


def _is_search(request: Request) -> bool:
    return request.url.path.rstrip("/") == "/search"


def _finalize(request: Request, response: Response) -> Response:
    """Stamp CORS and request-id headers on responses built outside the middleware."""
    response.headers.update(CORS_HEADERS)
    response.headers["X-Request-ID"] = getattr(
        request.state, "request_id", request.headers.get("X-Request-ID", "")
    )
    return response


@app.middleware("http")
async def cors_middleware(request: Request, call_next):
    """Answer every preflight with an empty 200 and add CORS headers to all responses."""
    if request.method == "OPTIONS":
        response = Response(status_code=200)
    else:
        response = await call_next(request)
    response.headers.update(CORS_HEADERS)
    return response


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    """Attach a unique request ID to every request for log correlation.

    Sets the ID in structlog context vars (appears in all log entries for the
    request) and returns it in the X-Request-ID response header.
    """
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = request_id
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id)
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


@app.exception_handler(QueryValidationError)
async def query_validation_handler(request: Request, exc: QueryValidationError) -> JSONResponse:
    logger.info("request_rejected", path=request.url.path, reason=exc.message)
    if _is_search(request):
        content = SearchErrorResponse(error=exc.message).model_dump()
    else:
        content = ErrorResponse(
            error="validation_error", message=exc.message, retryable=False
        ).model_dump(exclude_none=True)
    return JSONResponse(status_code=400, content=content)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """Return a 400 in our own error shape instead of FastAPI's default 422."""
    if _is_search(request):
        content = SearchErrorResponse(error=INVALID_REQUEST_MESSAGE).model_dump()
    else:
        messages = []
        for err in exc.errors():
            loc = " → ".join(str(part) for part in err["loc"])
            messages.append(f"{loc}: {err['msg']}")
        content = ErrorResponse(
            error="validation_error", message="; ".join(messages), retryable=False
        ).model_dump(exclude_none=True)
    return JSONResponse(status_code=400, content=content)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == 405 and _is_search(request):
        content = SearchErrorResponse(error="Method not allowed").model_dump()
    else:
        content = ErrorResponse(
            error="http_error", message=str(exc.detail), retryable=False
        ).model_dump(exclude_none=True)
    return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> Response:
    """Last-resort handler.

    Search never surfaces a server error to the client: a failure there is a
    soft empty result. Other routes get the ErrorResponse JSON shape.
    """
    logger.error(
        "unhandled_exception",
        path=request.url.path,
        method=request.method,
        error_type=type(exc).__name__,
        exc_info=exc,
    )
    if _is_search(request):
        query = request.query_params.get("q") or request.query_params.get("query") or ""
        body = SearchResponse(query=query, count=0, message=UNAVAILABLE_MESSAGE)
        return _finalize(request, JSONResponse(status_code=200, content=body.model_dump()))

    content = ErrorResponse(
        error="internal_error", message="An unexpected error occurred", retryable=True
    ).model_dump(exclude_none=True)
    return _finalize(request, JSONResponse(status_code=500, content=content))


app.include_router(health.router)
app.include_router(search.router)
app.include_router(assistant.router)
