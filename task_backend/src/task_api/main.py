import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import Depends, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exception_handlers import http_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from .db import PersistenceGateway
from .logging_setup import setup_logging
from .routers import tasks as tasks_router
from .service import get_gateway
from .settings import get_settings
from .utils import ALLOWED_METHODS, cors_headers

logger = logging.getLogger(__name__)

openapi_tags = [
    {"name": "health", "description": "Service health and status endpoints."},
    {
        "name": "tasks",
        "description": "Create, list, update and delete the caller's tasks.",
    },
]

_settings = get_settings()
setup_logging(_settings.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    get_gateway().close()


app = FastAPI(
    title="Task Backend",
    description="Task management API backed by MongoDB, with a mock-data fallback when the store is unavailable.",
    version="0.1.0",
    openapi_tags=openapi_tags,
    lifespan=lifespan,
)


@app.middleware("http")
async def cors_middleware(request: Request, call_next):
    """
    Attach CORS headers to every response and answer preflight requests.

    OPTIONS is answered here with 200 and an empty body, before routing,
    authentication or any store connection attempt.
    """
    headers = cors_headers(request, get_settings())
    if request.method == "OPTIONS":
        return Response(status_code=200, headers=headers)
    response = await call_next(request)
    response.headers.update(headers)
    return response


def _jsonable_errors(exc: RequestValidationError) -> list:
    # ValueError instances raised by validators sit in the error context
    return jsonable_encoder([{k: v for k, v in err.items() if k != "ctx"} for err in exc.errors()])


# Global exception handlers for consistent JSON on errors
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Return a consistent JSON structure for request validation errors.

    Response format:
        {
            "error": "ValidationError",
            "detail": [... pydantic/fastapi error details ...],
            "message": "Request validation failed"
        }
    """
    return JSONResponse(
        status_code=400,
        content={
            "error": "ValidationError",
            "message": "Request validation failed",
            "detail": _jsonable_errors(exc),
        },
    )


def is_task_resource(path: str) -> bool:
    """True for the task resource path itself, with or without a trailing slash."""
    return path.rstrip("/") == _settings.tasks_base_path


@app.exception_handler(StarletteHTTPException)
async def method_not_allowed_handler(request: Request, exc: StarletteHTTPException) -> Response:
    """
    Advertise the full method set of the task resource on 405 responses.
    """
    if exc.status_code == 405 and is_task_resource(request.url.path):
        exc.headers = {**(exc.headers or {}), "Allow": ", ".join(ALLOWED_METHODS)}
    return await http_exception_handler(request, exc)


@app.exception_handler(Exception)
async def internal_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Log unexpected failures server-side and answer with a generic 500.
    """
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error"},
        headers=cors_headers(request, get_settings()),
    )


# PUBLIC_INTERFACE
@app.get("/", summary="Health Check", tags=["health"])
def health_check(gateway: PersistenceGateway = Depends(get_gateway)):
    """
    Health check endpoint.

    Returns:
        A JSON object indicating service health, the configured backend and the store state.
    """
    settings = get_settings()
    store = "memory" if settings.persistence_backend == "memory" else gateway.state.value
    return {"message": "Healthy", "backend": settings.persistence_backend, "store": store}


# PUBLIC_INTERFACE
@app.get("/api/ping", summary="Ping", tags=["health"])
def ping():
    """
    Liveness probe used by the browser client.
    """
    return {"ok": True, "timestamp": datetime.now(timezone.utc).isoformat()}


# Include routers
app.include_router(tasks_router.router, prefix=_settings.tasks_base_path)
