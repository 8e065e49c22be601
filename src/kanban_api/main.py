from __future__ import annotations

import logging
import uuid
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .errors import ErrorKind, SnapshotLoadError, TaskError, TaskNotFoundError, TaskValidationError
from .logging_setup import setup_logging
from .persistence import open_task_store
from .repositories import TaskRepository
from .routers import tasks as tasks_router
from .settings import Settings, get_settings

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

openapi_tags = [
    {"name": "health", "description": "Service health and status endpoints."},
    {
        "name": "tasks",
        "description": "CRUD operations for kanban tasks plus ordering within and across columns.",
    },
]


def _error_response(status_code: int, kind: ErrorKind, message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": kind.value, "message": message, **extra})


def _install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(TaskValidationError)
    async def task_validation_handler(request: Request, exc: TaskValidationError) -> JSONResponse:
        return _error_response(400, exc.kind, exc.message)

    @app.exception_handler(TaskNotFoundError)
    async def not_found_handler(request: Request, exc: TaskNotFoundError) -> JSONResponse:
        return _error_response(404, exc.kind, exc.message)

    @app.exception_handler(TaskError)
    async def task_error_handler(request: Request, exc: TaskError) -> JSONResponse:
        logger.error("Unhandled task error on %s %s: %s", request.method, request.url.path, exc)
        return _error_response(500, ErrorKind.INTERNAL_ERROR, "Internal server error")

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        """
        Malformed JSON or wrongly typed fields.

        Response format:
            {"error": "invalid_json", "message": "...", "detail": [... pydantic error details ...]}
        """
        return _error_response(
            400,
            ErrorKind.INVALID_JSON,
            "Request body is not valid JSON for this endpoint",
            detail=jsonable_encoder(exc.errors()),
        )

    @app.exception_handler(OSError)
    async def storage_error_handler(request: Request, exc: OSError) -> JSONResponse:
        logger.error("Storage failure on %s %s: %s", request.method, request.url.path, exc)
        return _error_response(500, ErrorKind.INTERNAL_ERROR, "Internal server error")


def _install_middleware(app: FastAPI, settings: Settings) -> None:
    # Middleware added last runs first: CORS wraps the request id, which wraps the
    # JSON check, so 415s carry both CORS and X-Request-ID headers.
    @app.middleware("http")
    async def require_json_body(request: Request, call_next):
        """Reject POST/PUT bodies that are not declared as application/json."""
        if request.method in ("POST", "PUT"):
            content_type = request.headers.get("content-type", "")
            if not content_type.lower().startswith("application/json"):
                return _error_response(
                    415, ErrorKind.UNSUPPORTED_MEDIA_TYPE, "Content-Type must be application/json"
                )
        return await call_next(request)

    @app.middleware("http")
    async def request_id(request: Request, call_next):
        """Tag each request with an id (the caller's X-Request-ID or a fresh one) and log it."""
        rid = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.request_id = rid
        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = rid
        logger.info(
            "%s %s -> %d request_id=%s", request.method, request.url.path, response.status_code, rid
        )
        return response

    # Configure CORS based on settings (ALLOWED_ORIGINS), with '*' meaning any origin
    allow_all = (settings.allowed_origins == ["*"]) or (len(settings.allowed_origins) == 0)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if allow_all else settings.allowed_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Accept", "Authorization", "Content-Type", "X-CSRF-Token", REQUEST_ID_HEADER],
        expose_headers=["Link", REQUEST_ID_HEADER],
        max_age=300,
    )


# PUBLIC_INTERFACE
def create_app(settings: Optional[Settings] = None, store: Optional[TaskRepository] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Settings to use; loaded from the environment when omitted.
        store: Task store to serve; when omitted the persisted store at
            settings.tasks_json_path is opened (SnapshotLoadError on a bad file).
    """
    settings = settings or get_settings()
    if store is None:
        store = open_task_store(settings.tasks_json_path)

    app = FastAPI(
        title="Kanban Task API",
        description="Task tracking API for a todo/doing/done board with ordered columns and JSON file persistence.",
        version="0.1.0",
        openapi_tags=openapi_tags,
    )
    app.state.settings = settings
    app.state.store = store

    _install_middleware(app, settings)
    _install_error_handlers(app)

    # PUBLIC_INTERFACE
    @app.get("/", summary="Health Check", tags=["health"])
    def health_check():
        """
        Health check endpoint.

        Returns:
            A JSON object indicating service health and the persistence file in use.
        """
        return {"message": "Healthy", "persistence": settings.tasks_json_path}

    app.include_router(tasks_router.router)
    return app


# PUBLIC_INTERFACE
def run() -> None:
    """Load settings, open the task store and serve the API with uvicorn."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_file)

    try:
        store = open_task_store(settings.tasks_json_path)
    except SnapshotLoadError as e:
        logger.critical("Failed to load tasks: %s", e)
        raise SystemExit(1) from e

    app = create_app(settings, store)
    logger.info("API listening on http://%s:%d", settings.host, settings.port)
    logger.info("Persistence file: %s", settings.tasks_json_path)
    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)
