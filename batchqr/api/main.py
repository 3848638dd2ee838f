"""
FastAPI Application
==================

Main FastAPI application exposing editing sessions, row previews and batch
export jobs with progress streaming.
"""

from contextlib import asynccontextmanager
import uuid
from typing import AsyncGenerator, Any, Dict, Optional, Tuple, Type

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
import uvicorn

from batchqr.config.settings import get_settings
from batchqr.config.logging import get_logger
from batchqr.core.errors import (
    BatchQRError,
    DatasetImportError,
    DatasetParseError,
    ElementNotFoundError,
    EmptyTemplateError,
    ExportCancelledError,
    ExportError,
    ExportInProgressError,
    ExportJobNotFoundError,
    ImageDecodeError,
    MissingDatasetError,
    QREncodeError,
    SessionNotFoundError,
    TemplateParseError,
    UnsupportedFileTypeError,
)
from batchqr.core.queue.task_manager import TaskManager
from batchqr.core.session import SessionStore
from batchqr.models.schemas import ErrorResponse

logger = get_logger(__name__)
settings = get_settings()

# Most specific classes first; lookup walks the exception's MRO.
ERROR_STATUS: Dict[Type[BatchQRError], Tuple[int, str]] = {
    SessionNotFoundError: (404, "SESSION_NOT_FOUND"),
    ExportJobNotFoundError: (404, "EXPORT_JOB_NOT_FOUND"),
    ElementNotFoundError: (404, "ELEMENT_NOT_FOUND"),
    UnsupportedFileTypeError: (415, "UNSUPPORTED_FILE_TYPE"),
    DatasetParseError: (400, "DATASET_PARSE_ERROR"),
    DatasetImportError: (400, "DATASET_IMPORT_ERROR"),
    TemplateParseError: (400, "TEMPLATE_PARSE_ERROR"),
    EmptyTemplateError: (422, "EMPTY_TEMPLATE"),
    MissingDatasetError: (422, "MISSING_DATASET"),
    QREncodeError: (422, "QR_ENCODE_ERROR"),
    ImageDecodeError: (422, "IMAGE_DECODE_ERROR"),
    ExportInProgressError: (409, "EXPORT_IN_PROGRESS"),
    ExportCancelledError: (409, "EXPORT_CANCELLED"),
    ExportError: (500, "EXPORT_ERROR"),
}


def error_status(exc: BatchQRError) -> Tuple[int, str]:
    for cls in type(exc).__mro__:
        if cls in ERROR_STATUS:
            return ERROR_STATUS[cls]
    return 500, "BATCHQR_ERROR"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    logger.info("Starting FastAPI application", environment=settings.environment)

    try:
        yield
    finally:
        logger.info("Shutting down FastAPI application")

        try:
            await app.state.task_manager.close()
            logger.info("Task manager closed")
        except Exception as e:
            logger.error("Error closing task manager", error=str(e))

        try:
            await app.state.sessions.close_all()
            logger.info("Sessions closed")
        except Exception as e:
            logger.error("Error closing sessions", error=str(e))


def _error_response(request: Request, status_code: int, body: ErrorResponse) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


async def add_request_id(request: Request, call_next) -> JSONResponse:  # type: ignore
    """Add request ID to all requests."""
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = request_id

    response = await call_next(request)  # type: ignore
    response.headers["X-Request-ID"] = request_id  # type: ignore

    return response  # type: ignore


async def batchqr_exception_handler(request: Request, exc: BatchQRError) -> JSONResponse:
    """Map the batchqr exception hierarchy onto structured error responses."""
    status_code, error_code = error_status(exc)
    details: Dict[str, Any] = {}
    for attribute in ("session_id", "job_id", "element_id", "row_index"):
        value = getattr(exc, attribute, None)
        if value is not None:
            details[attribute] = value
    if exc.__cause__ is not None and settings.debug:
        details["cause"] = str(exc.__cause__)

    error_response = ErrorResponse(
        error=str(exc),
        error_code=error_code,
        details=details or None,
        request_id=getattr(request.state, "request_id", None),
    )

    log = logger.error if status_code >= 500 else logger.warning
    log(
        "Request failed",
        status_code=status_code,
        error_code=error_code,
        error=str(exc),
        request_id=error_response.request_id,
    )
    return _error_response(request, status_code, error_response)


async def custom_http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Custom HTTP exception handler with structured error response."""
    error_response = ErrorResponse(
        error=str(exc.detail),
        error_code=str(exc.status_code),
        details=None,
        request_id=getattr(request.state, "request_id", None),
    )

    logger.warning(
        "HTTP exception",
        status_code=exc.status_code,
        detail=exc.detail,
        request_id=error_response.request_id,
    )

    return _error_response(request, exc.status_code, error_response)


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """General exception handler for unexpected errors."""
    error_response = ErrorResponse(
        error="Internal server error",
        error_code="INTERNAL_ERROR",
        details={"exception": str(exc)} if settings.debug else None,
        request_id=getattr(request.state, "request_id", None),
    )

    logger.error(
        "Unhandled exception",
        exception=str(exc),
        request_id=error_response.request_id,
        exc_info=True,
    )

    return _error_response(request, 500, error_response)


def create_app() -> FastAPI:
    """
    Application factory function for creating FastAPI app instance.

    Each app owns its own session store and export task manager.

    Returns:
        FastAPI application instance
    """
    from batchqr.api.routes import exports, health, render, sessions

    application = FastAPI(
        title=settings.app_name,
        description="Render data-bound QR code layouts and export them in batches",
        version=settings.app_version,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )
    application.state.sessions = SessionStore()
    application.state.task_manager = TaskManager()

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_hosts,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "Content-Disposition"],
    )
    application.add_middleware(GZipMiddleware, minimum_size=1000)
    application.middleware("http")(add_request_id)

    application.add_exception_handler(BatchQRError, batchqr_exception_handler)  # type: ignore[arg-type]
    application.add_exception_handler(HTTPException, custom_http_exception_handler)  # type: ignore[arg-type]
    application.add_exception_handler(Exception, general_exception_handler)

    application.include_router(health.router)
    application.include_router(sessions.router)
    application.include_router(render.router)
    application.include_router(exports.router)

    @application.get("/", tags=["General"])
    async def root() -> dict[str, Any]:
        """Root endpoint with basic API information."""
        return {
            "name": settings.app_name,
            "version": settings.app_version,
            "docs_url": "/docs" if settings.debug else None,
            "health_check": "/health",
            "endpoints": {
                "create_session": "POST /sessions",
                "upload_dataset": "POST /sessions/{session_id}/dataset",
                "add_element": "POST /sessions/{session_id}/elements",
                "preview": "GET /sessions/{session_id}/preview?row=N",
                "start_export": "POST /sessions/{session_id}/exports",
                "export_status": "GET /exports/{job_id}",
                "export_events": "GET /exports/{job_id}/events",
                "export_archive": "GET /exports/{job_id}/archive",
                "cancel_export": "DELETE /exports/{job_id}",
            },
        }

    return application


app = create_app()


# Development server runner
def run_development_server(host: Optional[str] = None, port: Optional[int] = None) -> None:
    """Run development server with auto-reload."""
    uvicorn.run(
        "batchqr.api.main:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
        access_log=True,
    )


if __name__ == "__main__":
    run_development_server()
