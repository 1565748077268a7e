"""Application entry point and FastAPI app factory."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
import sys
from pathlib import Path

import uvicorn
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from .config.settings import settings
from .controllers import inspections, media, transcription
from .database import dispose_engine, init_models
from .middleware import StructuredLoggingMiddleware, TelemetryMiddleware

logger = logging.getLogger(__name__)

API_PREFIX = "/api"

_LINE_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

# Logger name -> settings attribute holding its dedicated file.
_DEDICATED_LOG_FILES = {
    "app.services.statement_generator": "pipeline_log_file",
    "app.pipelines.inspection": "pipeline_log_file",
    "app.statement_edits": "edit_log_file",
}

_QUIET_LOGGERS = ("botocore", "boto3", "urllib3", "httpx", "sqlalchemy.engine")


def _rotating_handler(path: str, *, max_bytes: int, fmt: str = _LINE_FORMAT) -> RotatingFileHandler:
    log_path = Path(path)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(log_path, maxBytes=max_bytes, backupCount=5, encoding="utf-8")
    handler.setFormatter(logging.Formatter(fmt))
    return handler


def _stdout_handler(fmt: str = _LINE_FORMAT) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(fmt))
    return handler


def _configure_logging() -> None:
    """Root sinks on stdout and the app log; generation and edit audit get their own files."""

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(_stdout_handler())
    root_logger.addHandler(_rotating_handler(settings.log_file, max_bytes=1_000_000))
    root_logger.setLevel(logging.DEBUG if settings.debug else logging.INFO)

    # Request lines are already JSON; print them bare and only once.
    request_logger = logging.getLogger("app.middleware.structured")
    request_logger.handlers.clear()
    request_logger.addHandler(_stdout_handler("%(message)s"))
    request_logger.setLevel(logging.INFO)
    request_logger.propagate = False

    for name, attribute in _DEDICATED_LOG_FILES.items():
        target = logging.getLogger(name)
        target.handlers.clear()
        target.addHandler(
            _rotating_handler(
                getattr(settings, attribute),
                max_bytes=500_000,
                fmt="%(asctime)s | %(levelname)s | %(message)s",
            )
        )
        target.setLevel(logging.INFO)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""

    _configure_logging()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
        description="Home inspection defect statements (DDID) from photos and notes",
    )

    app.add_middleware(TelemetryMiddleware)
    app.add_middleware(StructuredLoggingMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )

    app.include_router(inspections.router, prefix=API_PREFIX)
    app.include_router(media.router, prefix=API_PREFIX)
    app.include_router(transcription.router, prefix=API_PREFIX)

    @app.get("/", include_in_schema=False)
    async def root() -> dict[str, str]:
        """Root endpoint."""

        return {
            "message": f"Welcome to {settings.app_name}",
            "version": settings.app_version,
            "status": "operational",
        }

    @app.get("/health", include_in_schema=False)
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""

        return {
            "status": "healthy",
            "service": settings.app_name,
            "version": settings.app_version,
        }

    @app.get("/metrics", include_in_schema=False)
    async def metrics() -> Response:
        """Expose application metrics for Prometheus scraping."""

        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request, exc):
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request, exc):
        problems = [
            f"{'.'.join(str(part) for part in error.get('loc', ())[1:]) or 'body'}: {error.get('msg')}"
            for error in exc.errors()
        ]
        return JSONResponse(
            status_code=400,
            content={"detail": "Invalid request: " + "; ".join(problems)},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request, exc):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )

    @app.on_event("startup")
    async def startup_event() -> None:
        await init_models()

    @app.on_event("shutdown")
    async def shutdown_event() -> None:
        await dispose_engine()

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
