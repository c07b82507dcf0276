"""Verdict FastAPI application."""

import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from verdict import __version__
from verdict.config import get_settings
from verdict.container import Container, build_container
from verdict.errors import InternalError, RateLimited, VerdictServiceError
from verdict.logging_config import configure_from_settings, get_logger
from verdict.middleware.request_context import RequestContextMiddleware
from verdict.routes.consensus import router as consensus_router
from verdict.routes.credits import router as credits_router
from verdict.routes.requests import router as requests_router
from verdict.routes.verdicts import router as verdicts_router

logger = get_logger(__name__)


def _service_error_response(exc: VerdictServiceError) -> JSONResponse:
    headers = {}
    if isinstance(exc, RateLimited):
        headers["Retry-After"] = str(exc.retry_after)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers or None)


async def handle_service_error(request: Request, exc: VerdictServiceError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            "service_error",
            error_type=exc.error_type,
            detail=exc.message,
            path=request.url.path,
        )
    return _service_error_response(exc)


async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    loc = [str(p) for p in first.get("loc", ()) if p not in ("body", "query", "path")]
    field = ".".join(loc) or None
    message = first.get("msg", "Invalid request")
    return JSONResponse(
        status_code=400,
        content={
            "error": "validation_error",
            "detail": f"{field}: {message}" if field else message,
            "field": field,
        },
    )


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "unhandled_exception",
        path=request.url.path,
        method=request.method,
        error=str(exc),
        exc_info=exc,
    )
    return _service_error_response(InternalError())


def create_app(container: Container | None = None) -> FastAPI:
    """Build the app. Without a container one is built from settings at startup."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if getattr(app.state, "container", None) is None:
            settings = get_settings()
            configure_from_settings(settings)
            app.state.container = build_container(settings)

        active: Container = app.state.container
        await active.startup()
        logger.info("application_started", version=__version__)
        yield

        logger.info("shutting_down")
        await active.shutdown()
        logger.info("shutdown_complete")

    app = FastAPI(
        title="Verdict",
        description="Crowd feedback requests, verdicts and consensus",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.container = container

    cors_origins = (
        container.settings.cors_origin_list
        if container is not None
        else os.getenv("VERDICT_CORS_ORIGINS", "http://localhost:3000").split(",")
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestContextMiddleware)

    app.add_exception_handler(VerdictServiceError, handle_service_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(Exception, handle_unexpected_error)

    app.include_router(requests_router)
    app.include_router(verdicts_router)
    app.include_router(consensus_router)
    app.include_router(credits_router)

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "ok", "service": "verdict"}

    return app


app = create_app()
