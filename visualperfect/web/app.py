"""FastAPI application factory."""

from __future__ import annotations

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from visualperfect.config.logging import setup_logging
from visualperfect.config.settings import get_settings
from visualperfect.constants import VERSION
from visualperfect.exceptions import InvalidSubject, MissingCandidate, VisualPerfectError
from visualperfect.models.api import ErrorResponse
from visualperfect.web.middleware import AccessLogMiddleware, RequestIDMiddleware
from visualperfect.web.routes.visual import router as visual_router

logger = structlog.get_logger(__name__)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(message=message).model_dump())


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()
    setup_logging(log_level=settings.log_level, json_output=not settings.debug)

    app = FastAPI(
        title="Visual Perfect",
        description="Visual regression testing for Storybook stories",
        version=VERSION,
    )

    @app.exception_handler(InvalidSubject)
    @app.exception_handler(MissingCandidate)
    async def bad_request_handler(request: Request, exc: VisualPerfectError) -> JSONResponse:
        logger.warning("bad_request", path=request.url.path, error=str(exc))
        return _error(400, str(exc))

    @app.exception_handler(RequestValidationError)
    async def validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        fields = ", ".join(".".join(str(p) for p in err["loc"][1:]) or "body" for err in exc.errors())
        logger.warning("invalid_request_body", path=request.url.path, fields=fields)
        return _error(400, f"invalid request: {fields}")

    @app.exception_handler(VisualPerfectError)
    async def engine_error_handler(request: Request, exc: VisualPerfectError) -> JSONResponse:
        logger.error("request_failed", path=request.url.path, error=str(exc))
        return _error(500, str(exc))

    # Middleware (order matters: last added runs first)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type", "X-Request-ID"],
    )
    app.add_middleware(AccessLogMiddleware)
    app.add_middleware(RequestIDMiddleware)

    app.include_router(visual_router, prefix=settings.api_base_path)

    @app.get(f"{settings.api_base_path}/health")
    async def health_check() -> dict[str, object]:
        from visualperfect.web.health import check_health

        return await check_health()

    logger.info("app_created", api_base_path=settings.api_base_path)
    return app
