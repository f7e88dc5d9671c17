"""FastAPI application factory for cardreview.

Creates and configures the review engine API with:
- CORS middleware for cross-origin requests
- Request logging middleware with correlation IDs
- Database connection lifecycle management
- Translation of review engine errors into HTTP responses
- Transition, cycle, quality, dimension and health routers

Example usage:
    >>> from cardreview.config import CardReviewConfig
    >>> from cardreview.web.app import create_app
    >>>
    >>> app = create_app(CardReviewConfig())
    >>>
    >>> import uvicorn
    >>> uvicorn.run(app, host="0.0.0.0", port=8000)
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from cardreview import __version__
from cardreview.config import CardReviewConfig
from cardreview.database.connection import get_engine, get_session_factory
from cardreview.errors import AccessDeniedError, ErrorKind, ReviewEngineError
from cardreview.logging import get_logger
from cardreview.web.middleware import RequestLoggingMiddleware
from cardreview.web.routes.cycles import create_cycles_router
from cardreview.web.routes.dimensions import create_dimensions_router
from cardreview.web.routes.health import create_health_router
from cardreview.web.routes.quality import create_quality_router
from cardreview.web.routes.transitions import create_transitions_router

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

logger = get_logger(__name__)

STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.VALIDATION: 422,
    ErrorKind.CONFLICT: 409,
    ErrorKind.INTERNAL: 500,
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create the engine and session factory on startup, dispose on shutdown.

    A session factory already placed on app.state (tests) is left alone.
    """
    config: CardReviewConfig = app.state.config
    logger.info("app_startup_begin", host=config.web.host, port=config.web.port)

    engine = None
    if getattr(app.state, "session_factory", None) is None:
        engine = get_engine(config.database)
        app.state.engine = engine
        app.state.session_factory = get_session_factory(engine)
        logger.info(
            "database_pool_initialized",
            pool_size=config.database.pool_size,
            max_overflow=config.database.max_overflow,
        )

    yield

    logger.info("app_shutdown_begin")
    if engine is not None:
        await engine.dispose()
        logger.info("database_pool_disposed")


async def review_error_handler(request: Request, exc: ReviewEngineError) -> JSONResponse:
    """Map a ReviewEngineError to a ``{"detail", "code"}`` JSON response."""
    status_code = STATUS_BY_KIND[exc.kind]
    code = exc.reason.value if isinstance(exc, AccessDeniedError) else exc.kind.value

    if status_code >= 500:
        logger.error("review_engine_error", path=request.url.path, error=exc.message)
    else:
        logger.info(
            "review_request_rejected",
            path=request.url.path,
            status_code=status_code,
            code=code,
        )

    detail = "Internal server error" if status_code >= 500 else exc.message
    return JSONResponse(status_code=status_code, content={"detail": detail, "code": code})


def create_app(config: CardReviewConfig | None = None) -> FastAPI:
    """Create and configure a FastAPI application.

    Args:
        config: Optional CardReviewConfig. If None, creates default config.

    Returns:
        Configured FastAPI application instance.
    """
    if config is None:
        config = CardReviewConfig()

    app = FastAPI(
        title="cardreview",
        version=__version__,
        description="Review cycle lifecycle and quality aggregation for kanban cards",
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.session_factory = None

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.web.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    app.add_exception_handler(ReviewEngineError, review_error_handler)

    app.include_router(create_health_router())
    app.include_router(create_transitions_router())
    app.include_router(create_cycles_router())
    app.include_router(create_quality_router())
    app.include_router(create_dimensions_router())

    logger.info("app_created", cors_origins=config.web.cors_origins, version=__version__)

    return app
