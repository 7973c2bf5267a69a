"""
FastAPI Application Entry Point

Configures the offline action queue API:
- Clients that lost connectivity enqueue the mutations they could not send
- Queued actions are replayed against their handlers when triggered
- Finished actions are garbage-collected after a retention window

The queue lives in process memory, so run exactly one worker process.

Run with: uvicorn offline_queue.main:app --host 0.0.0.0 --port 8000
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api.deps import build_services
from .api.routes import router
from .core.config import Settings, settings as default_settings
from .core.utils import Clock, get_timestamp
from .queue.action_queue import InvalidActionError
from .queue.dispatcher import Dispatcher

logging.basicConfig(
    level=default_settings.log_level,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


# ============================================================
# Application Lifespan Handler
# ============================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Start the garbage collector on startup; stop it and close the
    dispatcher on shutdown.
    """
    services = app.state.services
    config: Settings = app.state.settings

    logger.info("=" * 60)
    logger.info("OFFLINE ACTION QUEUE STARTING")
    logger.info("=" * 60)
    logger.info(f"Capacity: {config.queue.max_size}")
    logger.info(f"Max attempts: {config.queue.max_attempts}")
    logger.info(f"Dispatch target: {config.dispatch.base_url or 'in-process'}")
    logger.info(f"Dispatch timeout: {config.dispatch.timeout}s")
    logger.info(f"Dedup rules: {', '.join(sorted(config.queue.dedup_rules)) or 'none'}")
    if app.state.dispatch_in_process:
        logger.warning(
            "DISPATCH_BASE_URL is not set: actions are replayed against this "
            "application's own routes, which serve only the queue API. Handler "
            "paths will answer 404 unless they are mounted on this app."
        )

    await services.gc.start()

    yield

    logger.info("Queue API shutting down...")
    await services.gc.stop()
    aclose = getattr(services.dispatcher, "aclose", None)
    if aclose is not None:
        await aclose()

    pending = services.queue.stats().pending
    if pending:
        logger.warning(f"Discarding {pending} pending action(s) held in memory")


# ============================================================
# Application Factory
# ============================================================

def create_app(
    config: Optional[Settings] = None,
    dispatcher: Optional[Dispatcher] = None,
    clock: Optional[Clock] = None
) -> FastAPI:
    """
    Build the FastAPI application and the queue services it owns.

    Args:
        config: Settings to use; defaults to the environment
        dispatcher: Override for how actions are replayed
        clock: Override for the queue and collector clock
    """
    config = config or default_settings

    app = FastAPI(
        title=config.api_title,
        description=config.api_description,
        version=config.api_version,
        lifespan=lifespan,
    )
    app.state.settings = config
    app.state.dispatch_in_process = dispatcher is None and not config.dispatch.base_url
    app.state.services = build_services(config, app=app, dispatcher=dispatcher, clock=clock)

    # Offline clients are served from other origins (the splash page, the PWA)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _register_exception_handlers(app)
    app.include_router(router, tags=["Queue"])

    @app.get("/", tags=["Root"])
    async def root():
        return {
            "service": config.api_title,
            "version": config.api_version,
            "description": config.api_description,
            "endpoints": {
                "enqueue": "POST /queue",
                "process": "POST /queue/process",
                "status": "GET /queue/status",
                "action": "GET /queue/{queue_id}",
                "health": "GET /health",
                "docs": "GET /docs"
            },
            "timestamp": get_timestamp()
        }

    return app


# ============================================================
# Exception Handlers
# ============================================================

def _register_exception_handlers(app: FastAPI) -> None:

    @app.exception_handler(InvalidActionError)
    async def invalid_action_handler(request: Request, exc: InvalidActionError):
        """Malformed enqueue requests are the client's fault: 400."""
        logger.info(f"Rejected action: {exc}")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "error": "Invalid action",
                "detail": str(exc),
                "timestamp": get_timestamp()
            }
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.warning(f"Validation error: {exc.errors()}")
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "error": "Validation failed",
                "detail": jsonable_encoder(exc.errors()),
                "timestamp": get_timestamp()
            }
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """
        Log unexpected errors and answer with a generic 500 so a single
        bad request cannot take the service down.
        """
        logger.error(f"Unhandled exception: {str(exc)}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "Internal server error",
                "detail": "An unexpected error occurred. Please try again.",
                "timestamp": get_timestamp()
            }
        )


app = create_app()
