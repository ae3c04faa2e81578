"""HTTP front end for the worker."""

from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from effekt_common import (
    REQUEST_ID_HEADER,
    bind_request_id,
    get_logger,
    get_or_create_request_id,
    unbind_request_id,
)

from . import routes
from .batcher import Batcher
from .config import WorkerConfig
from .sink import DisplaySink

logger = get_logger(__name__)


def create_app(config: WorkerConfig, batcher: Optional[Batcher] = None) -> FastAPI:
    """Build the FastAPI app around one Batcher.

    The Batcher is owned by the app: it is closed (flushing whatever is
    still open) when the app shuts down.
    """
    if batcher is None:
        batcher = Batcher.from_config(config, DisplaySink.from_config(config))

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "Worker started",
            applet=str(config.applet_path),
            pixlet=config.pixlet_bin,
            batch_window_ms=config.batch_window_ms,
            max_batch_wait_ms=config.max_batch_wait_ms,
            push_enabled=config.push_enabled,
        )
        yield
        await batcher.aclose()

    app = FastAPI(title="Tidbyt donation worker", lifespan=lifespan)
    app.state.config = config
    app.state.batcher = batcher

    @app.middleware("http")
    async def request_context(request: Request, call_next):
        request_id = get_or_create_request_id(request.headers)
        bind_request_id(request_id)
        try:
            response = await call_next(request)
        finally:
            unbind_request_id()
        response.headers[REQUEST_ID_HEADER] = request_id
        return response

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        return JSONResponse({"ok": False}, status_code=exc.status_code)

    app.include_router(routes.router)
    return app


def serve(config: WorkerConfig) -> None:
    """Run the worker until interrupted."""
    app = create_app(config)
    uvicorn.run(app, host=config.host, port=config.port, log_config=None)
