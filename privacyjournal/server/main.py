"""
Main FastAPI application creation and configuration.
"""

import logging
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from .. import __version__
from ..config import get_settings
from ..config.settings import configure_logging
from ..storage.exceptions import JournalStoreError
from ..utils.logging import log_event, operation_context, set_correlation_id
from .api.dependencies import get_server, set_server_instance
from .api.error_formatting import status_code_for, store_error_response
from .api.router import get_api_router
from .application_server import JournalServer

# Global server instance
server = JournalServer()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    configure_logging(level=server.settings.log_level)
    await server.initialize()
    set_server_instance(server)
    yield
    await server.cleanup()
    set_server_instance(None)


def create_app() -> FastAPI:
    """Create the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Private Journal API",
        description="Journal entries in a private GitHub repository with semantic search",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:3000",
            "http://127.0.0.1:3000",
            f"http://{settings.host}:{settings.port}",
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def correlate_request(request: Request, call_next):
        set_correlation_id(request.headers.get("X-Request-ID") or str(uuid.uuid4()))
        with operation_context(path=request.url.path):
            return await call_next(request)

    @app.exception_handler(JournalStoreError)
    async def journal_store_error_handler(request: Request, exc: JournalStoreError):
        log_event(
            "api_request_failed",
            {
                "path": request.url.path,
                "error_type": exc.error_type,
                "status": status_code_for(exc),
            },
            level=logging.WARNING,
        )
        return store_error_response(exc)

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        current = get_server()
        store = current.store
        status = store.status() if store is not None else None
        return {
            "status": "healthy",
            "version": __version__,
            "mode": status.mode.value if status else "unchecked",
            "repository": status.repository if status else None,
            "provisioning_state": status.provisioning_state if status else None,
        }

    app.include_router(get_api_router())

    return app


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "privacyjournal.server.main:create_app",
        host=settings.host,
        port=settings.port,
        reload=True,
        factory=True,
    )
