"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

import structlog
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from gamified_ed.api.routes import router
from gamified_ed.config import Settings, get_settings
from gamified_ed.embeddings.client import EmbeddingClient
from gamified_ed.errors import register_error_handlers
from gamified_ed.security.tokens import TokenService
from gamified_ed.storage.user_store import UserStore, connect

logger = structlog.get_logger()


def configure_logging(production: bool) -> None:
    """Configure structlog based on environment."""
    if production:
        # Production: JSON format for machine parsing
        structlog.configure(
            processors=[
                structlog.contextvars.merge_contextvars,
                structlog.processors.add_log_level,
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.processors.format_exc_info,
                structlog.processors.JSONRenderer(),
            ],
            wrapper_class=structlog.make_filtering_bound_logger(logging.INFO),
            context_class=dict,
            logger_factory=structlog.PrintLoggerFactory(),
            cache_logger_on_first_use=True,
        )
    else:
        # Development: console format for human readability
        structlog.configure(
            processors=[
                structlog.contextvars.merge_contextvars,
                structlog.processors.add_log_level,
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.dev.ConsoleRenderer(),
            ],
            wrapper_class=structlog.make_filtering_bound_logger(logging.DEBUG),
            context_class=dict,
            logger_factory=structlog.PrintLoggerFactory(),
            cache_logger_on_first_use=True,
        )


def create_app(
    settings: Settings | None = None,
    store: UserStore | None = None,
    tokens: TokenService | None = None,
    embedder: EmbeddingClient | None = None,
) -> FastAPI:
    """Build the application with its collaborators.

    Anything not passed in is built from settings. Without an injected
    store the lifespan opens the MongoDB connection, ensures indexes and
    closes the client on shutdown. The embedder is always closed on shutdown.
    """
    settings = settings or get_settings()
    configure_logging(settings.is_production)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        client = None
        if app.state.store is None:
            client, collection = connect(settings)
            app.state.store = UserStore(collection)
            await app.state.store.ensure_indexes()
            logger.info("mongodb_connected", database=collection.database.name)
        try:
            yield
        finally:
            await app.state.embedder.aclose()
            if client is not None:
                client.close()
                logger.info("mongodb_closed")

    app = FastAPI(title="Gamified Education API", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.store = store
    app.state.tokens = tokens or TokenService.from_settings(settings)
    app.state.embedder = embedder or EmbeddingClient(
        settings.openai_api_key, settings.embedding_model
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Content-Type", "Authorization"],
    )
    register_error_handlers(app)
    app.include_router(router)
    return app


def main() -> None:
    """Run the application."""
    settings = get_settings()
    uvicorn.run(
        "gamified_ed.main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        reload=False,
        log_level="info",
    )


if __name__ == "__main__":
    main()
