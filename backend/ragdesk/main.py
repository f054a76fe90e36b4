"""
RAGDesk - FastAPI Application Entry Point.

Feature-based modular architecture:
  auth       register / login / token refresh
  knowledge  PDF ingestion, vector index, document listing
  chat       retrieval-augmented answers
"""

import logging
from collections.abc import Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ragdesk.config import get_settings
from ragdesk.core.auth_gate import AuthGateMiddleware
from ragdesk.core.database import create_session_factory, get_engine, init_db
from ragdesk.core.exceptions import register_exception_handlers
from ragdesk.core.llm_provider import create_llm
from ragdesk.core.request_logging import RequestLoggingMiddleware, configure_logging
from ragdesk.features.auth.repository import SqlUserRepository, UserRepository
from ragdesk.features.chat.service import RagService, create_rag_service
from ragdesk.features.knowledge.embedding import create_embedder
from ragdesk.features.knowledge.ingestion import IngestionService, create_ingestion_service
from ragdesk.features.knowledge.vector_index import VectorIndex, create_vector_index

# ── Feature Routers ──────────────────────────────────────
from ragdesk.features.auth.router import router as auth_router
from ragdesk.features.chat.router import router as chat_router
from ragdesk.features.knowledge.router import router as knowledge_router

logger = logging.getLogger(__name__)


@dataclass
class AppServices:
    """Long-lived collaborators shared by all requests."""

    users: UserRepository
    vector_index: VectorIndex
    ingestion: IngestionService
    rag: RagService


def build_services() -> AppServices:
    """Wire the production services from env configuration."""
    engine = get_engine()
    init_db(engine)
    users = SqlUserRepository(create_session_factory(engine))

    index = create_vector_index()
    embedder = create_embedder()
    return AppServices(
        users=users,
        vector_index=index,
        ingestion=create_ingestion_service(embedder, index),
        rag=create_rag_service(embedder, index, create_llm()),
    )


def create_app(services_factory: Callable[[], AppServices] = build_services) -> FastAPI:
    """Application factory."""
    settings = get_settings()
    configure_logging(settings.LOG_LEVEL)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifecycle: startup & shutdown."""
        services = services_factory()
        app.state.users = services.users
        app.state.vector_index = services.vector_index
        app.state.ingestion = services.ingestion
        app.state.rag = services.rag
        logger.info("%s v%s starting", settings.APP_NAME, settings.APP_VERSION)
        logger.info("LLM: %s (%s), embeddings: %s (%s, %d dims)",
                    settings.LLM_PROVIDER, settings.LLM_MODEL,
                    settings.EMBEDDING_PROVIDER, settings.EMBEDDING_MODEL, settings.EMBEDDING_DIMENSIONS)
        yield
        await services.vector_index.close()
        logger.info("Shutting down")

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="Retrieval-augmented question answering over uploaded PDFs",
        lifespan=lifespan,
    )

    register_exception_handlers(app)

    # ── Middleware (last added runs first) ───────────────
    app.add_middleware(AuthGateMiddleware, api_prefix=settings.API_PREFIX)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    # ── Register Feature Routers ─────────────────────────
    app.include_router(auth_router, prefix=f"{settings.API_PREFIX}/auth", tags=["Auth"])
    app.include_router(knowledge_router, prefix=settings.API_PREFIX)
    app.include_router(chat_router, prefix=settings.API_PREFIX, tags=["Chat"])

    # ── Health Check ─────────────────────────────────────
    @app.get("/health", tags=["System"])
    async def health_check():
        return {
            "status": "healthy",
            "app": settings.APP_NAME,
            "version": settings.APP_VERSION,
        }

    return app


app = create_app()
