"""
FastAPI application entry point.

WHAT: Main application setup and wiring
WHY: Initialize all components and routes
HOW: create_app() builds the database engine, services and routers;
     the lifespan starts and stops the expiration sweeper
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .core.config import Settings, settings as default_settings
from .core.database import build_engine, build_session_factory, init_db, close_db
from .services.conversation_service import ConversationService
from .services.expiration_sweeper import ExpirationSweeper
from .services.listing_service import ListingService
from .services.notifications import ConversationNotifier
from .services.offer_engine import OfferNegotiationEngine
from .utils.logger import setup_logging, get_logger
from .utils.time import Clock, utcnow
from .middleware.error_handler import register_exception_handlers
from .api.v1.router import api_router

logger = get_logger(__name__)


def create_app(app_settings: Optional[Settings] = None, clock: Clock = utcnow) -> FastAPI:
    """
    Build a configured application.

    Args:
        app_settings: Settings to use (defaults to environment settings)
        clock: Source of "now" for the negotiation engine
    """
    cfg = app_settings or default_settings

    db_engine = build_engine(cfg.DATABASE_URL, echo=cfg.DEBUG)
    session_factory = build_session_factory(db_engine)

    offer_engine = OfferNegotiationEngine(
        session_factory,
        notifier=ConversationNotifier(session_factory, clock=clock),
        clock=clock,
        expiry_hours=cfg.OFFER_EXPIRY_HOURS,
        cooldown_hours=cfg.OFFER_COOLDOWN_HOURS,
    )
    sweeper = ExpirationSweeper(offer_engine, cfg.OFFER_SWEEP_INTERVAL_SECONDS) if cfg.OFFER_SWEEP_ENABLED else None

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Application lifespan manager.

        WHAT: Startup and shutdown logic
        WHY: Create tables, run the sweeper, close connections cleanly
        HOW: Async context manager for FastAPI lifespan
        """
        # Startup
        logger.info(f"Starting {cfg.APP_NAME} v{cfg.APP_VERSION}")
        init_db(db_engine)
        if sweeper:
            sweeper.start()
        logger.info("Application startup complete")

        yield

        # Shutdown
        logger.info("Shutting down application")
        if sweeper:
            sweeper.stop()
        close_db(db_engine)
        logger.info("Application shutdown complete")

    app = FastAPI(
        title=cfg.APP_NAME,
        version=cfg.APP_VERSION,
        lifespan=lifespan
    )

    app.state.settings = cfg
    app.state.db_engine = db_engine
    app.state.session_factory = session_factory
    app.state.offer_engine = offer_engine
    app.state.listing_service = ListingService(session_factory)
    app.state.conversation_service = ConversationService(session_factory, clock=clock)
    app.state.expiration_sweeper = sweeper

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.get_cors_origins_list(),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-User-Id"],
    )

    # Register exception handlers
    register_exception_handlers(app)

    # Include API router
    app.include_router(api_router)

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "app": cfg.APP_NAME,
            "version": cfg.APP_VERSION,
            "status": "running"
        }

    return app


def get_app() -> FastAPI:
    """Factory for ``uvicorn --factory``; configures logging from settings first."""
    setup_logging()
    return create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "gearmarket.main:get_app",
        factory=True,
        host="0.0.0.0",
        port=8000,
        reload=default_settings.DEBUG
    )
