"""Main FastAPI application."""

import logging
from contextlib import asynccontextmanager
from zoneinfo import ZoneInfo

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from gridbalance.config import Settings, settings
from gridbalance.database import build_engine, build_session_factory, create_tables
from gridbalance.routers import balances, ingestion
from gridbalance.services import IngestionService, ReeApiClient
from gridbalance.services.scheduler import IngestionScheduler

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)


def create_app(app_settings: Settings = settings) -> FastAPI:
    """Build the application and wire the ingestion components in its lifespan."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        grid_timezone = ZoneInfo(app_settings.ree_timezone)
        engine = build_engine(app_settings.database_url, echo=app_settings.debug)
        if app_settings.auto_create_tables:
            await create_tables(engine)

        session_factory = build_session_factory(engine)
        client = ReeApiClient(
            base_url=app_settings.ree_api_base_url,
            timeout=app_settings.request_timeout,
            max_retries=app_settings.fetch_max_retries,
            retry_delay=app_settings.fetch_retry_delay,
            timezone=app_settings.ree_timezone,
        )
        scheduler = IngestionScheduler(
            IngestionService(client, session_factory),
            retention_days=app_settings.data_retention_days,
            timezone=grid_timezone,
        )

        app.state.grid_timezone = grid_timezone
        app.state.session_factory = session_factory
        app.state.scheduler = scheduler

        if app_settings.scheduler_enabled:
            try:
                scheduler.start()
            except Exception:
                logger.exception("Failed to start scheduler")

        try:
            yield
        finally:
            logger.info("Shutting down, cleaning up...")
            await scheduler.aclose()
            await client.aclose()
            await engine.dispose()
            logger.info("Graceful shutdown completed")

    app = FastAPI(
        title="Power Grid Balance API",
        description="Electric balance data ingested from the REE open data API",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {"message": "Power Grid Balance API", "version": "0.1.0", "status": "running"}

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy"}

    app.include_router(balances.router)
    app.include_router(ingestion.router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("gridbalance.main:app", host="0.0.0.0", port=8000, reload=True)
