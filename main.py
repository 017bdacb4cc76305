"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.routes import router, domain_error_handler
from core.errors import DomainError
from db.memory import InMemoryStore
from db.pool import DatabasePool, apply_schema, check_connection
from db.postgres import postgres_repositories
from settings import load_settings

SCHEMA_PATH = Path(__file__).parent / "db" / "migrations" / "001_init.sql"

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup/shutdown events.

    Startup:
    - Load settings and apply the configured log level
    - Build the configured storage backend
    - For PostgreSQL: open the pool and apply the schema

    Shutdown:
    - Close database connection pool
    """
    # Startup
    logger.info("Starting MedTrack service...")
    db_pool = None

    try:
        settings = load_settings()
        logging.getLogger().setLevel(settings.log_level.upper())
        logger.info("Settings loaded successfully")

        if settings.storage_backend == "memory":
            app.state.repositories = InMemoryStore().repositories()
            logger.info("Using in-memory storage")
        else:
            db_pool = DatabasePool(
                settings.database_url,
                min_size=settings.db_pool_min_size,
                max_size=settings.db_pool_max_size,
                command_timeout=settings.db_command_timeout
            )
            await db_pool.initialize()
            if not await check_connection(db_pool):
                raise RuntimeError("Database is unreachable")
            await apply_schema(db_pool, SCHEMA_PATH.read_text())
            app.state.repositories = postgres_repositories(db_pool)
            logger.info("Database pool initialized")

        logger.info("MedTrack service started successfully")

    except Exception as e:
        logger.error(f"Failed to start service: {e}")
        raise

    yield

    # Shutdown
    logger.info("Shutting down MedTrack service...")
    if db_pool is not None:
        await db_pool.close()
    logger.info("Service shutdown complete")


def create_app() -> FastAPI:
    """Build the application; routes are mounted under /api/v1."""
    app = FastAPI(
        title="MedTrack API",
        description="Medication tracking with dose-reminder scheduling",
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc"
    )

    # CORS middleware (configure as needed for production)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(DomainError, domain_error_handler)
    app.include_router(router, prefix="/api/v1")

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "service": "MedTrack API",
            "version": "1.0.0",
            "status": "running",
            "docs": "/docs"
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info"
    )
