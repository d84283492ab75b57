from contextlib import asynccontextmanager
import logging
import sys

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from chatvault.database import init_db
from chatvault.routes import data_import_router
from chatvault.config import settings
from chatvault.importer import IMPORT_PLANS, validate_import_plans


def setup_logging():
    """Configure logging for the application."""
    # Create formatter
    formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    # Configure root logger at INFO level (keeps third-party libs quiet)
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.INFO)

    # Remove existing handlers to avoid duplicates
    root_logger.handlers.clear()

    # Add stdout handler
    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setLevel(logging.DEBUG)
    stdout_handler.setFormatter(formatter)
    root_logger.addHandler(stdout_handler)

    # Set app-specific log level based on debug setting
    app_log_level = logging.DEBUG if settings.debug else logging.INFO
    logging.getLogger("chatvault").setLevel(app_log_level)

    # Suppress noisy third-party libraries
    for lib in ["uvicorn.access", "httpx", "httpcore", "aiosqlite", "sqlalchemy"]:
        logging.getLogger(lib).setLevel(logging.WARNING)

    logging.info(f"Logging configured (app: {logging.getLevelName(app_log_level)}, libs: WARNING)")


# Initialize logging on module load
setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: check import plan order, create tables
    validate_import_plans(IMPORT_PLANS)
    await init_db()
    yield


app = FastAPI(
    title="Chatvault",
    description="Multi-tenant chat data store with snapshot import",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, specify exact origins
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# API routes
app.include_router(data_import_router)


@app.get("/api/health")
async def health_check():
    return {"status": "healthy"}
