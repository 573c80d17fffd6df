"""FastAPI application entry point."""
import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from xero_sync.core.config import settings
from xero_sync.core.database import init_db
from xero_sync.api import health, xero
from xero_sync.application.services.sync_tasks import task_manager

logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Xero Sync Engine",
    description="Mirrors a Xero organisation's ledger into a local database",
    version="0.1.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(xero.router)
app.include_router(health.router)


@app.on_event("startup")
async def startup_event():
    """Initialize application on startup."""
    logger.info("Starting Xero Sync Engine")

    try:
        init_db()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize database: {str(e)}")
        return

    try:
        task_manager.recover_interrupted_runs()
    except Exception as e:
        logger.error(f"Failed to recover interrupted sync runs: {str(e)}")


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on shutdown."""
    logger.info("Shutting down Xero Sync Engine")


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Xero Sync Engine",
        "version": "0.1.0",
        "docs": "/docs"
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "xero_sync.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=True
    )
