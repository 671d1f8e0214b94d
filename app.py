"""Main FastAPI application for the Skillbox plugin service."""

import logging
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from .env
load_dotenv()

# Configure logging BEFORE importing any modules that use logger
from skillbox.constants import LOG_LEVEL, PORT
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Import after logging is configured
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from skillbox import __version__
from skillbox.dependencies import build_services
from skillbox.routers import plugin_execution_router, plugins_router

# Create FastAPI app
app = FastAPI(
    title="Skillbox Plugin Service",
    description="Detects plugin function calls in chat messages and executes them",
    version=__version__
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routers
app.include_router(plugin_execution_router)  # /api/plugin-execution endpoints
app.include_router(plugins_router)  # /api/plugins endpoints


@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    services = getattr(app.state, "services", None)
    return {
        "status": "healthy",
        "service": "skillbox-plugin-service",
        "plugins": services.registry.count() if services else 0,
    }


@app.on_event("startup")
async def startup_event():
    """Application startup event: build services and import plugin definitions."""
    logger.info("Starting Skillbox Plugin Service")
    logger.info(f"Working directory: {Path.cwd()}")

    if getattr(app.state, "services", None) is None:
        app.state.services = build_services()

    services = app.state.services
    report = await services.discovery.sync(services.registry)
    logger.info(
        f"Loaded {services.registry.count()} plugin(s) "
        f"({report.imported} imported, {report.exported} exported)"
    )
    for error in report.errors:
        logger.warning(f"Plugin sync: {error}")


@app.on_event("shutdown")
async def shutdown_event():
    """Application shutdown event."""
    logger.info("Shutting down Skillbox Plugin Service")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("app:app", host="0.0.0.0", port=PORT, reload=True)
