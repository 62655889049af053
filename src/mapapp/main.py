"""MAPSYNC - interactive overlay map server.

Main FastAPI application.
"""

import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from mapapp.config import settings
from mapapp.routers.view import router as view_router
from mapapp.routers.ws import ConnectionManager, router as ws_router, start_view_state_bridge
from mapengine import __version__
from mapengine.session.capability import CommandMapCapability
from mapengine.view import MapView


def _create_map_view(connections: ConnectionManager) -> MapView:
    """Build the map view whose commands stream to ``connections``."""
    capability = CommandMapCapability(connections.enqueue, access_token=settings.mapbox_token)
    view = MapView(
        capability,
        access_token=settings.mapbox_token,
        dataset_url=settings.dataset_url,
        container=settings.map_container,
        fetch_timeout=settings.fetch_timeout,
    )
    start_view_state_bridge(view, connections)
    return view


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("=" * 60)
    logger.info(f"  {settings.app_name} v{__version__} starting")
    logger.info("=" * 60)

    connections = ConnectionManager()
    app.state.connections = connections
    app.state.view = _create_map_view(connections)
    pump = asyncio.create_task(connections.pump())

    if settings.token_configured:
        logger.info(f"CSV overlay source: {settings.dataset_url}")
    else:
        logger.warning("MAPBOX_TOKEN not set; map sessions are disabled")

    logger.info(f"  {settings.app_name} ONLINE")

    yield

    app.state.view.shutdown()
    pump.cancel()
    try:
        await pump
    except asyncio.CancelledError:
        pass
    logger.info(f"{settings.app_name} shutting down...")


# Create FastAPI app
app = FastAPI(
    title="MAPSYNC",
    description="Interactive overlay map with a live CSV point layer",
    version=__version__,
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(view_router)
app.include_router(ws_router)


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {
        "status": "operational",
        "version": __version__,
        "system": settings.app_name,
        "map_available": settings.token_configured,
    }


def main():
    """Serve the app with uvicorn."""
    import uvicorn

    uvicorn.run(
        "mapapp.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    main()
