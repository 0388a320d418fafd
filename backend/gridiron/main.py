"""
Gridiron Cards - FastAPI application

Collectible player cards, packs, weekly lineups and scoring.
"""
from contextlib import asynccontextmanager
from datetime import datetime, timezone
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from gridiron.api import admin, dev, lineups, players, store, teams
from gridiron.core.config import settings
from gridiron.core.database import check_db_connection, init_db
from gridiron.core.errors import GameError
from gridiron.services.catalog_cache import CatalogCache

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """Application lifespan manager"""
    logger.info(f"Starting {settings.APP_NAME} - {settings.ENVIRONMENT.upper()} Environment")

    try:
        if check_db_connection():
            logger.info("Database connected successfully")
            init_db()
    except Exception as e:
        logger.warning(f"Database initialization failed: {e}")

    yield

    logger.info(f"Shutting down {settings.APP_NAME}")


app = FastAPI(
    title=settings.APP_NAME,
    description=f"Collectible fantasy football cards - {settings.ENVIRONMENT.title()} Environment",
    version="1.0.0",
    debug=settings.DEBUG,
    lifespan=lifespan,
)

# Catalog snapshots shared by every pack roll in this process
app.state.catalog_cache = CatalogCache(ttl_seconds=settings.CATALOG_CACHE_TTL_SECONDS)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_frontend_urls(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)


@app.exception_handler(GameError)
async def game_error_handler(request: Request, exc: GameError):
    if exc.status_code >= 500:
        logger.error(f"{exc.kind} on {request.url.path}: {exc.message}")
    else:
        logger.info(f"{exc.kind} on {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


app.include_router(teams.router)
app.include_router(store.router)
app.include_router(lineups.router)
app.include_router(players.router)
app.include_router(admin.router)
app.include_router(dev.router)


@app.get("/health")
async def health_check():
    """Health check endpoint for deployment monitoring"""
    return {
        "status": "healthy",
        "environment": settings.ENVIRONMENT,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "catalog_cache": app.state.catalog_cache.get_stats(),
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("gridiron.main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)
