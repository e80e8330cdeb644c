"""
Main application module for the Photo Circle relationship service.

Sets up the FastAPI application with lifespan management for the MongoDB and
Redis connections and mounts the friend and family routers.
"""

from contextlib import asynccontextmanager
import time

from fastapi import FastAPI, HTTPException
import uvicorn

from photo_circle.config import settings
from photo_circle.database import db_manager
from photo_circle.managers.logging_manager import get_logger
from photo_circle.managers.redis_manager import redis_manager
from photo_circle.routes import family_router, friends_router

logger = get_logger()


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """Connect to MongoDB and ensure indexes on startup; release connections on shutdown."""
    startup_start_time = time.time()
    logger.info(
        "Starting %s (%s)", settings.APP_NAME, "production" if settings.is_production else "development"
    )

    try:
        await db_manager.connect()
        await db_manager.create_indexes()
    except Exception as e:
        logger.error("Startup failed after %.3fs: %s", time.time() - startup_start_time, e, exc_info=True)
        raise HTTPException(status_code=503, detail="Service not ready: Database connection failed") from e

    logger.info("Startup completed in %.3fs", time.time() - startup_start_time)

    yield

    logger.info("Shutting down %s", settings.APP_NAME)
    if settings.CACHE_BACKEND == "redis":
        await redis_manager.close()
    await db_manager.disconnect()


app = FastAPI(
    title="Photo Circle Relationship API",
    description="Friend requests, friendships and family groups for Photo Circle.",
    version="1.0.0",
    lifespan=lifespan,
    openapi_tags=[
        {"name": "Friends", "description": "Friend requests and friend lists"},
        {"name": "Family", "description": "Family groups, invitations and membership"},
        {"name": "System", "description": "Health checks"},
    ],
)

app.include_router(friends_router)
app.include_router(family_router)


@app.get("/health", tags=["System"])
async def health():
    healthy = await db_manager.health_check()
    if not healthy:
        raise HTTPException(status_code=503, detail={"error": "DATABASE_UNAVAILABLE", "message": "Database unreachable"})
    return {"status": "healthy"}


if __name__ == "__main__":
    uvicorn.run("photo_circle.main:app", host=settings.HOST, port=settings.PORT, reload=settings.DEBUG)
