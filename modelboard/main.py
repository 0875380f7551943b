from contextlib import asynccontextmanager

from fastapi import FastAPI

from modelboard.config import settings
from modelboard.utils.logging import setup_logging, get_logger
from modelboard.api.routes import api_router
from modelboard.db.database import check_database_health, engine

# Setup logging
setup_logging()
logger = get_logger("main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Verify the database on startup and release the engine's connections on shutdown."""
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")

    try:
        db_healthy = await check_database_health()
        if not db_healthy:
            logger.error("Database health check failed")
            raise RuntimeError("Database connection failed")

        logger.info("Database connection established successfully")
        app.state.db_engine = engine
        yield

    except Exception as e:
        logger.error(f"Startup failed: {e}")
        raise
    finally:
        logger.info("Shutting down application...")
        try:
            if hasattr(app.state, "db_engine"):
                await app.state.db_engine.dispose()
                logger.info("Database connections disposed")
        except Exception as e:
            logger.error(f"Error during shutdown: {e}")


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Language model benchmark and price ratings",
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
    openapi_url="/openapi.json" if settings.debug else None,
    lifespan=lifespan,
)

app.include_router(api_router)


@app.get("/")
async def root():
    return {
        "app_name": settings.app_name,
        "version": settings.app_version,
        "status": "running",
    }


@app.get("/health")
async def simple_health_check():
    """Liveness probe; does not touch the database."""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("modelboard.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
