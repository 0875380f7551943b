from fastapi import APIRouter

from modelboard.config import settings
from .ratings import router as ratings_router
from .staging import router as staging_router

# Create main API router
api_router = APIRouter(prefix=settings.api_prefix)

api_router.include_router(ratings_router, tags=["Ratings"])
api_router.include_router(staging_router, tags=["Staging"])
