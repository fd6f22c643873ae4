from fastapi import APIRouter

from triage.api.routes import health, records, review

api_router = APIRouter()
api_router.include_router(health.router, tags=["health"])
api_router.include_router(records.router, prefix="/api/candidates", tags=["provider"])
api_router.include_router(review.router, prefix="/review", tags=["review"])
