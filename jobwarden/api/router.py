from fastapi import APIRouter

from jobwarden.api.jobs import router as jobs_router
from jobwarden.api.logs import router as logs_router
from jobwarden.api.notifications import router as notifications_router
from jobwarden.api.scheduler import router as scheduler_router
from jobwarden.api.stats import router as stats_router

api_router = APIRouter()

# API routes at /api/*
api_router.include_router(jobs_router, prefix="/api", tags=["jobs"])
api_router.include_router(scheduler_router, prefix="/api", tags=["scheduler"])
api_router.include_router(logs_router, prefix="/api", tags=["logs"])
api_router.include_router(stats_router, prefix="/api", tags=["stats"])
api_router.include_router(notifications_router, prefix="/api", tags=["notifications"])
