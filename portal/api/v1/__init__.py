"""API v1 routes."""

from fastapi import APIRouter

from portal.api.v1 import activity_logs, auth, health, integrity, jobs, users

router = APIRouter()
router.include_router(health.router, prefix="/health", tags=["health"])
router.include_router(auth.router, prefix="/auth", tags=["auth"])
router.include_router(jobs.router, prefix="/jobs", tags=["jobs"])
router.include_router(integrity.router, prefix="/integrity-check", tags=["integrity"])
router.include_router(users.router, prefix="/users", tags=["users"])
router.include_router(activity_logs.router, prefix="/activity-logs", tags=["activity"])
