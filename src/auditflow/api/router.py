"""Master API router mounted at /api/v1."""

from fastapi import APIRouter

from auditflow.api.routes import analytics, audits, health, users, webhooks

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(health.router, tags=["Health"])
api_router.include_router(users.router)
api_router.include_router(audits.router)
api_router.include_router(webhooks.router)
api_router.include_router(analytics.router)
