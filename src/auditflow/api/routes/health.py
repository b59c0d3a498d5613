"""Health check endpoints."""

from fastapi import APIRouter

from auditflow.dependencies import Runtime

router = APIRouter()


@router.get("/health")
async def health_check(runtime: Runtime):
    """Return service health and queue occupancy."""
    return {
        "status": "healthy",
        "service": "auditflow",
        "version": "1.0.0",
        "queue": {
            "concurrency": runtime.queue.concurrency,
            "waiting": runtime.queue.depth,
            "running": runtime.queue.running,
        },
    }
