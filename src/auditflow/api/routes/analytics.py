"""Usage analytics endpoints."""

from fastapi import APIRouter

from auditflow.dependencies import CurrentUser, Storage
from auditflow.services.analytics_service import get_overview

router = APIRouter(prefix="/analytics", tags=["Analytics"])


@router.get("/overview")
async def analytics_overview(user: CurrentUser, storage: Storage) -> dict:
    """Audit counts and average score for the calling user."""
    overview = await get_overview(storage, user.user_id)
    return overview.model_dump(mode="json", by_alias=True)
