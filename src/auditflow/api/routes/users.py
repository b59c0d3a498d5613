"""Account registration and profile endpoints."""

from fastapi import APIRouter, status

from auditflow.dependencies import CurrentUser, Storage
from auditflow.models.plan import plan_limits
from auditflow.models.user import CreateUserRequest, User, UserResponse
from auditflow.services.user_service import register_user

router = APIRouter(prefix="/users", tags=["Users"])


def _to_response(user: User) -> dict:
    return UserResponse(
        user_id=user.user_id,
        email=user.email,
        company=user.company,
        plan=user.plan,
        api_key=user.api_key,
        audit_count=user.audit_count,
        monthly_audits=plan_limits(user.plan).monthly_audits,
        created_at=user.created_at,
    ).model_dump(mode="json", by_alias=True)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_user(body: CreateUserRequest, storage: Storage) -> dict:
    user = await register_user(storage, body.email, body.plan.value, company=body.company)
    return _to_response(user)


@router.get("/me")
async def get_me(user: CurrentUser) -> dict:
    return _to_response(user)
