"""Pydantic models for user accounts."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from auditflow.models.enums import PlanTier


class User(BaseModel):
    """A registered account as held by the storage gateway."""

    model_config = ConfigDict(from_attributes=True)

    user_id: str = Field(..., pattern=r"^usr_[A-Za-z0-9]+$")
    email: str
    company: str | None = None
    plan: str = PlanTier.FREE
    api_key: str
    audit_count: int = Field(0, ge=0)
    usage_reset_at: datetime | None = None
    created_at: datetime


class CreateUserRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    email: str = Field(..., max_length=320, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    company: str | None = Field(None, max_length=200)
    plan: PlanTier = PlanTier.FREE


class UserResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    user_id: str
    email: str
    company: str | None = None
    plan: str
    api_key: str
    audit_count: int
    monthly_audits: int
    created_at: datetime
