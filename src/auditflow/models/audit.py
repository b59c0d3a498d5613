"""Pydantic models for audit jobs."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from auditflow.models.common import check_http_url
from auditflow.models.enums import AuditStatus


class Audit(BaseModel):
    """An audit job record as held by the storage gateway."""

    model_config = ConfigDict(from_attributes=True)

    audit_id: str = Field(..., pattern=r"^aud_[A-Za-z0-9]+$")
    user_id: str
    url: str
    client_name: str = "Default"
    status: AuditStatus
    options: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    completed_at: datetime | None = None
    results: dict[str, Any] | None = None
    error: str | None = None


class CreateAuditRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    url: str = Field(..., min_length=1, max_length=2048)
    client_name: str | None = Field(None, max_length=200)
    options: dict[str, Any] | None = None

    @field_validator("url")
    @classmethod
    def _require_http_url(cls, value: str) -> str:
        return check_http_url(value)


class AuditSubmission(BaseModel):
    """Returned to the caller when an audit is admitted."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    audit_id: str
    status: AuditStatus = AuditStatus.QUEUED
    message: str = "Audit queued successfully"


class AuditResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    audit_id: str = Field(..., serialization_alias="id")
    url: str
    client_name: str
    status: AuditStatus
    created_at: datetime
    completed_at: datetime | None = None
    results: dict[str, Any] | None = None
    error: str | None = None


class AuditSummary(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    audit_id: str = Field(..., serialization_alias="id")
    url: str
    client_name: str
    status: AuditStatus
    created_at: datetime
    completed_at: datetime | None = None


class Pagination(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    page: int
    limit: int
    has_more: bool


class AuditListResponse(BaseModel):
    audits: list[AuditSummary]
    pagination: Pagination
