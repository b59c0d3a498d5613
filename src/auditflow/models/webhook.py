"""Pydantic models for webhook subscriptions and the delivered envelope."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from auditflow.models.common import check_http_url
from auditflow.models.enums import WebhookEvent


class WebhookSubscription(BaseModel):
    """A registered endpoint as held by the storage gateway."""

    model_config = ConfigDict(from_attributes=True)

    webhook_id: str = Field(..., pattern=r"^whk_[A-Za-z0-9]+$")
    user_id: str
    url: str
    events: list[str]
    secret: str
    active: bool = True
    failure_count: int = Field(0, ge=0)
    last_triggered: datetime | None = None
    created_at: datetime

    def wants(self, event: str) -> bool:
        return self.active and event in self.events


class CreateWebhookRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    url: str = Field(..., min_length=1, max_length=2048)
    events: list[WebhookEvent] = Field(..., min_length=1)
    secret: str | None = Field(None, min_length=16, max_length=256)

    @field_validator("url")
    @classmethod
    def _require_http_url(cls, value: str) -> str:
        return check_http_url(value)


class WebhookResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    webhook_id: str = Field(..., serialization_alias="id")
    url: str
    events: list[str]
    secret: str | None = None
    active: bool
    failure_count: int
    last_triggered: datetime | None = None
    created_at: datetime


class WebhookEnvelope(BaseModel):
    """Body POSTed to subscriber endpoints."""

    model_config = ConfigDict(extra="forbid")

    event: str
    data: dict[str, Any]
    timestamp: datetime
