"""Pydantic models and validators shared by API requests and responses."""

from datetime import datetime
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict


def check_http_url(value: str) -> str:
    """Reject anything httpx could not send a request to."""
    try:
        url = httpx.URL(value)
    except httpx.InvalidURL as exc:
        raise ValueError(f"invalid url: {exc}") from exc
    if url.scheme not in ("http", "https"):
        raise ValueError("url must start with http:// or https://")
    if not url.host:
        raise ValueError("url must include a host")
    return value


class ErrorDetail(BaseModel):
    """Error detail in API responses."""

    model_config = ConfigDict(extra="forbid")

    code: str
    message: str
    details: dict[str, Any] | list[Any] | str | None = None
    trace_id: str
    timestamp: datetime


class ErrorResponse(BaseModel):
    """Standard error response envelope."""

    model_config = ConfigDict(extra="forbid")

    error: ErrorDetail
