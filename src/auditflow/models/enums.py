"""String enums for auditflow records and events."""

from enum import StrEnum


class PlanTier(StrEnum):
    FREE = "free"
    PRO = "pro"
    ENTERPRISE = "enterprise"


class AuditStatus(StrEnum):
    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class WebhookEvent(StrEnum):
    AUDIT_COMPLETED = "audit.completed"
    AUDIT_FAILED = "audit.failed"


class DeliveryState(StrEnum):
    PENDING = "pending"
    DELIVERED = "delivered"
    EXHAUSTED = "exhausted"


class PlanFeature(StrEnum):
    BASIC_AUDIT = "basic-audit"
    HTML_REPORT = "html-report"
    JSON_REPORT = "json-report"
    API_ACCESS = "api-access"
    WEBHOOKS = "webhooks"
    ANALYTICS = "analytics"
