"""Terminal events published by the job queue, one per audit."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, ClassVar

from auditflow.models.enums import AuditStatus, WebhookEvent


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class AuditCompleted:
    """The executor returned results for an audit."""

    name: ClassVar[str] = "auditCompleted"
    webhook_event: ClassVar[WebhookEvent] = WebhookEvent.AUDIT_COMPLETED
    status: ClassVar[AuditStatus] = AuditStatus.COMPLETED

    audit_id: str
    user_id: str
    url: str
    results: dict[str, Any]
    occurred_at: datetime = field(default_factory=_now)

    def storage_fields(self) -> dict[str, Any]:
        return {"status": self.status, "results": self.results, "completed_at": self.occurred_at}

    def webhook_payload(self) -> dict[str, Any]:
        return {
            "auditId": self.audit_id,
            "url": self.url,
            "results": self.results,
            "completedAt": self.occurred_at.isoformat(),
        }


@dataclass(frozen=True)
class AuditFailed:
    """The executor raised, returned an error, or timed out."""

    name: ClassVar[str] = "auditFailed"
    webhook_event: ClassVar[WebhookEvent] = WebhookEvent.AUDIT_FAILED
    status: ClassVar[AuditStatus] = AuditStatus.FAILED

    audit_id: str
    user_id: str
    url: str
    error: str
    timed_out: bool = False
    occurred_at: datetime = field(default_factory=_now)

    def storage_fields(self) -> dict[str, Any]:
        return {"status": self.status, "error": self.error, "completed_at": self.occurred_at}

    def webhook_payload(self) -> dict[str, Any]:
        return {
            "auditId": self.audit_id,
            "url": self.url,
            "error": self.error,
            "failedAt": self.occurred_at.isoformat(),
        }


TerminalEvent = AuditCompleted | AuditFailed
