"""Storage gateway contract consumed by the job lifecycle core.

Every operation is atomic for a single record. Nothing composes calls into a
transaction, so callers must not assume a read followed by a write sees no
interleaving writer.
"""

from datetime import datetime
from typing import Any, Protocol

from auditflow.models.analytics import AuditStats
from auditflow.models.audit import Audit
from auditflow.models.user import User
from auditflow.models.webhook import WebhookSubscription


class StorageGateway(Protocol):
    # Users
    async def create_user(
        self, email: str, plan: str, api_key: str, company: str | None = None
    ) -> User: ...

    async def get_user_by_id(self, user_id: str) -> User | None: ...

    async def get_user_by_email(self, email: str) -> User | None: ...

    async def get_user_by_api_key(self, api_key: str) -> User | None: ...

    async def increment_user_audit_count(self, user_id: str) -> int | None: ...

    async def reset_audit_counts(self) -> int: ...

    # Audits
    async def create_audit(
        self, user_id: str, url: str, client_name: str, options: dict[str, Any]
    ) -> Audit: ...

    async def get_audit_by_id(self, audit_id: str) -> Audit | None: ...

    async def update_audit(self, audit_id: str, **fields: Any) -> Audit | None: ...

    async def get_user_audits(self, user_id: str, limit: int, offset: int) -> list[Audit]: ...

    async def delete_audit(self, audit_id: str) -> bool: ...

    async def list_unfinished_audits(self) -> list[Audit]: ...

    async def get_user_audit_stats(self, user_id: str, since: datetime) -> AuditStats: ...

    # Webhooks
    async def create_webhook(
        self, user_id: str, url: str, events: list[str], secret: str
    ) -> WebhookSubscription: ...

    async def get_user_webhooks(self, user_id: str) -> list[WebhookSubscription]: ...

    async def get_webhook_by_id(self, webhook_id: str) -> WebhookSubscription | None: ...

    async def update_webhook(self, webhook_id: str, **fields: Any) -> WebhookSubscription | None: ...

    async def delete_webhook(self, webhook_id: str) -> bool: ...

    async def record_webhook_delivery(
        self, webhook_id: str, succeeded: bool, failure_threshold: int
    ) -> WebhookSubscription | None: ...

    async def close(self) -> None: ...


AUDIT_MUTABLE_FIELDS = frozenset({"status", "results", "error", "completed_at"})
WEBHOOK_MUTABLE_FIELDS = frozenset({"url", "events", "active", "failure_count", "last_triggered"})


def check_fields(fields: dict[str, Any], allowed: frozenset[str]) -> None:
    unknown = set(fields) - allowed
    if unknown:
        raise ValueError(f"cannot update fields: {', '.join(sorted(unknown))}")
