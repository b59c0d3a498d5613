"""In-memory storage gateway.

Used for local runs and tests. A single lock makes every operation atomic,
matching the per-record guarantee of the SQL gateway.
"""

import asyncio
from datetime import datetime, timezone
from typing import Any

from auditflow.models.analytics import AuditStats, average, extract_score
from auditflow.models.audit import Audit
from auditflow.models.enums import AuditStatus
from auditflow.models.user import User
from auditflow.models.webhook import WebhookSubscription
from auditflow.services.id_generator import generate_id
from auditflow.storage.gateway import AUDIT_MUTABLE_FIELDS, WEBHOOK_MUTABLE_FIELDS, check_fields


def _now() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryStorage:
    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._users: dict[str, User] = {}
        self._audits: dict[str, Audit] = {}
        self._webhooks: dict[str, WebhookSubscription] = {}

    # Users

    async def create_user(
        self, email: str, plan: str, api_key: str, company: str | None = None
    ) -> User:
        async with self._lock:
            email = email.lower()
            if any(u.email == email for u in self._users.values()):
                raise ValueError(f"email already registered: {email}")
            user = User(
                user_id=generate_id("usr_"),
                email=email,
                company=company,
                plan=plan,
                api_key=api_key,
                created_at=_now(),
            )
            self._users[user.user_id] = user
            return user.model_copy()

    async def get_user_by_id(self, user_id: str) -> User | None:
        user = self._users.get(user_id)
        return user.model_copy() if user else None

    async def get_user_by_email(self, email: str) -> User | None:
        email = email.lower()
        for user in self._users.values():
            if user.email == email:
                return user.model_copy()
        return None

    async def get_user_by_api_key(self, api_key: str) -> User | None:
        for user in self._users.values():
            if user.api_key == api_key:
                return user.model_copy()
        return None

    async def increment_user_audit_count(self, user_id: str) -> int | None:
        async with self._lock:
            user = self._users.get(user_id)
            if user is None:
                return None
            user.audit_count += 1
            return user.audit_count

    async def reset_audit_counts(self) -> int:
        async with self._lock:
            now = _now()
            for user in self._users.values():
                user.audit_count = 0
                user.usage_reset_at = now
            return len(self._users)

    # Audits

    async def create_audit(
        self, user_id: str, url: str, client_name: str, options: dict[str, Any]
    ) -> Audit:
        async with self._lock:
            audit = Audit(
                audit_id=generate_id("aud_"),
                user_id=user_id,
                url=url,
                client_name=client_name,
                status=AuditStatus.QUEUED,
                options=dict(options),
                created_at=_now(),
            )
            self._audits[audit.audit_id] = audit
            return audit.model_copy()

    async def get_audit_by_id(self, audit_id: str) -> Audit | None:
        audit = self._audits.get(audit_id)
        return audit.model_copy() if audit else None

    async def update_audit(self, audit_id: str, **fields: Any) -> Audit | None:
        check_fields(fields, AUDIT_MUTABLE_FIELDS)
        async with self._lock:
            audit = self._audits.get(audit_id)
            if audit is None:
                return None
            updated = audit.model_copy(update=fields)
            self._audits[audit_id] = updated
            return updated.model_copy()

    async def get_user_audits(self, user_id: str, limit: int, offset: int) -> list[Audit]:
        owned = [a for a in self._audits.values() if a.user_id == user_id]
        owned.sort(key=lambda a: a.created_at, reverse=True)
        return [a.model_copy() for a in owned[offset:offset + limit]]

    async def delete_audit(self, audit_id: str) -> bool:
        async with self._lock:
            return self._audits.pop(audit_id, None) is not None

    async def list_unfinished_audits(self) -> list[Audit]:
        return [
            a.model_copy()
            for a in self._audits.values()
            if a.status in (AuditStatus.QUEUED, AuditStatus.RUNNING)
        ]

    async def get_user_audit_stats(self, user_id: str, since: datetime) -> AuditStats:
        owned = [a for a in self._audits.values() if a.user_id == user_id]
        scores = [extract_score(a.results) for a in owned if a.status == AuditStatus.COMPLETED]
        return AuditStats(
            total=len(owned),
            since_count=sum(1 for a in owned if a.created_at >= since),
            completed=sum(1 for a in owned if a.status == AuditStatus.COMPLETED),
            failed=sum(1 for a in owned if a.status == AuditStatus.FAILED),
            in_progress=sum(1 for a in owned if a.status in (AuditStatus.QUEUED, AuditStatus.RUNNING)),
            average_score=average([s for s in scores if s is not None]),
        )

    # Webhooks

    async def create_webhook(
        self, user_id: str, url: str, events: list[str], secret: str
    ) -> WebhookSubscription:
        async with self._lock:
            webhook = WebhookSubscription(
                webhook_id=generate_id("whk_"),
                user_id=user_id,
                url=url,
                events=list(events),
                secret=secret,
                created_at=_now(),
            )
            self._webhooks[webhook.webhook_id] = webhook
            return webhook.model_copy()

    async def get_user_webhooks(self, user_id: str) -> list[WebhookSubscription]:
        return [w.model_copy() for w in self._webhooks.values() if w.user_id == user_id]

    async def get_webhook_by_id(self, webhook_id: str) -> WebhookSubscription | None:
        webhook = self._webhooks.get(webhook_id)
        return webhook.model_copy() if webhook else None

    async def update_webhook(self, webhook_id: str, **fields: Any) -> WebhookSubscription | None:
        check_fields(fields, WEBHOOK_MUTABLE_FIELDS)
        async with self._lock:
            webhook = self._webhooks.get(webhook_id)
            if webhook is None:
                return None
            updated = webhook.model_copy(update=fields)
            self._webhooks[webhook_id] = updated
            return updated.model_copy()

    async def delete_webhook(self, webhook_id: str) -> bool:
        async with self._lock:
            return self._webhooks.pop(webhook_id, None) is not None

    async def record_webhook_delivery(
        self, webhook_id: str, succeeded: bool, failure_threshold: int
    ) -> WebhookSubscription | None:
        async with self._lock:
            webhook = self._webhooks.get(webhook_id)
            if webhook is None:
                return None
            webhook.last_triggered = _now()
            if not succeeded:
                webhook.failure_count += 1
                if webhook.failure_count >= failure_threshold:
                    webhook.active = False
            return webhook.model_copy()

    async def close(self) -> None:
        return None
