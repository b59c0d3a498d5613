"""SQLAlchemy-backed storage gateway.

Each operation runs in its own session and commits before returning, so a
gateway call is the unit of atomicity. Counter updates are issued as
``UPDATE ... SET x = x + 1`` rather than read-modify-write in Python.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from auditflow.errors.exceptions import PersistenceError
from auditflow.models.analytics import AuditStats, average, extract_score
from auditflow.models.audit import Audit
from auditflow.models.enums import AuditStatus
from auditflow.models.user import User
from auditflow.models.webhook import WebhookSubscription
from auditflow.repositories.audit_repo import AuditRepository
from auditflow.repositories.user_repo import UserRepository
from auditflow.repositories.webhook_repo import WebhookRepository
from auditflow.services.id_generator import generate_id
from auditflow.storage.gateway import AUDIT_MUTABLE_FIELDS, WEBHOOK_MUTABLE_FIELDS, check_fields

logger = logging.getLogger(__name__)


class SqlStorage:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession], engine=None):
        self._session_factory = session_factory
        self._engine = engine

    @asynccontextmanager
    async def _session(self, operation: str):
        try:
            async with self._session_factory() as session:
                yield session
                await session.commit()
        except SQLAlchemyError as exc:
            logger.error("Storage operation %s failed: %s", operation, exc)
            raise PersistenceError(operation, str(exc)) from exc

    # Users

    async def create_user(
        self, email: str, plan: str, api_key: str, company: str | None = None
    ) -> User:
        async with self._session("create_user") as session:
            row = await UserRepository(session).create(
                user_id=generate_id("usr_"),
                email=email.lower(),
                company=company,
                plan=plan,
                api_key=api_key,
                audit_count=0,
            )
            return User.model_validate(row)

    async def get_user_by_id(self, user_id: str) -> User | None:
        async with self._session("get_user_by_id") as session:
            row = await UserRepository(session).get(user_id)
            return User.model_validate(row) if row else None

    async def get_user_by_email(self, email: str) -> User | None:
        async with self._session("get_user_by_email") as session:
            row = await UserRepository(session).get_by_email(email)
            return User.model_validate(row) if row else None

    async def get_user_by_api_key(self, api_key: str) -> User | None:
        async with self._session("get_user_by_api_key") as session:
            row = await UserRepository(session).get_by_api_key(api_key)
            return User.model_validate(row) if row else None

    async def increment_user_audit_count(self, user_id: str) -> int | None:
        async with self._session("increment_user_audit_count") as session:
            return await UserRepository(session).increment_audit_count(user_id)

    async def reset_audit_counts(self) -> int:
        async with self._session("reset_audit_counts") as session:
            return await UserRepository(session).reset_audit_counts()

    # Audits

    async def create_audit(
        self, user_id: str, url: str, client_name: str, options: dict[str, Any]
    ) -> Audit:
        async with self._session("create_audit") as session:
            row = await AuditRepository(session).create(
                audit_id=generate_id("aud_"),
                user_id=user_id,
                url=url,
                client_name=client_name,
                status=AuditStatus.QUEUED.value,
                options=dict(options),
            )
            return Audit.model_validate(row)

    async def get_audit_by_id(self, audit_id: str) -> Audit | None:
        async with self._session("get_audit_by_id") as session:
            row = await AuditRepository(session).get(audit_id)
            return Audit.model_validate(row) if row else None

    async def update_audit(self, audit_id: str, **fields: Any) -> Audit | None:
        check_fields(fields, AUDIT_MUTABLE_FIELDS)
        if "status" in fields:
            fields["status"] = AuditStatus(fields["status"]).value
        async with self._session("update_audit") as session:
            repo = AuditRepository(session)
            row = await repo.get(audit_id)
            if row is None:
                return None
            await repo.update(row, **fields)
            return Audit.model_validate(row)

    async def get_user_audits(self, user_id: str, limit: int, offset: int) -> list[Audit]:
        async with self._session("get_user_audits") as session:
            rows = await AuditRepository(session).list_for_user(user_id, limit, offset)
            return [Audit.model_validate(r) for r in rows]

    async def delete_audit(self, audit_id: str) -> bool:
        async with self._session("delete_audit") as session:
            repo = AuditRepository(session)
            row = await repo.get(audit_id)
            if row is None:
                return False
            await repo.delete(row)
            return True

    async def list_unfinished_audits(self) -> list[Audit]:
        async with self._session("list_unfinished_audits") as session:
            rows = await AuditRepository(session).list_unfinished()
            return [Audit.model_validate(r) for r in rows]

    async def get_user_audit_stats(self, user_id: str, since: datetime) -> AuditStats:
        async with self._session("get_user_audit_stats") as session:
            repo = AuditRepository(session)
            by_status = await repo.count_by_status(user_id)
            since_count = await repo.count_created_since(user_id, since)
            scores = [extract_score(r) for r in await repo.completed_results(user_id)]
        return AuditStats(
            total=sum(by_status.values()),
            since_count=since_count,
            completed=by_status.get(AuditStatus.COMPLETED.value, 0),
            failed=by_status.get(AuditStatus.FAILED.value, 0),
            in_progress=by_status.get(AuditStatus.QUEUED.value, 0) + by_status.get(AuditStatus.RUNNING.value, 0),
            average_score=average([s for s in scores if s is not None]),
        )

    # Webhooks

    async def create_webhook(
        self, user_id: str, url: str, events: list[str], secret: str
    ) -> WebhookSubscription:
        async with self._session("create_webhook") as session:
            row = await WebhookRepository(session).create(
                webhook_id=generate_id("whk_"),
                user_id=user_id,
                url=url,
                events=[str(e) for e in events],
                secret=secret,
                active=True,
                failure_count=0,
            )
            return WebhookSubscription.model_validate(row)

    async def get_user_webhooks(self, user_id: str) -> list[WebhookSubscription]:
        async with self._session("get_user_webhooks") as session:
            rows = await WebhookRepository(session).list_for_user(user_id)
            return [WebhookSubscription.model_validate(r) for r in rows]

    async def get_webhook_by_id(self, webhook_id: str) -> WebhookSubscription | None:
        async with self._session("get_webhook_by_id") as session:
            row = await WebhookRepository(session).get(webhook_id)
            return WebhookSubscription.model_validate(row) if row else None

    async def update_webhook(self, webhook_id: str, **fields: Any) -> WebhookSubscription | None:
        check_fields(fields, WEBHOOK_MUTABLE_FIELDS)
        async with self._session("update_webhook") as session:
            repo = WebhookRepository(session)
            row = await repo.get(webhook_id)
            if row is None:
                return None
            await repo.update(row, **fields)
            return WebhookSubscription.model_validate(row)

    async def delete_webhook(self, webhook_id: str) -> bool:
        async with self._session("delete_webhook") as session:
            repo = WebhookRepository(session)
            row = await repo.get(webhook_id)
            if row is None:
                return False
            await repo.delete(row)
            return True

    async def record_webhook_delivery(
        self, webhook_id: str, succeeded: bool, failure_threshold: int
    ) -> WebhookSubscription | None:
        async with self._session("record_webhook_delivery") as session:
            repo = WebhookRepository(session)
            if not await repo.record_delivery(webhook_id, succeeded, failure_threshold):
                return None
            row = await repo.get(webhook_id)
            return WebhookSubscription.model_validate(row)

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
