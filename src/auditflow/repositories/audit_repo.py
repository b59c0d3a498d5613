"""Audit repository."""

from datetime import datetime

from sqlalchemy import func, select

from auditflow.db.models.audit import AuditRow
from auditflow.models.enums import AuditStatus
from auditflow.repositories.base import BaseRepository


class AuditRepository(BaseRepository[AuditRow]):
    model_class = AuditRow
    pk_field = "audit_id"

    async def list_for_user(self, user_id: str, limit: int, offset: int) -> list[AuditRow]:
        """Newest first."""
        return await self.list_where(
            order_by=(AuditRow.created_at.desc(), AuditRow.audit_id),
            limit=limit,
            offset=offset,
            user_id=user_id,
        )

    async def list_unfinished(self) -> list[AuditRow]:
        stmt = select(AuditRow).where(
            AuditRow.status.in_([AuditStatus.QUEUED.value, AuditStatus.RUNNING.value])
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count_by_status(self, user_id: str) -> dict[str, int]:
        stmt = (
            select(AuditRow.status, func.count())
            .where(AuditRow.user_id == user_id)
            .group_by(AuditRow.status)
        )
        result = await self.session.execute(stmt)
        return {status: count for status, count in result.all()}

    async def count_created_since(self, user_id: str, since: datetime) -> int:
        stmt = (
            select(func.count())
            .select_from(AuditRow)
            .where(AuditRow.user_id == user_id, AuditRow.created_at >= since)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one()

    async def completed_results(self, user_id: str) -> list[dict | None]:
        stmt = select(AuditRow.results).where(
            AuditRow.user_id == user_id,
            AuditRow.status == AuditStatus.COMPLETED.value,
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
