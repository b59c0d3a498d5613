"""User repository."""

from datetime import datetime, timezone

from sqlalchemy import update

from auditflow.db.models.user import UserRow
from auditflow.repositories.base import BaseRepository


class UserRepository(BaseRepository[UserRow]):
    model_class = UserRow
    pk_field = "user_id"

    async def get_by_email(self, email: str) -> UserRow | None:
        return await self.get_where(email=email.lower())

    async def get_by_api_key(self, api_key: str) -> UserRow | None:
        return await self.get_where(api_key=api_key)

    async def increment_audit_count(self, user_id: str) -> int | None:
        """Atomically bump the monthly counter in the database; return the new value."""
        stmt = (
            update(UserRow)
            .where(UserRow.user_id == user_id)
            .values(audit_count=UserRow.audit_count + 1)
            .returning(UserRow.audit_count)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def reset_audit_counts(self) -> int:
        stmt = update(UserRow).values(audit_count=0, usage_reset_at=datetime.now(timezone.utc))
        result = await self.session.execute(stmt)
        return result.rowcount or 0
