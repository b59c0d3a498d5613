"""Webhook subscription repository."""

from datetime import datetime, timezone

from sqlalchemy import case, update

from auditflow.db.models.webhook import WebhookRow
from auditflow.repositories.base import BaseRepository


class WebhookRepository(BaseRepository[WebhookRow]):
    model_class = WebhookRow
    pk_field = "webhook_id"

    async def list_for_user(self, user_id: str) -> list[WebhookRow]:
        return await self.list_where(order_by=(WebhookRow.created_at,), user_id=user_id)

    async def record_delivery(self, webhook_id: str, succeeded: bool, failure_threshold: int) -> bool:
        """Stamp last_triggered; on failure bump failure_count and deactivate at the threshold.

        Done as a single UPDATE so concurrent triggers never lose an increment.
        """
        values: dict = {"last_triggered": datetime.now(timezone.utc)}
        if not succeeded:
            values["failure_count"] = WebhookRow.failure_count + 1
            values["active"] = case(
                (WebhookRow.failure_count + 1 >= failure_threshold, False),
                else_=WebhookRow.active,
            )
        stmt = (
            update(WebhookRow)
            .where(WebhookRow.webhook_id == webhook_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return bool(result.rowcount)
