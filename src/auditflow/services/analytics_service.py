"""Per-user audit analytics."""

from datetime import datetime, timezone

from auditflow.models.analytics import AnalyticsOverview
from auditflow.storage.gateway import StorageGateway


def month_start(now: datetime) -> datetime:
    """Midnight UTC on the first day of ``now``'s calendar month."""
    now = now.astimezone(timezone.utc)
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


async def get_overview(
    storage: StorageGateway,
    user_id: str,
    now: datetime | None = None,
) -> AnalyticsOverview:
    now = now or datetime.now(timezone.utc)
    stats = await storage.get_user_audit_stats(user_id, month_start(now))
    return AnalyticsOverview(
        total_audits=stats.total,
        audits_this_month=stats.since_count,
        completed_audits=stats.completed,
        failed_audits=stats.failed,
        in_progress_audits=stats.in_progress,
        average_score=stats.average_score,
        last_updated=now,
    )
