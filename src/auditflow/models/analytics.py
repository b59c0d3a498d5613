"""Pydantic models for per-user audit analytics."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class AuditStats(BaseModel):
    """Aggregate counts over one user's audits, as computed by the storage gateway."""

    total: int = 0
    since_count: int = 0
    completed: int = 0
    failed: int = 0
    in_progress: int = 0
    average_score: float | None = None


class AnalyticsOverview(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    total_audits: int
    audits_this_month: int
    completed_audits: int
    failed_audits: int
    in_progress_audits: int
    average_score: float | None = None
    last_updated: datetime


def extract_score(results: dict | None) -> float | None:
    """Numeric ``score`` from an audit's results, if the executor reported one."""
    if not results:
        return None
    score = results.get("score")
    if isinstance(score, bool) or not isinstance(score, (int, float)):
        return None
    return float(score)


def average(scores: list[float]) -> float | None:
    return round(sum(scores) / len(scores), 1) if scores else None
