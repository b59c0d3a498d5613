"""SQLAlchemy ORM models - import all to register with Base.metadata."""

from auditflow.db.models.user import UserRow
from auditflow.db.models.audit import AuditRow
from auditflow.db.models.webhook import WebhookRow

__all__ = [
    "UserRow",
    "AuditRow",
    "WebhookRow",
]
