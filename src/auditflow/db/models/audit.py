"""Audit job table."""

from datetime import datetime

from sqlalchemy import JSON, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from auditflow.db.base import Base, TimestampMixin


class AuditRow(Base, TimestampMixin):
    __tablename__ = "audits"

    audit_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(128), ForeignKey("users.user_id"), nullable=False, index=True)
    url: Mapped[str] = mapped_column(String(2048), nullable=False)
    client_name: Mapped[str] = mapped_column(String(200), nullable=False, default="Default")
    status: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    options: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    results: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
