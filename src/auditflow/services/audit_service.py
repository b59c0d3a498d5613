"""Audit submission and owner-scoped audit access."""

import logging
from datetime import datetime, timezone
from typing import Any

from auditflow.errors.exceptions import NotFoundError
from auditflow.models.audit import Audit, AuditSubmission
from auditflow.models.enums import AuditStatus
from auditflow.services.quota_gate import ensure_admitted
from auditflow.storage.gateway import StorageGateway
from auditflow.workers.queue import AuditJob, AuditJobQueue

logger = logging.getLogger(__name__)

DEFAULT_CLIENT_NAME = "Default"
INTERRUPTED_ERROR = "Audit interrupted by service restart"


async def submit_audit(
    storage: StorageGateway,
    queue: AuditJobQueue,
    user_id: str,
    url: str,
    client_name: str | None = None,
    options: dict[str, Any] | None = None,
) -> AuditSubmission:
    """Admit, record and enqueue a new audit.

    Raises ``AdmissionError`` when the user's plan quota is used up; in that
    case no audit record is created.
    """
    user = await storage.get_user_by_id(user_id)
    if user is None:
        raise NotFoundError("User", user_id)
    ensure_admitted(user)

    client_name = client_name or DEFAULT_CLIENT_NAME
    options = options or {}
    audit = await storage.create_audit(user_id, url, client_name, options)
    queue.submit(
        AuditJob(
            audit_id=audit.audit_id,
            user_id=user_id,
            url=url,
            client_name=client_name,
            options=options,
        )
    )
    return AuditSubmission(audit_id=audit.audit_id, status=AuditStatus.QUEUED)


async def get_owned_audit(storage: StorageGateway, user_id: str, audit_id: str) -> Audit:
    audit = await storage.get_audit_by_id(audit_id)
    if audit is None or audit.user_id != user_id:
        raise NotFoundError("Audit", audit_id)
    return audit


async def list_audits(storage: StorageGateway, user_id: str, page: int, limit: int) -> list[Audit]:
    offset = (page - 1) * limit
    return await storage.get_user_audits(user_id, limit, offset)


async def delete_audit(storage: StorageGateway, user_id: str, audit_id: str) -> None:
    await get_owned_audit(storage, user_id, audit_id)
    await storage.delete_audit(audit_id)


async def fail_interrupted_audits(storage: StorageGateway) -> int:
    """Mark audits left queued/running by a previous process as failed.

    The queue is memory-only, so such audits can never finish on their own.
    Their webhooks are not replayed.
    """
    stale = await storage.list_unfinished_audits()
    now = datetime.now(timezone.utc)
    for audit in stale:
        await storage.update_audit(
            audit.audit_id,
            status=AuditStatus.FAILED,
            error=INTERRUPTED_ERROR,
            completed_at=now,
        )
    if stale:
        logger.warning("Marked %d interrupted audits as failed", len(stale))
    return len(stale)
