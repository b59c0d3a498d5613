"""Audit submission, status polling and history endpoints."""

from fastapi import APIRouter, Query, status

from auditflow.dependencies import CurrentUser, Runtime, Storage
from auditflow.models.audit import (
    AuditListResponse,
    AuditResponse,
    AuditSummary,
    CreateAuditRequest,
    Pagination,
)
from auditflow.services import audit_service

router = APIRouter(prefix="/audits", tags=["Audits"])


@router.post("", status_code=status.HTTP_202_ACCEPTED)
async def create_audit(body: CreateAuditRequest, user: CurrentUser, runtime: Runtime) -> dict:
    submission = await audit_service.submit_audit(
        runtime.storage,
        runtime.queue,
        user.user_id,
        body.url,
        client_name=body.client_name,
        options=body.options,
    )
    return submission.model_dump(mode="json", by_alias=True)


@router.get("/{audit_id}")
async def get_audit(audit_id: str, user: CurrentUser, storage: Storage) -> dict:
    audit = await audit_service.get_owned_audit(storage, user.user_id, audit_id)
    return AuditResponse.model_validate(audit, from_attributes=True).model_dump(mode="json", by_alias=True)


@router.get("")
async def list_audits(
    user: CurrentUser,
    storage: Storage,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
) -> dict:
    audits = await audit_service.list_audits(storage, user.user_id, page, limit)
    return AuditListResponse(
        audits=[AuditSummary.model_validate(a, from_attributes=True) for a in audits],
        pagination=Pagination(page=page, limit=limit, has_more=len(audits) == limit),
    ).model_dump(mode="json", by_alias=True)


@router.delete("/{audit_id}")
async def delete_audit(audit_id: str, user: CurrentUser, storage: Storage) -> dict:
    await audit_service.delete_audit(storage, user.user_id, audit_id)
    return {"message": "Audit deleted successfully"}
