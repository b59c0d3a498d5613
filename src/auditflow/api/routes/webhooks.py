"""Webhook subscription endpoints."""

from fastapi import APIRouter, status

from auditflow.dependencies import CurrentUser, Storage
from auditflow.models.webhook import CreateWebhookRequest, WebhookResponse, WebhookSubscription
from auditflow.services import webhook_service

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])


def _to_response(webhook: WebhookSubscription, include_secret: bool = False) -> dict:
    return WebhookResponse(
        webhook_id=webhook.webhook_id,
        url=webhook.url,
        events=webhook.events,
        secret=webhook.secret if include_secret else None,
        active=webhook.active,
        failure_count=webhook.failure_count,
        last_triggered=webhook.last_triggered,
        created_at=webhook.created_at,
    ).model_dump(mode="json", by_alias=True, exclude_none=True)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_webhook(body: CreateWebhookRequest, user: CurrentUser, storage: Storage) -> dict:
    webhook = await webhook_service.create_webhook(
        storage, user.user_id, body.url, [e.value for e in body.events], secret=body.secret
    )
    # The secret is only ever returned at creation time.
    return _to_response(webhook, include_secret=True)


@router.get("")
async def list_webhooks(user: CurrentUser, storage: Storage) -> dict:
    webhooks = await storage.get_user_webhooks(user.user_id)
    return {"webhooks": [_to_response(w) for w in webhooks]}


@router.delete("/{webhook_id}")
async def delete_webhook(webhook_id: str, user: CurrentUser, storage: Storage) -> dict:
    await webhook_service.delete_webhook(storage, user.user_id, webhook_id)
    return {"message": "Webhook deleted successfully"}


@router.post("/{webhook_id}/reactivate")
async def reactivate_webhook(webhook_id: str, user: CurrentUser, storage: Storage) -> dict:
    webhook = await webhook_service.reactivate_webhook(storage, user.user_id, webhook_id)
    return _to_response(webhook)
