"""Owner-scoped webhook subscription management."""

import logging

from auditflow.errors.exceptions import NotFoundError
from auditflow.models.webhook import WebhookSubscription
from auditflow.services.id_generator import generate_webhook_secret
from auditflow.storage.gateway import StorageGateway

logger = logging.getLogger(__name__)


async def create_webhook(
    storage: StorageGateway,
    user_id: str,
    url: str,
    events: list[str],
    secret: str | None = None,
) -> WebhookSubscription:
    return await storage.create_webhook(
        user_id,
        url,
        sorted({str(e) for e in events}),
        secret or generate_webhook_secret(),
    )


async def get_owned_webhook(storage: StorageGateway, user_id: str, webhook_id: str) -> WebhookSubscription:
    webhook = await storage.get_webhook_by_id(webhook_id)
    if webhook is None or webhook.user_id != user_id:
        raise NotFoundError("Webhook", webhook_id)
    return webhook


async def delete_webhook(storage: StorageGateway, user_id: str, webhook_id: str) -> None:
    await get_owned_webhook(storage, user_id, webhook_id)
    await storage.delete_webhook(webhook_id)


async def reactivate_webhook(storage: StorageGateway, user_id: str, webhook_id: str) -> WebhookSubscription:
    """Owner reset: re-enable the endpoint and clear its failure counter."""
    await get_owned_webhook(storage, user_id, webhook_id)
    webhook = await storage.update_webhook(webhook_id, active=True, failure_count=0)
    if webhook is None:
        raise NotFoundError("Webhook", webhook_id)
    logger.info("Webhook %s reactivated by owner", webhook_id)
    return webhook
