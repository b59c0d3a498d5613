"""Webhook event delivery with HMAC-SHA256 signing and retry.

Delivery is at-least-once: a subscriber may see the same event more than once
(e.g. when it acknowledged too slowly) and is expected to be idempotent.
"""

import asyncio
import hashlib
import hmac
import json
import logging
from collections import defaultdict
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import httpx

from auditflow.config import settings
from auditflow.errors.exceptions import DeliveryError, PersistenceError
from auditflow.models.enums import DeliveryState
from auditflow.models.webhook import WebhookEnvelope, WebhookSubscription
from auditflow.services.id_generator import generate_id
from auditflow.storage.gateway import StorageGateway

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Webhook-Signature"
EVENT_HEADER = "X-Webhook-Event"
DELIVERY_HEADER = "X-Webhook-Delivery"
ATTEMPT_HEADER = "X-Webhook-Attempt"
SIGNATURE_SCHEME = "sha256="


def sign_payload(body: bytes, secret: str) -> str:
    """Compute HMAC-SHA256 signature over the raw JSON body."""
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def verify_signature(body: bytes, secret: str, signature: str) -> bool:
    """Check a signature header value against ``body``; for subscribers and tests."""
    if signature.startswith(SIGNATURE_SCHEME):
        signature = signature[len(SIGNATURE_SCHEME):]
    return hmac.compare_digest(sign_payload(body, secret), signature)


def build_envelope(event: str, payload: dict[str, Any]) -> WebhookEnvelope:
    return WebhookEnvelope(event=event, data=payload, timestamp=datetime.now(timezone.utc))


def serialize_envelope(envelope: WebhookEnvelope) -> bytes:
    return json.dumps(envelope.model_dump(mode="json"), separators=(",", ":")).encode("utf-8")


@dataclass
class DeliveryResult:
    webhook_id: str
    url: str
    state: DeliveryState
    attempts: int
    status_code: int | None = None
    error: str | None = None

    @property
    def delivered(self) -> bool:
        return self.state == DeliveryState.DELIVERED


class WebhookDispatcher:
    """Fan an event out to every matching subscription of a user.

    Subscriptions are delivered concurrently and independently; each gets up
    to ``max_retries`` attempts with exponential backoff. Exhaustion bumps
    the subscription's persistent ``failure_count``, which deactivates it
    once ``failure_threshold`` is reached.
    """

    def __init__(
        self,
        storage: StorageGateway,
        max_retries: int | None = None,
        timeout_ms: int | None = None,
        backoff_base_ms: int | None = None,
        failure_threshold: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._storage = storage
        self.max_retries = settings.webhook_max_retries if max_retries is None else max_retries
        self.timeout_ms = settings.webhook_timeout_ms if timeout_ms is None else timeout_ms
        self.backoff_base_ms = settings.webhook_backoff_base_ms if backoff_base_ms is None else backoff_base_ms
        self.failure_threshold = (
            settings.webhook_failure_threshold if failure_threshold is None else failure_threshold
        )
        if self.max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        if self.failure_threshold < 1:
            raise ValueError("failure_threshold must be at least 1")
        self._transport = transport
        self._sleep = sleep
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    def backoff_delay(self, attempt: int) -> float:
        """Seconds to wait after failed attempt number ``attempt`` (1-based)."""
        return self.backoff_base_ms * (2 ** (attempt - 1)) / 1000

    async def trigger(self, user_id: str, event: str, payload: dict[str, Any]) -> list[DeliveryResult]:
        """Deliver ``event`` to the user's active subscriptions. Never raises."""
        try:
            subscriptions = await self._storage.get_user_webhooks(user_id)
        except PersistenceError as exc:
            logger.error("Cannot load webhooks for user %s, %s not delivered: %s", user_id, event, exc)
            return []

        matching = [s for s in subscriptions if s.wants(event)]
        if not matching:
            return []

        body = serialize_envelope(build_envelope(event, payload))
        async with httpx.AsyncClient(
            timeout=self.timeout_ms / 1000,
            transport=self._transport,
        ) as client:
            outcomes = await asyncio.gather(
                *(self._deliver(client, sub, event, body) for sub in matching),
                return_exceptions=True,
            )

        results = []
        for sub, outcome in zip(matching, outcomes):
            if isinstance(outcome, BaseException):
                logger.error("Webhook %s delivery crashed: %r", sub.webhook_id, outcome)
                outcome = DeliveryResult(
                    webhook_id=sub.webhook_id,
                    url=sub.url,
                    state=DeliveryState.EXHAUSTED,
                    attempts=0,
                    error=repr(outcome),
                )
                await self._record(sub, delivered=False)
            results.append(outcome)
        return results

    async def _deliver(
        self,
        client: httpx.AsyncClient,
        sub: WebhookSubscription,
        event: str,
        body: bytes,
    ) -> DeliveryResult:
        headers = {
            "Content-Type": "application/json",
            SIGNATURE_HEADER: SIGNATURE_SCHEME + sign_payload(body, sub.secret),
            EVENT_HEADER: event,
            DELIVERY_HEADER: generate_id("dlv_"),
        }
        result = DeliveryResult(
            webhook_id=sub.webhook_id,
            url=sub.url,
            state=DeliveryState.PENDING,
            attempts=0,
        )

        for attempt in range(1, self.max_retries + 1):
            result.attempts = attempt
            try:
                result.status_code = await self._attempt(
                    client, sub.url, body, {**headers, ATTEMPT_HEADER: str(attempt)}
                )
            except DeliveryError as exc:
                result.status_code = exc.response_status
                result.error = exc.message
                logger.warning(
                    "Webhook %s attempt %d/%d failed: %s",
                    sub.webhook_id, attempt, self.max_retries, exc.message,
                )
                if attempt < self.max_retries:
                    await self._sleep(self.backoff_delay(attempt))
                continue
            result.state = DeliveryState.DELIVERED
            result.error = None
            break
        else:
            result.state = DeliveryState.EXHAUSTED
            logger.warning(
                "Webhook %s exhausted %d attempts for %s (%s)",
                sub.webhook_id, self.max_retries, event, sub.url,
            )

        await self._record(sub, result.delivered)
        return result

    async def _attempt(
        self,
        client: httpx.AsyncClient,
        url: str,
        body: bytes,
        headers: dict[str, str],
    ) -> int:
        try:
            resp = await client.post(url, content=body, headers=headers)
        except httpx.TimeoutException as exc:
            raise DeliveryError(f"timed out after {self.timeout_ms} ms") from exc
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise DeliveryError(f"{exc.__class__.__name__}: {exc}") from exc
        if not 200 <= resp.status_code < 300:
            raise DeliveryError(f"HTTP {resp.status_code}", status_code=resp.status_code)
        return resp.status_code

    async def _record(self, sub: WebhookSubscription, delivered: bool) -> None:
        # One writer per subscription at a time.
        async with self._locks[sub.webhook_id]:
            try:
                updated = await self._storage.record_webhook_delivery(
                    sub.webhook_id, delivered, self.failure_threshold
                )
            except PersistenceError as exc:
                logger.error("Could not record delivery outcome for webhook %s: %s", sub.webhook_id, exc)
                return
        if updated is not None and sub.active and not updated.active:
            logger.warning(
                "Webhook %s disabled after %d failed deliveries",
                sub.webhook_id, updated.failure_count,
            )
