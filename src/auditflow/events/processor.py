"""Consumer for terminal audit events.

For each event the storage write happens first (status, and the usage counter
for completed audits); only once it has succeeded is the webhook triggered.
A failed write leaves the audit ``running`` in storage and sends nothing;
that case is logged at error level for operators and never retried here.
"""

import asyncio
import logging

from auditflow.errors.exceptions import PersistenceError
from auditflow.events.bus import Subscription, TerminalEventBus
from auditflow.events.webhook_emitter import WebhookDispatcher
from auditflow.models.events import AuditCompleted, TerminalEvent
from auditflow.storage.gateway import StorageGateway

logger = logging.getLogger(__name__)


class TerminalEventProcessor:
    def __init__(
        self,
        storage: StorageGateway,
        dispatcher: WebhookDispatcher,
        bus: TerminalEventBus,
    ) -> None:
        self._storage = storage
        self._dispatcher = dispatcher
        self._bus = bus
        self._subscription: Subscription | None = None
        self._task: asyncio.Task | None = None
        self._deliveries: set[asyncio.Task] = set()

    async def start(self) -> None:
        if self._task is not None:
            return
        self._subscription = self._bus.subscribe()
        self._task = asyncio.create_task(self._consume(), name="terminal-event-processor")

    async def stop(self) -> None:
        """Finish events already published, then wait for in-flight webhook deliveries."""
        if self._subscription is not None:
            self._subscription.cancel()
        if self._task is not None:
            await self._task
            self._task = None
        await self.wait_for_deliveries()

    async def wait_for_deliveries(self) -> None:
        while self._deliveries:
            await asyncio.gather(*list(self._deliveries), return_exceptions=True)

    async def _consume(self) -> None:
        async for event in self._subscription:
            try:
                await self.handle(event)
            except Exception:
                logger.exception("Unexpected error handling %s for audit %s", event.name, event.audit_id)
            finally:
                self._subscription.task_done()

    async def settle(self) -> None:
        """Wait until every published event is persisted and its webhooks have run."""
        if self._subscription is not None and self._task is not None:
            await self._subscription.join()
        await self.wait_for_deliveries()

    async def handle(self, event: TerminalEvent) -> bool:
        """Persist ``event`` then schedule its webhook. Returns False if persistence failed."""
        if not await self._persist(event):
            return False

        task = asyncio.create_task(
            self._dispatcher.trigger(event.user_id, event.webhook_event, event.webhook_payload()),
            name=f"webhook-{event.audit_id}",
        )
        self._deliveries.add(task)
        task.add_done_callback(self._deliveries.discard)
        return True

    async def _persist(self, event: TerminalEvent) -> bool:
        try:
            audit = await self._storage.update_audit(event.audit_id, **event.storage_fields())
            if audit is None:
                raise PersistenceError("update_audit", f"audit {event.audit_id} not found")
            if isinstance(event, AuditCompleted):
                await self._storage.increment_user_audit_count(event.user_id)
        except PersistenceError as exc:
            logger.error(
                "Terminal event %s for audit %s not persisted, webhook skipped: %s",
                event.name, event.audit_id, exc,
            )
            return False
        return True
