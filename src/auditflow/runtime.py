"""Wiring for the job lifecycle: storage, queue, event bus, processor, dispatcher."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import httpx

from auditflow.events.bus import TerminalEventBus
from auditflow.events.processor import TerminalEventProcessor
from auditflow.events.webhook_emitter import WebhookDispatcher
from auditflow.services.audit_service import fail_interrupted_audits
from auditflow.storage.gateway import StorageGateway
from auditflow.workers.executor import AuditExecutor
from auditflow.workers.queue import AuditJobQueue

logger = logging.getLogger(__name__)

# Seconds to let queued audits finish on shutdown before cancelling workers
_DRAIN_TIMEOUT = 30.0


@dataclass
class AuditRuntime:
    storage: StorageGateway
    bus: TerminalEventBus
    queue: AuditJobQueue
    dispatcher: WebhookDispatcher
    processor: TerminalEventProcessor

    @classmethod
    def build(
        cls,
        storage: StorageGateway,
        executor: AuditExecutor,
        *,
        concurrency: int | None = None,
        timeout_ms: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> "AuditRuntime":
        bus = TerminalEventBus()
        dispatcher = WebhookDispatcher(storage, transport=transport, sleep=sleep)
        return cls(
            storage=storage,
            bus=bus,
            queue=AuditJobQueue(
                executor,
                bus,
                storage=storage,
                concurrency=concurrency,
                timeout_ms=timeout_ms,
            ),
            dispatcher=dispatcher,
            processor=TerminalEventProcessor(storage, dispatcher, bus),
        )

    async def start(self, recover: bool = True) -> None:
        if recover:
            await fail_interrupted_audits(self.storage)
        await self.processor.start()
        await self.queue.start()

    async def settle(self) -> None:
        """Wait for the queue to empty and every terminal event to be fully handled."""
        await self.queue.join()
        await self.processor.settle()

    async def stop(self, drain_timeout: float | None = _DRAIN_TIMEOUT) -> None:
        await self.queue.close(drain=True, timeout=drain_timeout)
        self.bus.close()
        await self.processor.stop()
        await self.storage.close()
