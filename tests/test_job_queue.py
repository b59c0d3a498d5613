"""Tests for the audit job queue: FIFO dispatch, concurrency, timeouts, terminal events."""

import asyncio
import time

import pytest

from auditflow.events.bus import TerminalEventBus
from auditflow.models.enums import AuditStatus
from auditflow.models.events import AuditCompleted, AuditFailed
from auditflow.workers.queue import AuditJob, AuditJobQueue


def job(n: int, user_id: str = "usr_1") -> AuditJob:
    return AuditJob(audit_id=f"aud_{n}", user_id=user_id, url=f"https://site{n}.example")


async def collect(bus: TerminalEventBus, sub) -> list:
    bus.close()
    return [event async for event in sub]


class TimedExecutor:
    """Records call order, start/finish times and peak concurrency."""

    def __init__(self, delay: float = 0.1):
        self.delay = delay
        self.calls: list[str] = []
        self.started: dict[str, float] = {}
        self.finished: dict[str, float] = {}
        self.active = 0
        self.peak = 0

    async def __call__(self, url: str, options: dict) -> dict:
        self.calls.append(url)
        self.started[url] = time.monotonic()
        self.active += 1
        self.peak = max(self.peak, self.active)
        try:
            await asyncio.sleep(self.delay)
        finally:
            self.active -= 1
            self.finished[url] = time.monotonic()
        return {"url": url}


async def test_third_job_waits_for_a_free_worker():
    bus = TerminalEventBus()
    sub = bus.subscribe()
    executor = TimedExecutor(delay=0.1)
    queue = AuditJobQueue(executor, bus, concurrency=2, timeout_ms=5_000)
    await queue.start()

    for n in (1, 2, 3):
        queue.submit(job(n))
    await queue.join()
    await queue.close()

    assert executor.peak == 2
    first_done = min(executor.finished["https://site1.example"], executor.finished["https://site2.example"])
    assert executor.started["https://site3.example"] >= first_done

    events = await collect(bus, sub)
    assert sorted(e.audit_id for e in events) == ["aud_1", "aud_2", "aud_3"]
    assert all(isinstance(e, AuditCompleted) for e in events)


async def test_excess_jobs_stay_queued_until_released():
    bus = TerminalEventBus()
    gate = asyncio.Event()

    async def blocked(url, options):
        await gate.wait()
        return {}

    queue = AuditJobQueue(blocked, bus, concurrency=2, timeout_ms=5_000)
    await queue.start()
    for n in (1, 2, 3, 4):
        queue.submit(job(n))
    await asyncio.sleep(0.05)

    assert queue.running == 2
    assert queue.depth == 2
    assert queue.status("aud_1") == AuditStatus.RUNNING
    assert queue.status("aud_2") == AuditStatus.RUNNING
    assert queue.status("aud_3") == AuditStatus.QUEUED
    assert queue.status("aud_4") == AuditStatus.QUEUED

    gate.set()
    await queue.join()
    await queue.close()
    assert queue.depth == 0


async def test_jobs_dispatched_in_fifo_order_and_once():
    bus = TerminalEventBus()
    executor = TimedExecutor(delay=0.01)
    queue = AuditJobQueue(executor, bus, concurrency=1, timeout_ms=5_000)
    await queue.start()
    for n in range(1, 6):
        queue.submit(job(n))
    await queue.join()
    await queue.close()

    assert executor.calls == [f"https://site{n}.example" for n in range(1, 6)]


async def test_duplicate_submit_rejected():
    bus = TerminalEventBus()
    queue = AuditJobQueue(TimedExecutor(), bus, concurrency=1)
    queue.submit(job(1))
    with pytest.raises(ValueError):
        queue.submit(job(1))


async def test_submit_after_close_rejected():
    bus = TerminalEventBus()
    queue = AuditJobQueue(TimedExecutor(), bus, concurrency=1)
    await queue.start()
    await queue.close()
    with pytest.raises(RuntimeError):
        queue.submit(job(1))


async def test_timeout_fails_job_and_frees_worker():
    bus = TerminalEventBus()
    sub = bus.subscribe()
    calls = []

    async def slow_then_fast(url, options):
        calls.append(url)
        if url.endswith("site1.example"):
            await asyncio.sleep(10)
        return {"url": url}

    queue = AuditJobQueue(slow_then_fast, bus, concurrency=1, timeout_ms=50)
    await queue.start()
    queue.submit(job(1))
    queue.submit(job(2))

    started = time.monotonic()
    await queue.join()
    assert time.monotonic() - started < 2
    await queue.close()

    events = {e.audit_id: e for e in await collect(bus, sub)}
    timed_out = events["aud_1"]
    assert isinstance(timed_out, AuditFailed)
    assert timed_out.timed_out is True
    assert "timed out after 50 ms" in timed_out.error
    assert isinstance(events["aud_2"], AuditCompleted)
    assert calls == ["https://site1.example", "https://site2.example"]


async def test_executor_ignoring_cancellation_does_not_block_queue():
    bus = TerminalEventBus()
    sub = bus.subscribe()

    async def stubborn(url, options):
        if url.endswith("site1.example"):
            try:
                await asyncio.sleep(1)
            except asyncio.CancelledError:
                await asyncio.sleep(1)
        return {}

    queue = AuditJobQueue(stubborn, bus, concurrency=1, timeout_ms=30)
    await queue.start()
    queue.submit(job(1))
    queue.submit(job(2))
    await asyncio.wait_for(queue.join(), timeout=0.8)
    await queue.close()

    events = {e.audit_id: e for e in await collect(bus, sub)}
    assert isinstance(events["aud_1"], AuditFailed)
    assert isinstance(events["aud_2"], AuditCompleted)


async def test_executor_error_becomes_failed_event():
    bus = TerminalEventBus()
    sub = bus.subscribe()

    async def broken(url, options):
        raise RuntimeError("lighthouse crashed")

    queue = AuditJobQueue(broken, bus, concurrency=1, timeout_ms=1_000)
    await queue.start()
    queue.submit(job(1))
    await queue.join()
    await queue.close()

    events = await collect(bus, sub)
    assert len(events) == 1
    assert isinstance(events[0], AuditFailed)
    assert events[0].error == "lighthouse crashed"
    assert events[0].timed_out is False


async def test_non_dict_result_is_a_failure():
    bus = TerminalEventBus()
    sub = bus.subscribe()

    async def wrong_shape(url, options):
        return ["not", "a", "dict"]

    queue = AuditJobQueue(wrong_shape, bus, concurrency=1, timeout_ms=1_000)
    await queue.start()
    queue.submit(job(1))
    await queue.join()
    await queue.close()

    (event,) = await collect(bus, sub)
    assert isinstance(event, AuditFailed)
    assert "expected a results object" in event.error


async def test_exactly_one_terminal_event_per_job():
    bus = TerminalEventBus()
    sub = bus.subscribe()

    async def mixed(url, options):
        n = int(url.removeprefix("https://site").removesuffix(".example"))
        if n % 3 == 0:
            raise ValueError("bad page")
        if n % 5 == 0:
            await asyncio.sleep(1)
        return {"n": n}

    queue = AuditJobQueue(mixed, bus, concurrency=3, timeout_ms=100)
    await queue.start()
    for n in range(1, 16):
        queue.submit(job(n))
    await queue.join()
    await queue.close()

    events = await collect(bus, sub)
    ids = [e.audit_id for e in events]
    assert len(ids) == 15
    assert len(set(ids)) == 15
    failed = {e.audit_id for e in events if isinstance(e, AuditFailed)}
    assert failed == {f"aud_{n}" for n in (3, 5, 6, 9, 10, 12, 15)}


async def test_running_status_written_to_storage(storage, user):
    audit = await storage.create_audit(user.user_id, "https://example.com", "Default", {})
    bus = TerminalEventBus()
    seen = []

    async def observe(url, options):
        seen.append((await storage.get_audit_by_id(audit.audit_id)).status)
        return {}

    queue = AuditJobQueue(observe, bus, storage=storage, concurrency=1, timeout_ms=1_000)
    await queue.start()
    queue.submit(AuditJob(audit_id=audit.audit_id, user_id=user.user_id, url=audit.url))
    await queue.join()
    await queue.close()

    assert seen == [AuditStatus.RUNNING]


async def test_options_passed_to_executor():
    bus = TerminalEventBus()
    received = []

    async def capture(url, options):
        received.append(options)
        return {}

    queue = AuditJobQueue(capture, bus, concurrency=1, timeout_ms=1_000)
    await queue.start()
    queue.submit(AuditJob(audit_id="aud_opt", user_id="usr_1", url="https://a.example", options={"device": "mobile"}))
    await queue.join()
    await queue.close()

    assert received == [{"device": "mobile"}]


@pytest.mark.parametrize("kwargs", [{"concurrency": 0}, {"timeout_ms": 0}])
def test_zero_settings_rejected(kwargs):
    with pytest.raises(ValueError):
        AuditJobQueue(TimedExecutor(), TerminalEventBus(), **kwargs)
