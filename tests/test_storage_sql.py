"""Tests for the SQLAlchemy storage gateway against a file-backed SQLite database."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from auditflow.db.base import Base
from auditflow.db.engine import create_db_engine, create_session_factory
from auditflow.errors.exceptions import PersistenceError
from auditflow.models.enums import AuditStatus
from auditflow.services.audit_service import INTERRUPTED_ERROR, fail_interrupted_audits
from auditflow.services.user_service import reset_monthly_usage
from auditflow.storage.sql import SqlStorage

import auditflow.db.models  # noqa: F401


@pytest.fixture
async def sql_storage(tmp_path):
    engine = create_db_engine(f"sqlite+aiosqlite:///{tmp_path / 'auditflow_test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    store = SqlStorage(create_session_factory(engine), engine=engine)
    yield store
    await store.close()


@pytest.fixture
async def sql_user(sql_storage):
    return await sql_storage.create_user("Sql@Example.com", "pro", "ak_" + "s" * 32, company="Acme")


async def test_user_roundtrip(sql_storage, sql_user):
    assert sql_user.user_id.startswith("usr_")
    assert sql_user.email == "sql@example.com"
    assert sql_user.audit_count == 0

    assert (await sql_storage.get_user_by_id(sql_user.user_id)).company == "Acme"
    assert (await sql_storage.get_user_by_email("SQL@example.com")).user_id == sql_user.user_id
    assert (await sql_storage.get_user_by_api_key("ak_" + "s" * 32)).user_id == sql_user.user_id
    assert await sql_storage.get_user_by_id("usr_missing") is None


async def test_duplicate_email_is_a_persistence_error(sql_storage, sql_user):
    with pytest.raises(PersistenceError) as exc_info:
        await sql_storage.create_user("sql@example.com", "free", "ak_" + "t" * 32)
    assert exc_info.value.operation == "create_user"


async def test_concurrent_increments_are_not_lost(sql_storage, sql_user):
    results = await asyncio.gather(
        *(sql_storage.increment_user_audit_count(sql_user.user_id) for _ in range(20))
    )
    assert sorted(results) == list(range(1, 21))
    assert (await sql_storage.get_user_by_id(sql_user.user_id)).audit_count == 20


async def test_increment_unknown_user_returns_none(sql_storage):
    assert await sql_storage.increment_user_audit_count("usr_missing") is None


async def test_audit_lifecycle(sql_storage, sql_user):
    audit = await sql_storage.create_audit(sql_user.user_id, "https://example.com", "Acme", {"device": "mobile"})
    assert audit.status == AuditStatus.QUEUED
    assert audit.options == {"device": "mobile"}

    updated = await sql_storage.update_audit(
        audit.audit_id, status=AuditStatus.COMPLETED, results={"score": 91}
    )
    assert updated.status == AuditStatus.COMPLETED
    assert updated.results == {"score": 91}

    stored = await sql_storage.get_audit_by_id(audit.audit_id)
    assert stored.status == AuditStatus.COMPLETED
    assert stored.client_name == "Acme"

    assert await sql_storage.delete_audit(audit.audit_id) is True
    assert await sql_storage.get_audit_by_id(audit.audit_id) is None
    assert await sql_storage.delete_audit(audit.audit_id) is False


async def test_update_missing_audit_returns_none(sql_storage):
    assert await sql_storage.update_audit("aud_missing", status=AuditStatus.FAILED) is None


async def test_update_rejects_immutable_fields(sql_storage, sql_user):
    audit = await sql_storage.create_audit(sql_user.user_id, "https://example.com", "Default", {})
    with pytest.raises(ValueError):
        await sql_storage.update_audit(audit.audit_id, user_id="usr_other")


async def test_user_audits_paginate(sql_storage, sql_user):
    created = []
    for n in range(5):
        created.append(await sql_storage.create_audit(sql_user.user_id, f"https://s{n}.example", "Default", {}))

    first = await sql_storage.get_user_audits(sql_user.user_id, limit=2, offset=0)
    rest = await sql_storage.get_user_audits(sql_user.user_id, limit=10, offset=2)

    assert len(first) == 2
    assert len(rest) == 3
    seen = {a.audit_id for a in first + rest}
    assert seen == {a.audit_id for a in created}


async def test_unfinished_audits_marked_failed_on_recovery(sql_storage, sql_user):
    queued = await sql_storage.create_audit(sql_user.user_id, "https://a.example", "Default", {})
    running = await sql_storage.create_audit(sql_user.user_id, "https://b.example", "Default", {})
    done = await sql_storage.create_audit(sql_user.user_id, "https://c.example", "Default", {})
    await sql_storage.update_audit(running.audit_id, status=AuditStatus.RUNNING)
    await sql_storage.update_audit(done.audit_id, status=AuditStatus.COMPLETED, results={})

    assert await fail_interrupted_audits(sql_storage) == 2

    for audit_id in (queued.audit_id, running.audit_id):
        stored = await sql_storage.get_audit_by_id(audit_id)
        assert stored.status == AuditStatus.FAILED
        assert stored.error == INTERRUPTED_ERROR
    assert (await sql_storage.get_audit_by_id(done.audit_id)).status == AuditStatus.COMPLETED
    assert await sql_storage.list_unfinished_audits() == []


async def test_webhook_failures_deactivate_at_threshold(sql_storage, sql_user):
    webhook = await sql_storage.create_webhook(
        sql_user.user_id, "https://hooks.example/a", ["audit.completed"], "whs_" + "w" * 32
    )

    first = await sql_storage.record_webhook_delivery(webhook.webhook_id, False, failure_threshold=2)
    assert first.failure_count == 1
    assert first.active is True
    assert first.last_triggered is not None

    second = await sql_storage.record_webhook_delivery(webhook.webhook_id, False, failure_threshold=2)
    assert second.failure_count == 2
    assert second.active is False


async def test_webhook_success_keeps_failure_count(sql_storage, sql_user):
    webhook = await sql_storage.create_webhook(
        sql_user.user_id, "https://hooks.example/a", ["audit.completed"], "whs_" + "w" * 32
    )
    await sql_storage.record_webhook_delivery(webhook.webhook_id, False, failure_threshold=10)
    after = await sql_storage.record_webhook_delivery(webhook.webhook_id, True, failure_threshold=10)
    assert after.failure_count == 1
    assert after.active is True


async def test_concurrent_delivery_failures_all_counted(sql_storage, sql_user):
    webhook = await sql_storage.create_webhook(
        sql_user.user_id, "https://hooks.example/a", ["audit.completed"], "whs_" + "w" * 32
    )
    await asyncio.gather(
        *(sql_storage.record_webhook_delivery(webhook.webhook_id, False, 100) for _ in range(10))
    )
    assert (await sql_storage.get_webhook_by_id(webhook.webhook_id)).failure_count == 10


async def test_record_delivery_for_missing_webhook(sql_storage):
    assert await sql_storage.record_webhook_delivery("whk_missing", False, 10) is None


async def test_webhook_update_and_delete(sql_storage, sql_user):
    webhook = await sql_storage.create_webhook(
        sql_user.user_id, "https://hooks.example/a", ["audit.completed", "audit.failed"], "whs_" + "w" * 32
    )
    assert webhook.events == ["audit.completed", "audit.failed"]

    updated = await sql_storage.update_webhook(webhook.webhook_id, active=False)
    assert updated.active is False
    assert [w.webhook_id for w in await sql_storage.get_user_webhooks(sql_user.user_id)] == [webhook.webhook_id]

    assert await sql_storage.delete_webhook(webhook.webhook_id) is True
    assert await sql_storage.get_user_webhooks(sql_user.user_id) == []


async def test_monthly_reset(sql_storage, sql_user):
    await sql_storage.increment_user_audit_count(sql_user.user_id)
    await sql_storage.increment_user_audit_count(sql_user.user_id)

    assert await reset_monthly_usage(sql_storage) == 1

    user = await sql_storage.get_user_by_id(sql_user.user_id)
    assert user.audit_count == 0
    assert user.usage_reset_at is not None


async def test_audit_stats(sql_storage, sql_user):
    for score in (70, 95):
        audit = await sql_storage.create_audit(sql_user.user_id, "https://example.com", "Default", {})
        await sql_storage.update_audit(audit.audit_id, status=AuditStatus.COMPLETED, results={"score": score})
    failed = await sql_storage.create_audit(sql_user.user_id, "https://example.com", "Default", {})
    await sql_storage.update_audit(failed.audit_id, status=AuditStatus.FAILED, error="boom")
    await sql_storage.create_audit(sql_user.user_id, "https://example.com", "Default", {})

    now = datetime.now(timezone.utc)
    stats = await sql_storage.get_user_audit_stats(sql_user.user_id, now - timedelta(hours=1))
    assert stats.total == 4
    assert stats.since_count == 4
    assert stats.completed == 2
    assert stats.failed == 1
    assert stats.in_progress == 1
    assert stats.average_score == 82.5

    later = await sql_storage.get_user_audit_stats(sql_user.user_id, now + timedelta(hours=1))
    assert later.total == 4
    assert later.since_count == 0

    empty = await sql_storage.get_user_audit_stats("usr_missing", now)
    assert empty.total == 0
    assert empty.average_score is None
