"""Tests for prefixed IDs and secret generation."""

import string

import pytest

from auditflow.services.id_generator import (
    API_KEY_PREFIX,
    WEBHOOK_SECRET_PREFIX,
    generate_api_key,
    generate_id,
    generate_secret,
    generate_webhook_secret,
)


def test_generate_id_prefix():
    audit_id = generate_id("aud_")
    assert audit_id.startswith("aud_")
    assert len(audit_id) == len("aud_") + 16


def test_api_key_format():
    key = generate_api_key()
    assert key.startswith(API_KEY_PREFIX)
    body = key[len(API_KEY_PREFIX):]
    assert len(body) == 32
    assert set(body) <= set(string.ascii_letters + string.digits)


def test_webhook_secret_format():
    secret = generate_webhook_secret()
    assert secret.startswith(WEBHOOK_SECRET_PREFIX)
    assert len(secret) == len(WEBHOOK_SECRET_PREFIX) + 32


def test_custom_length():
    assert len(generate_secret("x_", 48)) == 50


def test_secrets_do_not_repeat():
    keys = {generate_api_key() for _ in range(200)}
    assert len(keys) == 200


def test_short_secret_rejected():
    with pytest.raises(ValueError):
        generate_secret("whs_", 8)


def test_uses_cryptographic_source(monkeypatch):
    import auditflow.services.id_generator as mod

    calls = []
    real_choice = mod.secrets.choice

    def spy(seq):
        calls.append(1)
        return real_choice(seq)

    monkeypatch.setattr(mod.secrets, "choice", spy)
    generate_webhook_secret(20)
    assert len(calls) == 20
