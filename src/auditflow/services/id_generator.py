"""Prefixed ID and secret generation."""

import secrets
import string
import uuid

from auditflow.config import settings

_ALPHABET = string.ascii_letters + string.digits

API_KEY_PREFIX = "ak_"
WEBHOOK_SECRET_PREFIX = "whs_"
MIN_SECRET_LENGTH = 16


def generate_id(prefix: str) -> str:
    """Generate a prefixed unique ID.

    Args:
        prefix: The prefix (e.g., "usr_", "aud_", "whk_").

    Returns:
        A string like "aud_a1b2c3d4e5f6a7b8".
    """
    short_uuid = uuid.uuid4().hex[:16]
    return f"{prefix}{short_uuid}"


def generate_secret(prefix: str, length: int | None = None) -> str:
    """Generate an opaque token with ``length`` random alphanumeric characters.

    Uses the ``secrets`` CSPRNG; ``length`` defaults to ``webhook_secret_length``
    and is never allowed below ``MIN_SECRET_LENGTH``.
    """
    length = settings.webhook_secret_length if length is None else length
    if length < MIN_SECRET_LENGTH:
        raise ValueError(f"secret length must be at least {MIN_SECRET_LENGTH}, got {length}")
    body = "".join(secrets.choice(_ALPHABET) for _ in range(length))
    return f"{prefix}{body}"


def generate_api_key(length: int | None = None) -> str:
    return generate_secret(API_KEY_PREFIX, length)


def generate_webhook_secret(length: int | None = None) -> str:
    return generate_secret(WEBHOOK_SECRET_PREFIX, length)
