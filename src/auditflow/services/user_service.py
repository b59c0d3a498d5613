"""Account registration and the monthly usage tick."""

import logging

from auditflow.errors.exceptions import ValidationError
from auditflow.models.user import User
from auditflow.services.id_generator import generate_api_key
from auditflow.storage.gateway import StorageGateway

logger = logging.getLogger(__name__)


async def register_user(
    storage: StorageGateway,
    email: str,
    plan: str,
    company: str | None = None,
) -> User:
    if await storage.get_user_by_email(email) is not None:
        raise ValidationError("Email already registered", details={"email": email})
    user = await storage.create_user(email, plan, generate_api_key(), company=company)
    logger.info("Registered user %s on plan %s", user.user_id, user.plan)
    return user


async def reset_monthly_usage(storage: StorageGateway) -> int:
    """Zero every user's audit counter at the billing-month boundary."""
    count = await storage.reset_audit_counts()
    logger.info("Reset monthly audit counters for %d users", count)
    return count
