"""Plan-quota admission checks.

The gate only reads ``audit_count``, and that counter moves only when an audit
completes. Audits still queued or running are not counted, so a user can have
any number of them admitted at once, well past the monthly limit. The limit
starts rejecting only after enough of them have completed.
"""

import logging
from dataclasses import dataclass

from auditflow.errors.exceptions import AdmissionError
from auditflow.models.plan import plan_limits
from auditflow.models.user import User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AdmissionDecision:
    allow: bool
    limit: int
    used: int

    def as_dict(self) -> dict:
        return {"allow": self.allow, "limit": self.limit, "used": self.used}


def admit(user: User) -> AdmissionDecision:
    """Decide whether ``user`` may start another audit this billing month."""
    limit = plan_limits(user.plan).monthly_audits
    used = user.audit_count
    return AdmissionDecision(allow=used < limit, limit=limit, used=used)


def ensure_admitted(user: User) -> AdmissionDecision:
    """Like ``admit`` but raise ``AdmissionError`` on rejection."""
    decision = admit(user)
    if not decision.allow:
        logger.info(
            "Audit rejected for user %s: %d/%d used (plan=%s)",
            user.user_id, decision.used, decision.limit, user.plan,
        )
        raise AdmissionError(limit=decision.limit, used=decision.used)
    return decision
