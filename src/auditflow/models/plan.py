"""Plan tiers and their monthly limits."""

from types import MappingProxyType

from pydantic import BaseModel, ConfigDict

from auditflow.models.enums import PlanFeature, PlanTier


class PlanLimits(BaseModel):
    model_config = ConfigDict(frozen=True)

    tier: PlanTier
    monthly_audits: int
    max_urls: int
    features: frozenset[PlanFeature]


PLANS = MappingProxyType(
    {
        PlanTier.FREE: PlanLimits(
            tier=PlanTier.FREE,
            monthly_audits=10,
            max_urls=1,
            features=frozenset({PlanFeature.BASIC_AUDIT, PlanFeature.HTML_REPORT}),
        ),
        PlanTier.PRO: PlanLimits(
            tier=PlanTier.PRO,
            monthly_audits=100,
            max_urls=5,
            features=frozenset(
                {
                    PlanFeature.BASIC_AUDIT,
                    PlanFeature.HTML_REPORT,
                    PlanFeature.JSON_REPORT,
                    PlanFeature.API_ACCESS,
                }
            ),
        ),
        PlanTier.ENTERPRISE: PlanLimits(
            tier=PlanTier.ENTERPRISE,
            monthly_audits=1000,
            max_urls=50,
            features=frozenset(PlanFeature),
        ),
    }
)


def resolve_tier(plan: str | None) -> PlanTier:
    """Map a stored plan value to a tier; unrecognized values fall back to free."""
    try:
        return PlanTier(plan)
    except ValueError:
        return PlanTier.FREE


def plan_limits(plan: str | None) -> PlanLimits:
    return PLANS[resolve_tier(plan)]
