# pharmapricing/services/tier_discounts.py

from decimal import Decimal
from types import MappingProxyType

from .. import schemas
from ..models import CustomerTier

# Read-only view; nothing can change a tier's discount at runtime.
TIER_DISCOUNTS = MappingProxyType({
    CustomerTier.PREMIUM: Decimal("15"),
    CustomerTier.STANDARD: Decimal("10"),
    CustomerTier.BASIC: Decimal("5"),
})

_TIER_INFO = (
    (CustomerTier.PREMIUM, "Premium", "Monthly purchases above 10,000"),
    (CustomerTier.STANDARD, "Standard", "Monthly purchases between 5,000 and 10,000"),
    (CustomerTier.BASIC, "Basic", "Monthly purchases below 5,000"),
)


def discount_percent_for(tier) -> Decimal:
    """Baseline discount percentage for a customer tier; unknown tiers get 0."""
    return TIER_DISCOUNTS.get(tier, Decimal("0"))


def tier_pricing_info() -> list[schemas.TierPricingInfo]:
    return [
        schemas.TierPricingInfo(
            tier=tier,
            tier_name=name,
            discount_percentage=discount_percent_for(tier),
            description=description,
        )
        for tier, name, description in _TIER_INFO
    ]
