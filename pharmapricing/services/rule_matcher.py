# pharmapricing/services/rule_matcher.py
"""
Price rule matching.

A rule applies to a line when every predicate in RULE_PREDICATES accepts it
for the line's PricingContext. Among the applicable rules exactly one wins:
highest priority, ties broken by the lowest rule id. Rules never stack.
"""
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from .. import models, crud

ZERO = Decimal("0")
HUNDRED = Decimal("100")


@dataclass(frozen=True)
class PricingContext:
    """Facts about one line that rules are matched against."""
    product_id: int
    category_id: int
    manufacturer_id: int
    customer_id: int
    customer_tier: Optional[models.CustomerTier]
    customer_type: Optional[models.CustomerType]
    quantity: int
    as_of: datetime

    @classmethod
    def for_line(
        cls, product: models.Product, customer: models.Customer, quantity: int, as_of: datetime
    ) -> "PricingContext":
        return cls(
            product_id=product.id,
            category_id=product.category_id,
            manufacturer_id=product.manufacturer_id,
            customer_id=customer.id,
            customer_tier=customer.tier,
            customer_type=customer.customer_type,
            quantity=quantity,
            as_of=as_of,
        )


def is_in_window(rule: models.PriceRule, ctx: PricingContext) -> bool:
    return rule.is_valid_at(ctx.as_of)


def matches_quantity(rule: models.PriceRule, ctx: PricingContext) -> bool:
    if rule.minimum_quantity is not None and ctx.quantity < rule.minimum_quantity:
        return False
    if rule.maximum_quantity is not None and ctx.quantity > rule.maximum_quantity:
        return False
    return True


def targets_customer(
    rule: models.PriceRule,
    customer_id: int,
    tier: Optional[models.CustomerTier],
    customer_type: Optional[models.CustomerType],
) -> bool:
    # Unset targeting fields are wildcards
    if rule.customer_id is not None and rule.customer_id != customer_id:
        return False
    if rule.customer_tier is not None and rule.customer_tier != tier:
        return False
    if rule.customer_type is not None and rule.customer_type != customer_type:
        return False
    return True


def matches_targeting(rule: models.PriceRule, ctx: PricingContext) -> bool:
    return targets_customer(rule, ctx.customer_id, ctx.customer_tier, ctx.customer_type)


# Scope -> attribute compared between the rule and the line
_SCOPE_ATTRIBUTE = {
    models.PriceRuleScope.PRODUCT: "product_id",
    models.PriceRuleScope.CATEGORY: "category_id",
    models.PriceRuleScope.MANUFACTURER: "manufacturer_id",
}


def matches_scope(rule: models.PriceRule, ctx: PricingContext) -> bool:
    if rule.scope == models.PriceRuleScope.GLOBAL:
        return True
    attribute = _SCOPE_ATTRIBUTE.get(rule.scope)
    if attribute is None:
        return False
    target = getattr(rule, attribute)
    return target is not None and target == getattr(ctx, attribute)


RULE_PREDICATES = (is_in_window, matches_quantity, matches_targeting, matches_scope)


def rule_applies(rule: models.PriceRule, ctx: PricingContext) -> bool:
    return all(predicate(rule, ctx) for predicate in RULE_PREDICATES)


def select_best_rule(rules: Iterable[models.PriceRule], ctx: PricingContext) -> Optional[models.PriceRule]:
    matches = [rule for rule in rules if rule_applies(rule, ctx)]
    if not matches:
        return None
    return min(matches, key=lambda rule: (-(rule.priority or 0), rule.id))


def calculate_rule_discount(rule: models.PriceRule, current_price: Decimal) -> Decimal:
    """
    Discount a rule takes off the current unit price.

    FIXED_PRICE re-prices the line to `discount_value`: the discount is the
    difference down to that price, and zero when the line is already cheaper.
    """
    value = Decimal(rule.discount_value)
    if rule.discount_type == models.DiscountType.PERCENTAGE:
        return current_price * (value / HUNDRED)
    if rule.discount_type == models.DiscountType.FIXED_AMOUNT:
        return min(value, current_price)
    if rule.discount_type == models.DiscountType.FIXED_PRICE:
        return max(ZERO, current_price - value)
    return ZERO


def rule_discount_percent(rule: models.PriceRule, discount: Decimal, current_price: Decimal) -> Decimal:
    if rule.discount_type == models.DiscountType.PERCENTAGE:
        return Decimal(rule.discount_value)
    return (discount / current_price) * HUNDRED if current_price > 0 else ZERO


class PriceRuleSelector:
    def __init__(self, db: Session):
        self.db = db

    def select_best_rule(
        self,
        *,
        product: models.Product,
        customer: models.Customer,
        quantity: int,
        as_of: Optional[datetime] = None,
    ) -> Optional[models.PriceRule]:
        ctx = PricingContext.for_line(product, customer, quantity, as_of or models.utcnow())
        return select_best_rule(crud.price_rule.get_active(self.db, as_of=ctx.as_of), ctx)

    def applicable_rules_for(
        self, *, customer: models.Customer, as_of: Optional[datetime] = None
    ) -> list[models.PriceRule]:
        """Currently valid rules targeting this customer (any scope), best first."""
        as_of = as_of or models.utcnow()
        rules = [
            rule for rule in crud.price_rule.get_active(self.db, as_of=as_of)
            if rule.is_valid_at(as_of)
            and targets_customer(rule, customer.id, customer.tier, customer.customer_type)
        ]
        return sorted(rules, key=lambda rule: (-(rule.priority or 0), rule.id))
