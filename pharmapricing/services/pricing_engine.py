# pharmapricing/services/pricing_engine.py

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from .. import models, schemas, crud
from ..schemas import PromotionErrorKind
from .exceptions import CustomerNotFoundError, ProductNotFoundError
from .price_overrides import PriceOverrideResolver
from .promotion_validator import (
    PromotionValidator, calculate_promotion_discount, error_message, promotion_discount_percent
)
from .rule_matcher import PriceRuleSelector, calculate_rule_discount, rule_discount_percent
from .tier_discounts import discount_percent_for

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
HUNDRED = Decimal("100")


@dataclass
class _Line:
    """Running state of one line while the discounts are layered on."""
    product: models.Product
    quantity: int
    base_price: Decimal
    current_price: Decimal
    tier_discount_percent: Decimal = ZERO
    tier_discount_amount: Decimal = ZERO
    rule_discount_percent: Decimal = ZERO
    rule_discount_amount: Decimal = ZERO
    applied_rule: Optional[models.PriceRule] = None
    promotion_discount_percent: Decimal = ZERO
    promotion_discount_amount: Decimal = ZERO
    applied_promotion_code: Optional[str] = None
    promotion_error: Optional[PromotionErrorKind] = None
    promotion_message: Optional[str] = None

    @property
    def subtotal(self) -> Decimal:
        return self.current_price * self.quantity

    def take(self, amount: Decimal) -> Decimal:
        """Subtracts a discount, never going below zero. Returns what was actually taken."""
        taken = min(max(amount, ZERO), self.current_price)
        self.current_price -= taken
        return taken

    def to_breakdown(self) -> schemas.PriceBreakdown:
        final = self.current_price
        total_discount = self.base_price - final
        return schemas.PriceBreakdown(
            product_id=self.product.id,
            product_name=self.product.name,
            quantity=self.quantity,
            base_price=self.base_price,
            tier_discount_percent=self.tier_discount_percent,
            tier_discount_amount=self.tier_discount_amount,
            rule_discount_percent=self.rule_discount_percent,
            rule_discount_amount=self.rule_discount_amount,
            applied_rule_id=self.applied_rule.id if self.applied_rule else None,
            applied_rule_name=self.applied_rule.name if self.applied_rule else None,
            promotion_discount_percent=self.promotion_discount_percent,
            promotion_discount_amount=self.promotion_discount_amount,
            applied_promotion_code=self.applied_promotion_code,
            promotion_error=self.promotion_error,
            promotion_message=self.promotion_message,
            final_unit_price=final,
            line_total=final * self.quantity,
            total_discount=total_discount,
            total_discount_percent=(total_discount / self.base_price) * HUNDRED if self.base_price > 0 else ZERO,
        )


class PricingEngine:
    """
    Computes unit prices: base price (overrides or catalog), then the tier
    discount, then at most one price rule, then an optional promotion code.
    Calculations never write; recording a promotion is PromotionApplier's job.
    """
    def __init__(self, db: Session):
        self.db = db
        self.resolver = PriceOverrideResolver(db)
        self.rule_selector = PriceRuleSelector(db)
        self.validator = PromotionValidator(db)

    def calculate(
        self,
        *,
        product_id: int,
        customer_id: int,
        quantity: int = 1,
        promotion_code: Optional[str] = None,
        price_type: models.PriceType = models.PriceType.COMMERCIAL,
        region_id: Optional[int] = None,
        as_of: Optional[datetime] = None,
    ) -> schemas.PriceBreakdown:
        as_of = as_of or models.utcnow()
        customer = self._get_customer(customer_id)
        line = self._price_line(
            product_id=product_id, customer=customer, quantity=quantity,
            price_type=price_type, region_id=region_id, as_of=as_of,
        )
        if promotion_code:
            validation = self.validator.validate(
                code=promotion_code, customer_id=customer.id, order_total=line.subtotal, as_of=as_of
            )
            self._apply_promotion(line, promotion_code, validation)
        return line.to_breakdown()

    def calculate_batch(
        self,
        *,
        lines: Iterable[schemas.BatchPriceCalculationItem],
        customer_id: int,
        promotion_code: Optional[str] = None,
        as_of: Optional[datetime] = None,
    ) -> list[schemas.PriceBreakdown]:
        """
        Prices several lines for one customer. A promotion code is validated
        once, against the cart total before promotions, and that outcome is
        used for every line.
        """
        as_of = as_of or models.utcnow()
        customer = self._get_customer(customer_id)
        priced = [
            self._price_line(
                product_id=item.product_id, customer=customer, quantity=item.quantity,
                price_type=item.price_type, region_id=item.region_id, as_of=as_of,
            )
            for item in lines
        ]
        if promotion_code:
            cart_total = sum((line.subtotal for line in priced), ZERO)
            validation = self.validator.validate(
                code=promotion_code, customer_id=customer.id, order_total=cart_total, as_of=as_of
            )
            for line in priced:
                self._apply_promotion(line, promotion_code, validation)
        return [line.to_breakdown() for line in priced]

    def _get_customer(self, customer_id: int) -> models.Customer:
        customer = crud.customer.get(self.db, customer_id)
        if customer is None:
            raise CustomerNotFoundError(customer_id)
        return customer

    def _price_line(
        self,
        *,
        product_id: int,
        customer: models.Customer,
        quantity: int,
        price_type: models.PriceType,
        region_id: Optional[int],
        as_of: datetime,
    ) -> _Line:
        product = crud.product.get(self.db, product_id)
        if product is None:
            raise ProductNotFoundError(product_id)

        if region_id is None:
            region_id = crud.customer.get_default_region_id(self.db, customer_id=customer.id)

        base_price = Decimal(self.resolver.resolve_base_price(
            product_id=product.id, customer_id=customer.id,
            price_type=price_type, region_id=region_id, as_of=as_of,
        ))
        line = _Line(product=product, quantity=quantity, base_price=base_price, current_price=base_price)

        # 1. Tier discount
        tier_percent = discount_percent_for(customer.tier)
        line.tier_discount_percent = tier_percent
        line.tier_discount_amount = line.take(line.current_price * (tier_percent / HUNDRED))

        # 2. Best price rule
        rule = self.rule_selector.select_best_rule(product=product, customer=customer, quantity=quantity, as_of=as_of)
        if rule is not None:
            discount = calculate_rule_discount(rule, line.current_price)
            line.rule_discount_percent = rule_discount_percent(rule, discount, line.current_price)
            line.rule_discount_amount = line.take(discount)
            line.applied_rule = rule

        logger.debug(
            "Priced product %s for customer %s: base %s, tier -%s, rule %s -%s",
            product.id, customer.id, base_price, line.tier_discount_amount,
            rule.id if rule else None, line.rule_discount_amount,
        )
        return line

    def _apply_promotion(
        self, line: _Line, code: str, validation: schemas.PromotionValidationResult
    ) -> None:
        # Promotion problems never fail the calculation; they ride along with the price.
        if not validation.is_valid:
            line.promotion_error = validation.error
            line.promotion_message = validation.message
            return

        promotion = validation.promotion
        if not promotion.can_stack_with_tier_pricing and line.tier_discount_amount != 0:
            line.promotion_error = PromotionErrorKind.NOT_STACKABLE_WITH_TIER_PRICING
            line.promotion_message = error_message(PromotionErrorKind.NOT_STACKABLE_WITH_TIER_PRICING)
            return

        discount = calculate_promotion_discount(promotion, line.current_price)
        line.promotion_discount_percent = promotion_discount_percent(promotion, discount, line.current_price)
        line.promotion_discount_amount = line.take(discount)
        line.applied_promotion_code = code
