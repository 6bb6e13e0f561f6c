# pharmapricing/services/promotion_validator.py

from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from sqlalchemy.orm import Session

from .. import models, schemas, crud
from ..schemas import PromotionErrorKind
from .exceptions import CustomerNotFoundError

ZERO = Decimal("0")
HUNDRED = Decimal("100")
CENT = Decimal("0.01")

ERROR_MESSAGES = {
    PromotionErrorKind.CODE_NOT_FOUND: "Promotion code not found",
    PromotionErrorKind.INACTIVE: "This promotion is no longer active",
    PromotionErrorKind.NOT_YET_STARTED: "This promotion has not started yet",
    PromotionErrorKind.EXPIRED: "This promotion has expired",
    PromotionErrorKind.USAGE_CAP_REACHED: "This promotion has reached its usage limit",
    PromotionErrorKind.PER_CUSTOMER_CAP_REACHED: "You have already used this promotion the maximum number of times",
    PromotionErrorKind.MINIMUM_ORDER_NOT_MET: "Minimum order amount of {minimum:.2f} required",
    PromotionErrorKind.CUSTOMER_NOT_ELIGIBLE: "This promotion is not available for your account",
    PromotionErrorKind.NOT_STACKABLE_WITH_TIER_PRICING: "This promotion cannot be combined with your tier discount",
    PromotionErrorKind.PROMOTION_EXHAUSTED: "This promotion could not be applied because its remaining uses were taken",
}


def error_message(kind: PromotionErrorKind, promotion: Optional[models.Promotion] = None) -> str:
    minimum = promotion.minimum_order_amount if promotion is not None else None
    return ERROR_MESSAGES[kind].format(minimum=minimum or ZERO)


def to_money(amount: Decimal) -> Decimal:
    return Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)


def calculate_promotion_discount(promotion: models.Promotion, amount: Decimal) -> Decimal:
    """
    Discount a promotion takes off `amount` (an order total or a unit price),
    capped by the promotion's maximum discount. Free shipping is priced by
    the shipping rules, so it takes nothing off here.
    """
    value = Decimal(promotion.value)
    if promotion.promotion_type == models.PromotionType.PERCENTAGE_DISCOUNT:
        discount = amount * (value / HUNDRED)
    elif promotion.promotion_type == models.PromotionType.FIXED_AMOUNT_DISCOUNT:
        discount = min(value, amount)
    else:
        discount = ZERO

    if promotion.maximum_discount_amount is not None:
        discount = min(discount, Decimal(promotion.maximum_discount_amount))
    return discount


def promotion_discount_percent(promotion: models.Promotion, discount: Decimal, current_price: Decimal) -> Decimal:
    if promotion.promotion_type == models.PromotionType.PERCENTAGE_DISCOUNT:
        return Decimal(promotion.value)
    return (discount / current_price) * HUNDRED if current_price > 0 else ZERO


class PromotionValidator:
    """
    Read-only promotion checks. Every call evaluates the stored fields against
    `as_of` and the current ledger; nothing is cached between calls.
    """
    def __init__(self, db: Session):
        self.db = db

    def validate(
        self,
        *,
        code: str,
        customer_id: int,
        order_total: Decimal,
        as_of: Optional[datetime] = None,
    ) -> schemas.PromotionValidationResult:
        as_of = as_of or models.utcnow()
        customer = crud.customer.get(self.db, customer_id)
        if customer is None:
            raise CustomerNotFoundError(customer_id)

        promotion = crud.promotion.get_by_code(self.db, code=code)
        if promotion is None:
            return self._failure(PromotionErrorKind.CODE_NOT_FOUND)

        error = self.check(promotion=promotion, customer=customer, order_total=order_total, as_of=as_of)
        if error is not None:
            return self._failure(error, promotion)

        return schemas.PromotionValidationResult(
            is_valid=True,
            promotion=schemas.Promotion.model_validate(promotion),
            estimated_discount=to_money(calculate_promotion_discount(promotion, Decimal(order_total))),
        )

    def check(
        self,
        *,
        promotion: models.Promotion,
        customer: models.Customer,
        order_total: Decimal,
        as_of: datetime,
    ) -> Optional[PromotionErrorKind]:
        """Runs the checks in order and returns the first failure, or None."""
        if not promotion.is_active:
            return PromotionErrorKind.INACTIVE
        if promotion.start_date > as_of:
            return PromotionErrorKind.NOT_YET_STARTED
        if promotion.end_date < as_of:
            return PromotionErrorKind.EXPIRED
        if promotion.has_reached_limit:
            return PromotionErrorKind.USAGE_CAP_REACHED
        if self._customer_cap_reached(promotion, customer):
            return PromotionErrorKind.PER_CUSTOMER_CAP_REACHED
        if promotion.minimum_order_amount is not None and order_total < promotion.minimum_order_amount:
            return PromotionErrorKind.MINIMUM_ORDER_NOT_MET
        if not self.is_eligible(promotion, customer):
            return PromotionErrorKind.CUSTOMER_NOT_ELIGIBLE
        return None

    @staticmethod
    def is_eligible(promotion: models.Promotion, customer: models.Customer) -> bool:
        if promotion.customer_id is not None:
            is_direct_match = promotion.customer_id == customer.id
            is_branch_match = bool(promotion.apply_to_child_customers) and crud.customer.is_child_of(
                customer, promotion.customer_id
            )
            if not (is_direct_match or is_branch_match):
                return False
        if promotion.required_customer_tier is not None and customer.tier != promotion.required_customer_tier:
            return False
        if promotion.required_customer_type is not None and customer.customer_type != promotion.required_customer_type:
            return False
        return True

    def available_promotions(
        self, *, customer_id: int, as_of: Optional[datetime] = None
    ) -> list[models.Promotion]:
        """Promotions the customer could use right now, ignoring order minimums."""
        as_of = as_of or models.utcnow()
        customer = crud.customer.get(self.db, customer_id)
        if customer is None:
            raise CustomerNotFoundError(customer_id)

        return [
            promotion for promotion in crud.promotion.get_running(self.db, as_of=as_of)
            if self.is_eligible(promotion, customer) and not self._customer_cap_reached(promotion, customer)
        ]

    def _customer_cap_reached(self, promotion: models.Promotion, customer: models.Customer) -> bool:
        if promotion.max_usage_per_customer is None:
            return False
        used = crud.promotion.count_customer_usage(
            self.db, promotion_id=promotion.id, customer_id=customer.id
        )
        return used >= promotion.max_usage_per_customer

    @staticmethod
    def _failure(
        kind: PromotionErrorKind, promotion: Optional[models.Promotion] = None
    ) -> schemas.PromotionValidationResult:
        return schemas.PromotionValidationResult(
            is_valid=False, error=kind, message=error_message(kind, promotion)
        )
