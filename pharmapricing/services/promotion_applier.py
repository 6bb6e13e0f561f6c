# pharmapricing/services/promotion_applier.py

import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import models, schemas, crud
from ..core.config import settings
from ..schemas import PromotionErrorKind
from .exceptions import CustomerNotFoundError
from .promotion_validator import (
    PromotionValidator, calculate_promotion_discount, error_message, to_money
)

logger = logging.getLogger(__name__)


class PromotionApplier:
    """
    Records a promotion against a confirmed order.

    Each attempt runs in its own transaction: take the write lock on the
    promotion, check it again against the current clock and ledger, then
    increment the counter with a version compare and insert the ledger row.
    Concurrent appliers queue on the lock, so each one re-validates against
    the counter its predecessor committed and the compare does not lose.
    The compare stays as the guard for backends that lock nothing: a lost
    compare is rolled back and retried from the re-validation, up to
    `max_retries` times.
    Once committed, an application is final.
    """
    def __init__(self, db: Session, max_retries: Optional[int] = None):
        self.db = db
        self.validator = PromotionValidator(db)
        self.max_retries = settings.PROMOTION_APPLY_MAX_RETRIES if max_retries is None else max_retries

    def apply(
        self,
        *,
        promotion_id: int,
        customer_id: int,
        order_id: int,
        order_total: Decimal,
        as_of: Optional[datetime] = None,
    ) -> schemas.PromotionApplicationResult:
        order_total = Decimal(order_total)
        customer = crud.customer.get(self.db, customer_id)
        if customer is None:
            raise CustomerNotFoundError(customer_id)

        attempts = self.max_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                result = self._attempt(
                    promotion_id=promotion_id,
                    customer=customer,
                    order_id=order_id,
                    order_total=order_total,
                    as_of=as_of or models.utcnow(),
                )
            except IntegrityError:
                # Another call recorded the same order first; the next attempt sees its row.
                self.db.rollback()
                logger.warning(
                    "Concurrent usage insert for promotion %s and order %s (attempt %d/%d)",
                    promotion_id, order_id, attempt, attempts,
                )
                continue
            except Exception:
                self.db.rollback()
                raise

            if result is not None:
                return result

            self.db.rollback()
            logger.warning(
                "Usage counter of promotion %s changed while applying to order %s, retrying (attempt %d/%d)",
                promotion_id, order_id, attempt, attempts,
            )

        logger.warning(
            "Giving up applying promotion %s to order %s after %d attempts",
            promotion_id, order_id, attempts,
        )
        return self._refused(
            PromotionErrorKind.PROMOTION_EXHAUSTED,
            promotion_id=promotion_id, customer_id=customer_id, order_id=order_id,
        )

    def _attempt(
        self,
        *,
        promotion_id: int,
        customer: models.Customer,
        order_id: int,
        order_total: Decimal,
        as_of: datetime,
    ) -> Optional[schemas.PromotionApplicationResult]:
        """One re-validate-and-apply pass. Returns None when it lost the version compare."""
        ids = dict(promotion_id=promotion_id, customer_id=customer.id, order_id=order_id)

        promotion = crud.promotion.get_for_update(self.db, promotion_id=promotion_id)
        if promotion is None:
            self.db.rollback()
            return self._refused(PromotionErrorKind.CODE_NOT_FOUND, **ids)

        existing = crud.promotion.get_usage_for_order(self.db, promotion_id=promotion_id, order_id=order_id)
        if existing is not None:
            self.db.rollback()
            logger.info("Promotion %s already applied to order %s, returning recorded usage", promotion.code, order_id)
            return schemas.PromotionApplicationResult(
                promotion_id=promotion_id,
                customer_id=existing.customer_id,
                order_id=order_id,
                applied=True,
                discount_amount=existing.discount_applied,
                usage_id=existing.id,
                duplicate=True,
            )

        error = self.validator.check(promotion=promotion, customer=customer, order_total=order_total, as_of=as_of)
        if error is not None:
            self.db.rollback()
            logger.warning(
                "Promotion %s refused for order %s (customer %s): %s",
                promotion.code, order_id, customer.id, error.value,
            )
            return self._refused(error, promotion, **ids)

        discount = to_money(calculate_promotion_discount(promotion, order_total))

        if not crud.promotion.try_increment_usage(self.db, promotion=promotion, seen_version=promotion.version):
            return None

        usage = crud.promotion.create_usage(
            self.db,
            promotion_id=promotion_id,
            customer_id=customer.id,
            order_id=order_id,
            discount_applied=discount,
            used_at=as_of,
        )
        self.db.commit()

        logger.info(
            "Applied promotion %s to order %s for customer %s. Discount: %s",
            promotion.code, order_id, customer.id, discount,
        )
        return schemas.PromotionApplicationResult(
            **ids, applied=True, discount_amount=discount, usage_id=usage.id
        )

    @staticmethod
    def _refused(
        kind: PromotionErrorKind,
        promotion: Optional[models.Promotion] = None,
        *,
        promotion_id: int,
        customer_id: int,
        order_id: int,
    ) -> schemas.PromotionApplicationResult:
        return schemas.PromotionApplicationResult(
            promotion_id=promotion_id,
            customer_id=customer_id,
            order_id=order_id,
            applied=False,
            error=kind,
            message=error_message(kind, promotion),
        )
