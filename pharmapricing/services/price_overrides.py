# pharmapricing/services/price_overrides.py

from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from .. import models, crud
from .exceptions import ProductNotFoundError


def override_applies(
    override: models.PriceOverride,
    *,
    customer_id: int,
    region_id: Optional[int],
    as_of: datetime,
) -> bool:
    if not override.is_valid_at(as_of):
        return False
    if override.customer_id is not None and override.customer_id != customer_id:
        return False
    # A regional price only applies when the caller knows the region
    if override.region_id is not None and override.region_id != region_id:
        return False
    return True


def _rank(override: models.PriceOverride) -> tuple:
    # Specificity beats priority, priority beats recency
    return (
        override.customer_id is not None,
        override.region_id is not None,
        override.priority or 0,
        override.valid_from,
        override.id or 0,
    )


def pick_override(
    overrides: Iterable[models.PriceOverride],
    *,
    customer_id: int,
    price_type: models.PriceType,
    region_id: Optional[int],
    as_of: datetime,
) -> Optional[models.PriceOverride]:
    """Returns the highest-ranked applicable override, or None."""
    candidates = [
        o for o in overrides
        if o.price_type == price_type
        and override_applies(o, customer_id=customer_id, region_id=region_id, as_of=as_of)
    ]
    if not candidates:
        return None
    return max(candidates, key=_rank)


class PriceOverrideResolver:
    def __init__(self, db: Session):
        self.db = db

    def resolve_base_price(
        self,
        *,
        product_id: int,
        customer_id: int,
        price_type: models.PriceType = models.PriceType.COMMERCIAL,
        region_id: Optional[int] = None,
        as_of: Optional[datetime] = None,
    ) -> Decimal:
        """
        Effective base unit price of a product for a customer.

        Customer-specific overrides outrank regional ones, which outrank
        global ones; within the same specificity the higher priority wins,
        then the most recent `valid_from`, then the highest id. Without a
        matching override the catalog price is used.
        """
        as_of = as_of or models.utcnow()
        product = crud.product.get(self.db, product_id)
        if product is None:
            raise ProductNotFoundError(product_id)

        candidates = crud.price_override.get_candidates(
            self.db, product_id=product_id, price_type=price_type, as_of=as_of
        )
        best = pick_override(
            candidates, customer_id=customer_id, price_type=price_type, region_id=region_id, as_of=as_of
        )
        return best.unit_price if best is not None else product.unit_price
