# pharmapricing/crud/crud_price_override.py

from datetime import datetime

from sqlalchemy import or_
from sqlalchemy.orm import Session

from .base import CRUDBase
from .. import models, schemas


class CRUDPriceOverride(CRUDBase[models.PriceOverride, schemas.PriceOverrideCreate]):
    def get_candidates(
        self, db: Session, *, product_id: int, price_type: models.PriceType, as_of: datetime
    ) -> list[models.PriceOverride]:
        """
        Active overrides of a product and price type that are valid at `as_of`.
        Customer/region applicability and ranking are left to the resolver.
        """
        return (
            db.query(self.model)
            .filter(
                self.model.product_id == product_id,
                self.model.is_active.is_(True),
                self.model.price_type == price_type,
                self.model.valid_from <= as_of,
                or_(self.model.valid_to.is_(None), self.model.valid_to >= as_of),
            )
            .all()
        )


price_override = CRUDPriceOverride(models.PriceOverride)
