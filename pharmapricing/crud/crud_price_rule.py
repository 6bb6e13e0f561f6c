# pharmapricing/crud/crud_price_rule.py

from datetime import datetime

from sqlalchemy import or_
from sqlalchemy.orm import Session

from .base import CRUDBase
from .. import models, schemas


class CRUDPriceRule(CRUDBase[models.PriceRule, schemas.PriceRuleCreate]):
    def get_active(self, db: Session, *, as_of: datetime) -> list[models.PriceRule]:
        """Active rules whose validity window contains `as_of`, ordered by id."""
        return (
            db.query(self.model)
            .filter(
                self.model.is_active.is_(True),
                or_(self.model.start_date.is_(None), self.model.start_date <= as_of),
                or_(self.model.end_date.is_(None), self.model.end_date >= as_of),
            )
            .order_by(self.model.id)
            .all()
        )


price_rule = CRUDPriceRule(models.PriceRule)
