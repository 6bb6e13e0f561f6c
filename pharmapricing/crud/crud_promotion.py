# pharmapricing/crud/crud_promotion.py

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import func, or_, update
from sqlalchemy.orm import Session

from .base import CRUDBase
from .. import models, schemas


class CRUDPromotion(CRUDBase[models.Promotion, schemas.PromotionCreate]):
    def get_by_code(self, db: Session, *, code: str) -> Optional[models.Promotion]:
        return db.query(self.model).filter(self.model.code == code).first()

    def get_for_update(self, db: Session, *, promotion_id: int) -> Optional[models.Promotion]:
        """
        Fetches a promotion with fresh column values under a write lock.

        Row-locking backends take SELECT ... FOR UPDATE. SQLite ignores
        FOR UPDATE, so the transaction is opened with BEGIN IMMEDIATE there
        and holds the database write lock until commit or rollback. Either
        way a second applier waits here instead of losing the versioned
        increment later.
        """
        self.begin_write(db)
        return (
            db.query(self.model)
            .filter(self.model.id == promotion_id)
            .populate_existing()
            .with_for_update()
            .first()
        )

    @staticmethod
    def begin_write(db: Session) -> None:
        """Opens the current transaction as a writer on SQLite. No-op elsewhere."""
        connection = db.connection()
        if connection.dialect.name != "sqlite":
            return
        # pysqlite only issues BEGIN before DML; a transaction that already wrote holds the lock
        if not connection.connection.dbapi_connection.in_transaction:
            connection.exec_driver_sql("BEGIN IMMEDIATE")

    def get_running(self, db: Session, *, as_of: datetime) -> list[models.Promotion]:
        """Active promotions inside their date window whose global cap is not reached."""
        return (
            db.query(self.model)
            .filter(
                self.model.is_active.is_(True),
                self.model.start_date <= as_of,
                self.model.end_date >= as_of,
                or_(
                    self.model.max_usage_count.is_(None),
                    self.model.current_usage_count < self.model.max_usage_count,
                ),
            )
            .order_by(self.model.id)
            .all()
        )

    def count_customer_usage(self, db: Session, *, promotion_id: int, customer_id: int) -> int:
        """Ledger count for one customer; the ledger is the source of truth, not the counter."""
        return (
            db.query(func.count(models.PromotionUsage.id))
            .filter(
                models.PromotionUsage.promotion_id == promotion_id,
                models.PromotionUsage.customer_id == customer_id,
            )
            .scalar()
        )

    def get_usage_for_order(
        self, db: Session, *, promotion_id: int, order_id: int
    ) -> Optional[models.PromotionUsage]:
        return (
            db.query(models.PromotionUsage)
            .filter(
                models.PromotionUsage.promotion_id == promotion_id,
                models.PromotionUsage.order_id == order_id,
            )
            .first()
        )

    def try_increment_usage(self, db: Session, *, promotion: models.Promotion, seen_version: int) -> bool:
        """
        Compare-and-increment of the usage counter. Does not commit.

        Succeeds only if nobody bumped the version since `seen_version` was
        read and the global cap still has room; returns False otherwise.
        """
        result = db.execute(
            update(self.model)
            .where(
                self.model.id == promotion.id,
                self.model.version == seen_version,
                or_(
                    self.model.max_usage_count.is_(None),
                    self.model.current_usage_count < self.model.max_usage_count,
                ),
            )
            .values(
                current_usage_count=self.model.current_usage_count + 1,
                version=self.model.version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def create_usage(
        self,
        db: Session,
        *,
        promotion_id: int,
        customer_id: int,
        order_id: int,
        discount_applied: Decimal,
        used_at: datetime,
    ) -> models.PromotionUsage:
        """Appends a ledger row. Does not commit."""
        db_usage = models.PromotionUsage(
            promotion_id=promotion_id,
            customer_id=customer_id,
            order_id=order_id,
            discount_applied=discount_applied,
            used_at=used_at,
        )
        db.add(db_usage)
        db.flush()  # Surfaces the (promotion, order) unique constraint inside the transaction
        return db_usage


promotion = CRUDPromotion(models.Promotion)
