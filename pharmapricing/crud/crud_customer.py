# pharmapricing/crud/crud_customer.py

from typing import Optional

from sqlalchemy.orm import Session

from .base import CRUDBase
from .. import models, schemas


class CustomerHierarchyError(ValueError):
    """A branch was given a parent that is itself a branch."""
    pass


class CRUDCustomer(CRUDBase[models.Customer, schemas.CustomerCreate]):
    """
    Customer Directory lookups.

    Customers form a two-level ownership relation: headquarters accounts and
    their branches. Eligibility checks go through `get_parent` / `is_child_of`
    instead of reading `parent_customer_id` inline.
    """

    def create(self, db: Session, *, obj_in: schemas.CustomerCreate) -> models.Customer:
        if obj_in.parent_customer_id is not None:
            parent = self.get(db, obj_in.parent_customer_id)
            if parent is None:
                raise CustomerHierarchyError(f"Parent customer {obj_in.parent_customer_id} not found.")
            if parent.parent_customer_id is not None:
                raise CustomerHierarchyError(
                    f"Customer {parent.id} is a branch and cannot have branches of its own."
                )
        return super().create(db, obj_in=obj_in)

    def get_parent(self, db: Session, *, customer: models.Customer) -> Optional[models.Customer]:
        if customer.parent_customer_id is None:
            return None
        return self.get(db, customer.parent_customer_id)

    @staticmethod
    def is_child_of(customer: models.Customer, parent_id: int) -> bool:
        return customer.parent_customer_id is not None and customer.parent_customer_id == parent_id

    def get_default_region_id(self, db: Session, *, customer_id: int) -> Optional[int]:
        """
        Region of the customer's preferred active address: default addresses
        first, then shipping addresses, then the most recent one.
        """
        address = (
            db.query(models.CustomerAddress)
            .filter(
                models.CustomerAddress.customer_id == customer_id,
                models.CustomerAddress.is_active.is_(True),
                models.CustomerAddress.region_id.isnot(None),
            )
            .order_by(
                models.CustomerAddress.is_default.desc(),
                (models.CustomerAddress.address_type == models.AddressType.SHIPPING).desc(),
                models.CustomerAddress.id.desc(),
            )
            .first()
        )
        return address.region_id if address else None

    def add_address(self, db: Session, *, obj_in: schemas.CustomerAddressCreate) -> models.CustomerAddress:
        db_address = models.CustomerAddress(**obj_in.model_dump())
        db.add(db_address)
        db.commit()
        db.refresh(db_address)
        return db_address


customer = CRUDCustomer(models.Customer)
