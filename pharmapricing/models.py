# pharmapricing/models.py

import enum
from datetime import datetime, timezone

from sqlalchemy import (
    Column, Integer, String, Boolean, DECIMAL, DateTime,
    ForeignKey, Enum, UniqueConstraint, Index
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base

# --- ENUMS ---

class UserRole(str, enum.Enum):
    CUSTOMER = "customer"
    ADMIN = "admin"
    MANAGER = "manager"
    ORDER_WORKFLOW = "order_workflow"  # Service account of the order-confirmation step

class CustomerTier(str, enum.Enum):
    PREMIUM = "premium"
    STANDARD = "standard"
    BASIC = "basic"

class CustomerType(str, enum.Enum):
    RETAIL = "retail"
    PHARMACY = "pharmacy"
    HOSPITAL = "hospital"
    WHOLESALE = "wholesale"
    CLINIC = "clinic"
    OTHER = "other"

class AddressType(str, enum.Enum):
    BILLING = "billing"
    SHIPPING = "shipping"

class PriceType(str, enum.Enum):
    COMMERCIAL = "commercial"
    ESSENTIAL = "essential"  # Essential-medicines list

class PriceRuleScope(str, enum.Enum):
    GLOBAL = "global"
    PRODUCT = "product"
    CATEGORY = "category"
    MANUFACTURER = "manufacturer"

class DiscountType(str, enum.Enum):
    PERCENTAGE = "percentage"
    FIXED_AMOUNT = "fixed_amount"
    FIXED_PRICE = "fixed_price"

class PromotionType(str, enum.Enum):
    PERCENTAGE_DISCOUNT = "percentage_discount"
    FIXED_AMOUNT_DISCOUNT = "fixed_amount_discount"
    FREE_SHIPPING = "free_shipping"


def utcnow() -> datetime:
    """Current UTC time, naive. Timestamps are stored as naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _within(start: datetime | None, end: datetime | None, as_of: datetime) -> bool:
    return (start is None or start <= as_of) and (end is None or end >= as_of)

# --- CATALOG (read only for the engine) ---

class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    sku = Column(String(64), unique=True, index=True)
    unit_price = Column(DECIMAL(12, 2), nullable=False)  # Catalog base price
    category_id = Column(Integer, nullable=False, index=True)
    manufacturer_id = Column(Integer, nullable=False, index=True)
    is_active = Column(Boolean, nullable=False, default=True)

    overrides = relationship("PriceOverride", back_populates="product")

# --- CUSTOMER DIRECTORY (read only for the engine) ---

class Customer(Base):
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, index=True)
    customer_code = Column(String(50), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=False)
    tier = Column(Enum(CustomerTier), nullable=False, default=CustomerTier.BASIC)
    customer_type = Column(Enum(CustomerType), nullable=False, default=CustomerType.RETAIL)

    # Branches point at their headquarters. Only two levels: a branch is never a parent.
    parent_customer_id = Column(Integer, ForeignKey("customers.id"), nullable=True, index=True)
    is_active = Column(Boolean, nullable=False, default=True)

    parent = relationship("Customer", remote_side=[id], back_populates="children")
    children = relationship("Customer", back_populates="parent")
    addresses = relationship("CustomerAddress", back_populates="customer")

class CustomerAddress(Base):
    __tablename__ = "customer_addresses"

    id = Column(Integer, primary_key=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    address_type = Column(Enum(AddressType), nullable=False, default=AddressType.SHIPPING)
    region_id = Column(Integer, nullable=True)
    is_default = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)

    customer = relationship("Customer", back_populates="addresses")

# --- PRICING ---

class PriceOverride(Base):
    """Administrator-set unit price for a product, optionally per customer and/or region."""
    __tablename__ = "product_prices"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=True)  # NULL = all customers
    region_id = Column(Integer, nullable=True)  # NULL = all regions
    price_type = Column(Enum(PriceType), nullable=False, default=PriceType.COMMERCIAL)
    unit_price = Column(DECIMAL(12, 2), nullable=False)
    valid_from = Column(DateTime, nullable=False, server_default=func.now())
    valid_to = Column(DateTime, nullable=True)
    priority = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)

    product = relationship("Product", back_populates="overrides")

    def is_valid_at(self, as_of: datetime) -> bool:
        return bool(self.is_active) and _within(self.valid_from, self.valid_to, as_of)

class PriceRule(Base):
    """Conditional discount. At most one rule is applied to a line."""
    __tablename__ = "price_rules"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    description = Column(String)

    scope = Column(Enum(PriceRuleScope), nullable=False, default=PriceRuleScope.PRODUCT)
    product_id = Column(Integer, nullable=True)
    category_id = Column(Integer, nullable=True)
    manufacturer_id = Column(Integer, nullable=True)

    # Targeting; NULL matches any customer
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=True)
    customer_tier = Column(Enum(CustomerTier), nullable=True)
    customer_type = Column(Enum(CustomerType), nullable=True)

    discount_type = Column(Enum(DiscountType), nullable=False, default=DiscountType.PERCENTAGE)
    discount_value = Column(DECIMAL(12, 2), nullable=False)
    minimum_quantity = Column(Integer, nullable=True)
    maximum_quantity = Column(Integer, nullable=True)

    start_date = Column(DateTime, nullable=True)
    end_date = Column(DateTime, nullable=True)

    priority = Column(Integer, nullable=False, default=0)  # Higher wins
    is_active = Column(Boolean, nullable=False, default=True)

    def is_valid_at(self, as_of: datetime) -> bool:
        return bool(self.is_active) and _within(self.start_date, self.end_date, as_of)

class Promotion(Base):
    __tablename__ = "promotions"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(50), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=False)
    description = Column(String)

    promotion_type = Column(Enum(PromotionType), nullable=False, default=PromotionType.PERCENTAGE_DISCOUNT)
    value = Column(DECIMAL(12, 2), nullable=False)
    minimum_order_amount = Column(DECIMAL(12, 2), nullable=True)
    maximum_discount_amount = Column(DECIMAL(12, 2), nullable=True)

    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=False)

    max_usage_count = Column(Integer, nullable=True)
    max_usage_per_customer = Column(Integer, nullable=True)
    # Shared counter; only the promotion applier writes it, always together with a usage row.
    current_usage_count = Column(Integer, nullable=False, default=0)
    # Optimistic concurrency token, bumped on every counter increment.
    version = Column(Integer, nullable=False, default=0)

    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=True)  # Exclusive to one account
    apply_to_child_customers = Column(Boolean, nullable=False, default=True)
    required_customer_tier = Column(Enum(CustomerTier), nullable=True)
    required_customer_type = Column(Enum(CustomerType), nullable=True)

    is_active = Column(Boolean, nullable=False, default=True)
    can_stack_with_other_promotions = Column(Boolean, nullable=False, default=False)
    can_stack_with_tier_pricing = Column(Boolean, nullable=False, default=True)

    usages = relationship("PromotionUsage", back_populates="promotion")

    @property
    def has_reached_limit(self) -> bool:
        return self.max_usage_count is not None and (self.current_usage_count or 0) >= self.max_usage_count

    def is_valid_at(self, as_of: datetime) -> bool:
        return bool(self.is_active) and _within(self.start_date, self.end_date, as_of) and not self.has_reached_limit

class PromotionUsage(Base):
    """Append-only ledger of applied promotions."""
    __tablename__ = "promotion_usages"
    __table_args__ = (
        UniqueConstraint("promotion_id", "order_id", name="uq_promotion_usage_order"),
        Index("ix_promotion_usage_customer", "promotion_id", "customer_id"),
    )

    id = Column(Integer, primary_key=True)
    promotion_id = Column(Integer, ForeignKey("promotions.id"), nullable=False)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False)
    order_id = Column(Integer, nullable=False)
    discount_applied = Column(DECIMAL(12, 2), nullable=False)
    used_at = Column(DateTime, nullable=False, default=utcnow)

    promotion = relationship("Promotion", back_populates="usages")
