import enum
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .models import (
    UserRole, CustomerTier, CustomerType, AddressType, PriceType,
    PriceRuleScope, DiscountType, PromotionType
)

# --- Catalog / Customer Directory ---
# The engine only reads these; the create schemas are used to seed data.

class ProductCreate(BaseModel):
    name: str
    sku: str | None = None
    unit_price: Decimal = Field(..., ge=0)
    category_id: int
    manufacturer_id: int

class Product(ProductCreate):
    id: int
    is_active: bool

    model_config = ConfigDict(from_attributes=True)

class CustomerCreate(BaseModel):
    customer_code: str
    name: str
    tier: CustomerTier = CustomerTier.BASIC
    customer_type: CustomerType = CustomerType.RETAIL
    parent_customer_id: int | None = None

class CustomerAddressCreate(BaseModel):
    customer_id: int
    address_type: AddressType = AddressType.SHIPPING
    region_id: int | None = None
    is_default: bool = False
    is_active: bool = True

# --- Price overrides ---

class PriceOverrideCreate(BaseModel):
    product_id: int
    customer_id: int | None = None
    region_id: int | None = None
    price_type: PriceType = PriceType.COMMERCIAL
    unit_price: Decimal = Field(..., ge=0)
    valid_from: datetime
    valid_to: datetime | None = None
    priority: int = 0
    is_active: bool = True

# --- Price rules ---

class PriceRuleBase(BaseModel):
    name: str
    description: str | None = None
    scope: PriceRuleScope = PriceRuleScope.PRODUCT
    product_id: int | None = None
    category_id: int | None = None
    manufacturer_id: int | None = None
    customer_id: int | None = None
    customer_tier: CustomerTier | None = None
    customer_type: CustomerType | None = None
    discount_type: DiscountType = DiscountType.PERCENTAGE
    discount_value: Decimal = Field(..., ge=0)
    minimum_quantity: int | None = Field(default=None, ge=0)
    maximum_quantity: int | None = Field(default=None, ge=0)
    start_date: datetime | None = None
    end_date: datetime | None = None
    priority: int = 0
    is_active: bool = True

class PriceRuleCreate(PriceRuleBase):
    @model_validator(mode="after")
    def check_scope_and_bounds(self):
        scope_field = {
            PriceRuleScope.PRODUCT: "product_id",
            PriceRuleScope.CATEGORY: "category_id",
            PriceRuleScope.MANUFACTURER: "manufacturer_id",
        }.get(self.scope)
        if scope_field and getattr(self, scope_field) is None:
            raise ValueError(f"{scope_field} is required for scope '{self.scope.value}'")
        if self.discount_type == DiscountType.PERCENTAGE and self.discount_value > 100:
            raise ValueError("Percentage discount cannot exceed 100")
        if (
            self.minimum_quantity is not None
            and self.maximum_quantity is not None
            and self.minimum_quantity > self.maximum_quantity
        ):
            raise ValueError("minimum_quantity cannot be greater than maximum_quantity")
        return self

class PriceRule(PriceRuleBase):
    id: int

    model_config = ConfigDict(from_attributes=True)

# --- Promotions ---

class PromotionBase(BaseModel):
    code: str
    name: str
    description: str | None = None
    promotion_type: PromotionType = PromotionType.PERCENTAGE_DISCOUNT
    value: Decimal = Field(..., ge=0)
    minimum_order_amount: Decimal | None = Field(default=None, ge=0)
    maximum_discount_amount: Decimal | None = Field(default=None, ge=0)
    start_date: datetime
    end_date: datetime
    max_usage_count: int | None = Field(default=None, ge=0)
    max_usage_per_customer: int | None = Field(default=None, ge=0)
    customer_id: int | None = None
    apply_to_child_customers: bool = True
    required_customer_tier: CustomerTier | None = None
    required_customer_type: CustomerType | None = None
    is_active: bool = True
    can_stack_with_other_promotions: bool = False
    can_stack_with_tier_pricing: bool = True

class PromotionCreate(PromotionBase):
    @model_validator(mode="after")
    def check_window(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date cannot be before start_date")
        return self

class Promotion(PromotionBase):
    id: int
    current_usage_count: int
    has_reached_limit: bool

    model_config = ConfigDict(from_attributes=True)

class PromotionErrorKind(str, enum.Enum):
    CODE_NOT_FOUND = "code_not_found"
    INACTIVE = "inactive"
    NOT_YET_STARTED = "not_yet_started"
    EXPIRED = "expired"
    USAGE_CAP_REACHED = "usage_cap_reached"
    PER_CUSTOMER_CAP_REACHED = "per_customer_cap_reached"
    MINIMUM_ORDER_NOT_MET = "minimum_order_not_met"
    CUSTOMER_NOT_ELIGIBLE = "customer_not_eligible"
    # Reported by the calculation when the promotion is valid but cannot combine with a tier discount
    NOT_STACKABLE_WITH_TIER_PRICING = "not_stackable_with_tier_pricing"
    # Reported by the applier when conflicting writers kept winning until the retries ran out
    PROMOTION_EXHAUSTED = "promotion_exhausted"

CAPACITY_ERRORS = frozenset({PromotionErrorKind.USAGE_CAP_REACHED, PromotionErrorKind.PROMOTION_EXHAUSTED})

class PromotionValidationRequest(BaseModel):
    code: str
    order_total: Decimal = Field(..., ge=0)

class PromotionValidationResult(BaseModel):
    is_valid: bool
    error: Optional[PromotionErrorKind] = None
    message: Optional[str] = None
    promotion: Optional[Promotion] = None
    estimated_discount: Decimal = Decimal("0")

class PromotionApplyRequest(BaseModel):
    customer_id: int
    order_id: int
    order_total: Decimal = Field(..., ge=0)

class PromotionApplicationResult(BaseModel):
    promotion_id: int
    customer_id: int
    order_id: int
    applied: bool
    discount_amount: Decimal = Decimal("0")
    usage_id: Optional[int] = None
    duplicate: bool = False  # The order already had this promotion recorded
    error: Optional[PromotionErrorKind] = None
    message: Optional[str] = None

    @property
    def is_capacity_error(self) -> bool:
        return self.error in CAPACITY_ERRORS

# --- Price calculation ---

class PriceCalculationRequest(BaseModel):
    product_id: int
    quantity: int = Field(default=1, gt=0, description="Quantity must be greater than zero")
    promotion_code: str | None = None
    price_type: PriceType = PriceType.COMMERCIAL
    region_id: int | None = None

class BatchPriceCalculationItem(BaseModel):
    product_id: int
    quantity: int = Field(default=1, gt=0, description="Quantity must be greater than zero")
    price_type: PriceType = PriceType.COMMERCIAL
    region_id: int | None = None

class BatchPriceCalculationRequest(BaseModel):
    items: List[BatchPriceCalculationItem] = Field(..., min_length=1)
    promotion_code: str | None = None

class PriceBreakdown(BaseModel):
    product_id: int
    product_name: str
    quantity: int
    base_price: Decimal
    tier_discount_percent: Decimal = Decimal("0")
    tier_discount_amount: Decimal = Decimal("0")
    rule_discount_percent: Decimal = Decimal("0")
    rule_discount_amount: Decimal = Decimal("0")
    applied_rule_id: Optional[int] = None
    applied_rule_name: Optional[str] = None
    promotion_discount_percent: Decimal = Decimal("0")
    promotion_discount_amount: Decimal = Decimal("0")
    applied_promotion_code: Optional[str] = None
    promotion_error: Optional[PromotionErrorKind] = None
    promotion_message: Optional[str] = None
    final_unit_price: Decimal
    line_total: Decimal
    total_discount: Decimal
    total_discount_percent: Decimal

class TierPricingInfo(BaseModel):
    tier: CustomerTier
    tier_name: str
    discount_percentage: Decimal
    description: str

# --- Authentication ---

class TokenData(BaseModel):
    subject: str
    role: UserRole
    customer_id: int | None = None
