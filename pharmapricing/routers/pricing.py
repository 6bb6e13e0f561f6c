# pharmapricing/routers/pricing.py

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import List

from .. import schemas, auth, crud
from ..database import get_db
from ..services.exceptions import PricingPreconditionError
from ..services.pricing_engine import PricingEngine
from ..services.promotion_validator import PromotionValidator
from ..services.rule_matcher import PriceRuleSelector
from ..services.tier_discounts import tier_pricing_info

router = APIRouter(
    prefix="/pricing",
    tags=["Pricing"]
)


def get_pricing_engine(db: Session = Depends(get_db)) -> PricingEngine:
    return PricingEngine(db)


def get_promotion_validator(db: Session = Depends(get_db)) -> PromotionValidator:
    return PromotionValidator(db)


def _not_found(e: PricingPreconditionError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.get("/tiers", response_model=List[schemas.TierPricingInfo])
def read_tier_pricing():
    """Discount percentage of every customer tier. Public."""
    return tier_pricing_info()


@router.post("/calculate", response_model=schemas.PriceBreakdown)
def calculate_price(
    request: schemas.PriceCalculationRequest,
    principal: schemas.TokenData = Depends(auth.require_customer_user),
    engine: PricingEngine = Depends(get_pricing_engine)
):
    """
    Price breakdown of one product for the current customer.
    A bad promotion code does not fail the call; the reason is in `promotion_error`.
    """
    try:
        return engine.calculate(
            product_id=request.product_id,
            customer_id=principal.customer_id,
            quantity=request.quantity,
            promotion_code=request.promotion_code,
            price_type=request.price_type,
            region_id=request.region_id,
        )
    except PricingPreconditionError as e:
        raise _not_found(e)


@router.post("/calculate/batch", response_model=List[schemas.PriceBreakdown])
def calculate_prices(
    request: schemas.BatchPriceCalculationRequest,
    principal: schemas.TokenData = Depends(auth.require_customer_user),
    engine: PricingEngine = Depends(get_pricing_engine)
):
    """Prices a whole cart; the promotion minimum is checked against the cart total."""
    try:
        return engine.calculate_batch(
            lines=request.items,
            customer_id=principal.customer_id,
            promotion_code=request.promotion_code,
        )
    except PricingPreconditionError as e:
        raise _not_found(e)


@router.post("/promotions/validate", response_model=schemas.PromotionValidationResult)
def validate_promotion(
    request: schemas.PromotionValidationRequest,
    principal: schemas.TokenData = Depends(auth.require_customer_user),
    validator: PromotionValidator = Depends(get_promotion_validator)
):
    """Feedback for promo-code entry at checkout. Never records anything."""
    try:
        return validator.validate(
            code=request.code,
            customer_id=principal.customer_id,
            order_total=request.order_total,
        )
    except PricingPreconditionError as e:
        raise _not_found(e)


@router.get("/promotions/available", response_model=List[schemas.Promotion])
def read_available_promotions(
    principal: schemas.TokenData = Depends(auth.require_customer_user),
    validator: PromotionValidator = Depends(get_promotion_validator)
):
    """Promotions the current customer can use, including those of its headquarters."""
    try:
        return validator.available_promotions(customer_id=principal.customer_id)
    except PricingPreconditionError as e:
        raise _not_found(e)


@router.get(
    "/promotions/available/{customer_id}",
    response_model=List[schemas.Promotion],
    dependencies=[Depends(auth.require_admin_user)]
)
def read_available_promotions_for_customer(
    customer_id: int,
    validator: PromotionValidator = Depends(get_promotion_validator)
):
    try:
        return validator.available_promotions(customer_id=customer_id)
    except PricingPreconditionError as e:
        raise _not_found(e)


@router.get(
    "/rules/applicable/{customer_id}",
    response_model=List[schemas.PriceRule],
    dependencies=[Depends(auth.require_admin_user)]
)
def read_applicable_rules(
    customer_id: int,
    db: Session = Depends(get_db)
):
    """Price rules currently targeting a customer, best first."""
    customer = crud.customer.get(db, customer_id)
    if customer is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Customer with id {customer_id} not found."
        )
    return PriceRuleSelector(db).applicable_rules_for(customer=customer)
