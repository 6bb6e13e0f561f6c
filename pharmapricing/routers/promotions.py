# pharmapricing/routers/promotions.py

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from .. import schemas, auth
from ..database import get_db
from ..services.exceptions import PricingPreconditionError
from ..services.promotion_applier import PromotionApplier

# Called by the order-confirmation step, once per confirmed order.
router = APIRouter(
    prefix="/pricing/promotions",
    tags=["Promotions (Order workflow)"],
    dependencies=[Depends(auth.require_order_workflow)]
)


def get_promotion_applier(db: Session = Depends(get_db)) -> PromotionApplier:
    return PromotionApplier(db)


@router.post("/{promotion_id}/apply", response_model=schemas.PromotionApplicationResult)
def apply_promotion(
    promotion_id: int,
    request: schemas.PromotionApplyRequest,
    applier: PromotionApplier = Depends(get_promotion_applier)
):
    """
    Records the promotion against a confirmed order and returns the discount.

    - **409**: the promotion has no uses left.
    - **400**: the promotion no longer applies to this order.
    - Repeating the call for the same order returns the recorded discount with `duplicate=true`.
    """
    try:
        result = applier.apply(
            promotion_id=promotion_id,
            customer_id=request.customer_id,
            order_id=request.order_id,
            order_total=request.order_total,
        )
    except PricingPreconditionError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    if not result.applied:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT if result.is_capacity_error else status.HTTP_400_BAD_REQUEST,
            detail={"error": result.error.value, "message": result.message},
        )
    return result
