# app/routers/discounts.py
from fastapi import APIRouter, Depends
from sqlmodel import Session

from app.core.auth import require_user
from app.database import get_session
from app.models.user import User
from app.repositories.cart_repo import CartRepository
from app.repositories.discount_repo import DiscountRepository
from app.repositories.product_repo import ProductRepository
from app.schemas.checkout import CouponApply
from app.schemas.discount import CartWithDiscount, CouponValidation, DiscountRead
from app.services.cart_service import CartService
from app.services.discount_service import DiscountService

router = APIRouter(prefix="/discounts", tags=["Discounts"])

cart_service = CartService(CartRepository(), ProductRepository())
service = DiscountService(DiscountRepository())


@router.get("", response_model=list[DiscountRead])
def list_available_discounts(session: Session = Depends(get_session)):
    """
    Active discounts (newest first) for the offers banner. Public.
    """
    return service.list_available_discounts(session)


@router.post("/validate", response_model=CouponValidation)
def validate_coupon(
    payload: CouponApply,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
):
    """
    Check a coupon code without applying it. Always 200; is_valid and
    message carry the outcome.
    """
    return service.validate_coupon_code(session, payload.code)


@router.get("/cart", response_model=CartWithDiscount)
def cart_with_discount(
    coupon_code: str | None = None,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
):
    """
    Current cart with the best first-match discount applied, if any.
    """
    items = cart_service.list_items(session, current_user.id)
    return service.apply_discount_to_cart(session, items, coupon_code)
