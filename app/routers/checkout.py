# app/routers/checkout.py
import uuid

from fastapi import APIRouter, Depends, status
from sqlmodel import Session

from app.core.auth import require_user
from app.database import get_session
from app.models.user import User
from app.repositories.address_repo import AddressRepository
from app.repositories.cart_repo import CartRepository
from app.repositories.checkout_repo import CheckoutSessionRepository
from app.repositories.discount_repo import DiscountRepository
from app.repositories.order_repo import OrderRepository
from app.repositories.product_repo import ProductRepository
from app.schemas.checkout import (
    CheckoutSessionCreate,
    CheckoutSessionRead,
    CheckoutSessionUpdate,
    CouponApply,
    PriceBreakdown,
    ShippingOptionRead,
)
from app.schemas.order import OrderCreate, PlacedOrderRead
from app.services.address_service import AddressService
from app.services.checkout_service import CheckoutService
from app.services.discount_service import DiscountService
from app.services.order_service import OrderService
from app.services.pricing_service import PricingService

router = APIRouter(prefix="/checkout", tags=["Checkout"])

cart_repo = CartRepository()
pricing_service = PricingService()
service = CheckoutService(
    CheckoutSessionRepository(),
    cart_repo,
    DiscountService(DiscountRepository()),
    pricing_service,
)
order_service = OrderService(
    OrderRepository(),
    cart_repo,
    ProductRepository(),
    service,
    AddressService(AddressRepository()),
)


@router.get("/shipping-options", response_model=list[ShippingOptionRead])
def list_shipping_options():
    return pricing_service.schedule.options()


@router.post(
    "/sessions",
    response_model=CheckoutSessionRead,
    status_code=status.HTTP_201_CREATED,
)
def start_checkout(
    payload: CheckoutSessionCreate,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
):
    """
    Start a checkout for the current cart.

    Draws the lucky discount once; it stays fixed for this session.
    """
    return service.start_session(session, current_user.id, payload)


@router.get("/sessions/{checkout_id}", response_model=CheckoutSessionRead)
def get_checkout(
    checkout_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
):
    return service.get_session(session, current_user.id, checkout_id)


@router.patch("/sessions/{checkout_id}", response_model=CheckoutSessionRead)
def update_checkout(
    checkout_id: uuid.UUID,
    payload: CheckoutSessionUpdate,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
):
    """
    Change the shipping method; the quote is recomputed.
    """
    return service.update_shipping(session, current_user.id, checkout_id, payload)


@router.get("/sessions/{checkout_id}/quote", response_model=PriceBreakdown)
def get_quote(
    checkout_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
):
    checkout = service.get_open_session(session, current_user.id, checkout_id)
    return service.quote(session, checkout)


@router.post("/sessions/{checkout_id}/coupon", response_model=CheckoutSessionRead)
def apply_coupon(
    checkout_id: uuid.UUID,
    payload: CouponApply,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
):
    """
    Apply a coupon code.

    400 with the reason (invalid, expired, not yet active, usage limit,
    minimum cart value, not valid for these items).
    """
    return service.apply_coupon(session, current_user.id, checkout_id, payload.code)


@router.delete("/sessions/{checkout_id}/coupon", response_model=CheckoutSessionRead)
def remove_coupon(
    checkout_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
):
    return service.remove_coupon(session, current_user.id, checkout_id)


@router.post(
    "/sessions/{checkout_id}/orders",
    response_model=PlacedOrderRead,
    status_code=status.HTTP_201_CREATED,
)
def place_order(
    checkout_id: uuid.UUID,
    payload: OrderCreate,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
):
    """
    Place the order and return the UPI payment link / QR payload.

    Auth:
      - Only role='user' (customer) can checkout.
    """
    return order_service.place_order(session, current_user.id, checkout_id, payload)
