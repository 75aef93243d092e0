# app/routers/orders.py
import uuid

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlmodel import Session

from app.core.auth import require_user, require_admin
from app.database import get_session
from app.models.user import User
from app.repositories.address_repo import AddressRepository
from app.repositories.order_repo import OrderRepository
from app.repositories.cart_repo import CartRepository
from app.repositories.checkout_repo import CheckoutSessionRepository
from app.repositories.discount_repo import DiscountRepository
from app.repositories.product_repo import ProductRepository
from app.schemas.order import (
    OrderRead,
    OrderWithItemsRead,
    OrderStatusUpdate,
    PaymentArtifact,
    PaymentLinkEmail,
    PaymentStatusRead,
    PaymentStage,
)
from app.services.address_service import AddressService
from app.services.checkout_service import CheckoutService
from app.services.discount_service import DiscountService
from app.services.order_service import OrderService
from app.services.payment_service import PaymentService
from app.services.pricing_service import PricingService

router = APIRouter(prefix="/orders", tags=["Orders"])

order_repo = OrderRepository()
cart_repo = CartRepository()
discount_repo = DiscountRepository()

service = OrderService(
    order_repo,
    cart_repo,
    ProductRepository(),
    CheckoutService(
        CheckoutSessionRepository(),
        cart_repo,
        DiscountService(discount_repo),
        PricingService(),
    ),
    AddressService(AddressRepository()),
)
payment_service = PaymentService(order_repo, cart_repo, discount_repo)


# -------- User-facing endpoints --------


@router.get(
    "/me",
    response_model=list[OrderRead],
)
def list_my_orders(
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
    skip: int = 0,
    limit: int = 50,
):
    """
    List the authenticated user's orders (without items).
    """
    return service.list_user_orders(session, current_user.id, skip, limit)


@router.get(
    "/me/{order_id}",
    response_model=OrderWithItemsRead,
)
def get_my_order(
    order_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
):
    """
    Get a single order (with items) belonging to the current user.
    """
    return service.get_user_order(session, current_user.id, order_id)


@router.get(
    "/me/{order_id}/payment",
    response_model=PaymentArtifact,
)
def get_payment_link(
    order_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
):
    """
    UPI link / QR payload for an order.
    """
    return payment_service.artifact_for(session, current_user.id, order_id)


@router.post(
    "/me/{order_id}/payment/confirm",
    response_model=PaymentStatusRead,
    status_code=202,
)
def confirm_payment(
    order_id: uuid.UUID,
    background_tasks: BackgroundTasks,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
):
    """
    "Payment Done": mark the order as processing and verify in the
    background. Poll /payment/status for the outcome.
    """
    result = payment_service.confirm_payment(session, current_user.id, order_id)
    background_tasks.add_task(payment_service.verify_payment, order_id)
    return result


@router.get(
    "/me/{order_id}/payment/status",
    response_model=PaymentStatusRead,
)
def get_payment_status(
    order_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
):
    return payment_service.payment_status(session, current_user.id, order_id)


@router.post(
    "/me/{order_id}/payment/email",
    response_model=PaymentArtifact,
)
def email_payment_link(
    order_id: uuid.UUID,
    payload: PaymentLinkEmail,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
):
    """
    Email the UPI link so the customer can pay from another device.
    """
    return payment_service.send_payment_link(session, current_user.id, order_id, payload.email)


# -------- Admin endpoints --------


@router.get(
    "",
    response_model=list[OrderRead],
    dependencies=[Depends(require_admin)],
)
def list_all_orders(
    session: Session = Depends(get_session),
    skip: int = 0,
    limit: int = 50,
    payment_stage: PaymentStage | None = None,
):
    """
    List all orders (admin only). ?payment_stage=pending lists orders
    waiting for manual payment review.
    """
    return service.list_all_orders(session, skip, limit, payment_stage)


@router.get(
    "/{order_id}",
    response_model=OrderWithItemsRead,
    dependencies=[Depends(require_admin)],
)
def get_order_admin(
    order_id: uuid.UUID,
    session: Session = Depends(get_session),
):
    """
    Get any order with items (admin only).
    """
    return service.get_order_admin(session, order_id)


@router.patch(
    "/{order_id}/status",
    response_model=OrderRead,
    dependencies=[Depends(require_admin)],
)
def update_order_status(
    order_id: uuid.UUID,
    payload: OrderStatusUpdate,
    session: Session = Depends(get_session),
):
    """
    Update order status (admin only).

      placed     -> processing, cancelled

      processing -> shipped, cancelled

      shipped    -> delivered, cancelled

      delivered / cancelled -> (no change)

    """
    return service.update_status(session, order_id, payload)
