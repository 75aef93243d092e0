# app/services/order_service.py
import logging
import uuid
from datetime import datetime, timedelta, timezone

from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from app.models.address import SavedAddress
from app.models.cart import CartItem
from app.models.order import Order, OrderItem
from app.repositories.cart_repo import CartRepository
from app.repositories.order_repo import OrderRepository
from app.repositories.product_repo import ProductRepository
from app.schemas.order import (
    OrderCreate,
    OrderItemRead,
    OrderRead,
    OrderStatusUpdate,
    OrderWithItemsRead,
    PlacedOrderRead,
)
from app.services.address_service import AddressService, validate_address_fields
from app.services.checkout_service import CheckoutService
from app.services.payment_service import build_payment_artifact, generate_transaction_id

logger = logging.getLogger(__name__)

# Delivery estimate shown on the confirmation page
DELIVERY_ESTIMATE_DAYS = 7

# Fulfilment state machine (admin)
ALLOWED_TRANSITIONS: dict[str, set[str]] = {
    "placed": {"processing", "cancelled"},
    "processing": {"shipped", "cancelled"},
    "shipped": {"delivered", "cancelled"},
    "delivered": set(),
    "cancelled": set(),
}


class OrderService:
    """
    Business logic for orders.

    Responsibilities:
      - Place an order from a checkout session (cart + quote + address)
      - Validate cart lines against the catalogue (exists, active)
      - Attach a transaction id and the UPI payment artifact
      - Save a typed address to the address book after placement
      - Enforce fulfilment status transitions (admin)

    The cart is NOT cleared here; that happens when payment is verified.
    """

    def __init__(
        self,
        order_repo: OrderRepository,
        cart_repo: CartRepository,
        product_repo: ProductRepository,
        checkout_service: CheckoutService,
        address_service: AddressService,
    ):
        self.order_repo = order_repo
        self.cart_repo = cart_repo
        self.product_repo = product_repo
        self.checkout_service = checkout_service
        self.address_service = address_service

    # -------- User-facing operations --------

    def place_order(
        self,
        session: Session,
        user_id: uuid.UUID,
        checkout_id: uuid.UUID,
        payload: OrderCreate,
    ) -> PlacedOrderRead:
        """
        Convert the checkout session into an Order.

        Steps:
          1. Load the checkout session; one order per session.
          2. Load cart items; error if empty; validate against products.
          3. Quote the cart; refuse non-positive or clamped totals.
          4. Resolve the shipping address (saved or typed).
          5. Create Order + OrderItem rows and link the session.
          6. Commit, then save a typed address (best effort).
          7. Return the order with its pricing and UPI payment artifact.
        """
        # 1) Checkout session
        checkout = self.checkout_service.get_open_session(session, user_id, checkout_id)
        self.checkout_service.ensure_not_ordered(checkout)

        # 2) Cart
        cart_items: list[CartItem] = self.cart_repo.list_for_user(session, user_id)
        if not cart_items:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Cart is empty",
            )
        self._validate_cart(session, cart_items)

        # 3) Pricing
        pricing = self.checkout_service.quote(session, checkout)
        self.checkout_service.pricing_service.ensure_payable(pricing)

        # 4) Address
        shipping = self._resolve_shipping(session, user_id, payload)

        # 5) Order rows
        applied = pricing.applied_discount
        order = Order(
            user_id=user_id,
            status="placed",
            subtotal=pricing.subtotal,
            shipping_method=pricing.shipping_method,
            shipping=pricing.shipping_cost,
            lucky_discount=pricing.lucky_discount,
            coupon_discount=pricing.coupon_discount,
            discount=pricing.total_discount,
            discount_id=applied.discount_id if applied else None,
            discount_code=applied.discount_code if applied else None,
            total=pricing.total,
            transaction_id=generate_transaction_id(),
            payment_link_email=payload.payment_link_email,
            payment_link_phone=payload.payment_link_phone,
            estimated_delivery=datetime.now(timezone.utc) + timedelta(days=DELIVERY_ESTIMATE_DAYS),
            **shipping,
        )
        order = self.order_repo.create_order(session, order)

        order_items = self.order_repo.create_items(
            session,
            [
                OrderItem(
                    order_id=order.id,
                    product_id=ci.product_id,
                    product_name=ci.product_name,
                    product_brand=ci.product_brand,
                    product_image=ci.product_image_url,
                    variant_id=ci.variant_id,
                    variant_name=ci.variant_name,
                    combo_id=ci.combo_id,
                    combo_name=ci.combo_name,
                    quantity=ci.quantity,
                    product_price=ci.unit_price,
                )
                for ci in cart_items
            ],
        )

        checkout.order_id = order.id
        session.add(checkout)

        # 6) Commit transaction
        session.commit()
        session.refresh(order)
        logger.info("Order %s placed (total %.2f)", order.transaction_id, order.total)

        if payload.address is not None:
            self._save_typed_address(session, user_id, payload)

        # 7) Result
        return PlacedOrderRead(
            order=self._build_order_with_items_dto(order, order_items),
            pricing=pricing,
            payment=build_payment_artifact(order.transaction_id, order.total),
        )

    def list_user_orders(
        self,
        session: Session,
        user_id: uuid.UUID,
        skip: int = 0,
        limit: int = 50,
    ) -> list[OrderRead]:
        orders = self.order_repo.list_for_user(session, user_id, skip, limit)
        return orders  # type: ignore[return-value]

    def get_user_order(
        self,
        session: Session,
        user_id: uuid.UUID,
        order_id: uuid.UUID,
    ) -> OrderWithItemsRead:
        """
        Get a single order for the user, including items.

        - 404 if order not found or does not belong to this user.
        """
        order = self.order_repo.get_by_id(session, order_id)
        if not order or order.user_id != user_id:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Order not found",
            )

        items = self.order_repo.list_items_for_order(session, order.id)
        return self._build_order_with_items_dto(order, items)

    # -------- Admin operations --------

    def list_all_orders(
        self,
        session: Session,
        skip: int = 0,
        limit: int = 50,
        payment_stage: str | None = None,
    ) -> list[OrderRead]:
        """
        List all orders (admin only); payment_stage="pending" is the
        manual verification queue.
        """
        orders = self.order_repo.list_all(session, skip, limit, payment_stage)
        return orders  # type: ignore[return-value]

    def get_order_admin(
        self,
        session: Session,
        order_id: uuid.UUID,
    ) -> OrderWithItemsRead:
        order = self.order_repo.get_by_id(session, order_id)
        if not order:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Order not found",
            )
        items = self.order_repo.list_items_for_order(session, order.id)
        return self._build_order_with_items_dto(order, items)

    def update_status(
        self,
        session: Session,
        order_id: uuid.UUID,
        payload: OrderStatusUpdate,
    ) -> OrderRead:
        """
        Admin-only status update:

          placed     -> processing, cancelled
          processing -> shipped, cancelled
          shipped    -> delivered, cancelled
          delivered  -> (no change)
          cancelled  -> (no change)

        Any invalid transition raises 400.
        """
        order = self.order_repo.get_by_id(session, order_id)
        if not order:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Order not found",
            )

        current = order.status
        new = payload.status

        if current == new:
            return order  # type: ignore[return-value]

        if new not in ALLOWED_TRANSITIONS.get(current, set()):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Invalid status transition: {current} -> {new}",
            )

        order.status = new
        self.order_repo.update_order(session, order)
        session.commit()
        session.refresh(order)
        return order  # type: ignore[return-value]

    # -------- Helpers --------

    def _validate_cart(self, session: Session, cart_items: list[CartItem]) -> None:
        errors: list[dict[str, str]] = []

        for ci in cart_items:
            product = self.product_repo.get_by_id(session, ci.product_id)
            if not product:
                errors.append({"product_id": str(ci.product_id), "reason": "Product not found"})
            elif not product.is_active:
                errors.append({"product_id": str(ci.product_id), "reason": "Product is inactive"})
            elif ci.unit_price <= 0:
                errors.append({"product_id": str(ci.product_id), "reason": "Invalid price in cart"})

        if errors:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={"message": "Cart validation failed", "items": errors},
            )

    def _resolve_shipping(
        self,
        session: Session,
        user_id: uuid.UUID,
        payload: OrderCreate,
    ) -> dict[str, str]:
        if payload.address_id is not None:
            saved: SavedAddress = self.address_service.get_address(
                session, user_id, payload.address_id
            )
            return {
                "shipping_name": saved.full_name,
                "shipping_phone": saved.phone,
                "shipping_address": saved.address,
                "shipping_city": saved.city,
                "shipping_state": saved.state,
                "shipping_zip_code": saved.pincode,
                "shipping_country": saved.country,
            }

        typed = payload.address
        cleaned, errors = validate_address_fields(typed.model_dump())
        if errors:
            self.address_service.raise_field_errors(errors)

        return {
            "shipping_name": cleaned["full_name"],
            "shipping_phone": cleaned["phone"],
            "shipping_address": cleaned["address"],
            "shipping_city": cleaned["city"],
            "shipping_state": cleaned["state"],
            "shipping_zip_code": cleaned["pincode"],
            "shipping_country": typed.country or "India",
        }

    def _save_typed_address(
        self,
        session: Session,
        user_id: uuid.UUID,
        payload: OrderCreate,
    ) -> None:
        # The order is already committed; a failed save must not undo it
        try:
            self.address_service.create_address(session, user_id, payload.address)
        except SQLAlchemyError:
            session.rollback()
            logger.exception("Error saving address for user %s", user_id)

    def _build_order_with_items_dto(
        self,
        order: Order,
        items: list[OrderItem],
    ) -> OrderWithItemsRead:
        item_dtos = [
            OrderItemRead(
                id=it.id,
                order_id=it.order_id,
                product_id=it.product_id,
                product_name=it.product_name,
                variant_id=it.variant_id,
                variant_name=it.variant_name,
                combo_id=it.combo_id,
                combo_name=it.combo_name,
                quantity=it.quantity,
                product_price=it.product_price,
                line_total=round(it.quantity * it.product_price, 2),
            )
            for it in items
        ]

        return OrderWithItemsRead(
            **OrderRead.model_validate(order, from_attributes=True).model_dump(),
            items=item_dtos,
        )
