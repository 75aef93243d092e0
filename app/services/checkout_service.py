import logging
import uuid

from fastapi import HTTPException, status
from sqlmodel import Session

from app.core.config import get_settings
from app.models.checkout import CheckoutSession
from app.repositories.cart_repo import CartRepository
from app.repositories.checkout_repo import CheckoutSessionRepository
from app.schemas.checkout import (
    CheckoutSessionCreate,
    CheckoutSessionRead,
    CheckoutSessionUpdate,
    PriceBreakdown,
)
from app.schemas.discount import DiscountResult
from app.services.cart_service import cart_subtotal
from app.services.discount_service import DiscountService
from app.services.pricing_service import PricingService, draw_lucky_discount

logger = logging.getLogger(__name__)


def _same_code(a: str | None, b: str | None) -> bool:
    return bool(a and b) and a.strip().lower() == b.strip().lower()


class CheckoutService:
    """
    Checkout sessions: shipping choice, lucky discount and coupon.

    The quote is recomputed from the current cart on every read, so a
    coupon that stops qualifying (cart changed) simply contributes 0.
    """

    def __init__(
        self,
        checkout_repo: CheckoutSessionRepository,
        cart_repo: CartRepository,
        discount_service: DiscountService,
        pricing_service: PricingService,
    ):
        self.checkout_repo = checkout_repo
        self.cart_repo = cart_repo
        self.discount_service = discount_service
        self.pricing_service = pricing_service

    # ---- helpers ----

    def get_open_session(
        self,
        session: Session,
        user_id: uuid.UUID,
        checkout_id: uuid.UUID,
    ) -> CheckoutSession:
        checkout = self.checkout_repo.get_for_user(session, user_id, checkout_id)
        if not checkout:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Checkout session not found",
            )
        return checkout

    def ensure_not_ordered(self, checkout: CheckoutSession) -> None:
        if checkout.order_id is not None:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Order already placed for this checkout",
            )

    def _applied_coupon(
        self,
        session: Session,
        checkout: CheckoutSession,
        cart_items: list,
    ) -> DiscountResult | None:
        if not checkout.coupon_code:
            return None
        result = self.discount_service.calculate_discount(
            session, cart_items, checkout.coupon_code
        )
        if result is None or not _same_code(result.discount_code, checkout.coupon_code):
            return None
        return result

    def _to_read(self, session: Session, checkout: CheckoutSession) -> CheckoutSessionRead:
        return CheckoutSessionRead(
            id=checkout.id,
            shipping_method=checkout.shipping_method,
            coupon_code=checkout.coupon_code,
            order_id=checkout.order_id,
            created_at=checkout.created_at,
            quote=self.quote(session, checkout),
        )

    # ---- operations ----

    def quote(self, session: Session, checkout: CheckoutSession) -> PriceBreakdown:
        """
        subtotal + shipping - lucky - coupon for the user's current cart.
        """
        items = self.cart_repo.list_for_user(session, checkout.user_id)
        return self.pricing_service.quote(
            subtotal=cart_subtotal(items),
            total_items=sum(it.quantity for it in items),
            shipping_method=checkout.shipping_method,
            lucky_discount=checkout.lucky_discount,
            applied_discount=self._applied_coupon(session, checkout, items),
        )

    def start_session(
        self,
        session: Session,
        user_id: uuid.UUID,
        payload: CheckoutSessionCreate,
    ) -> CheckoutSessionRead:
        items = self.cart_repo.list_for_user(session, user_id)
        if not items:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Your cart is empty",
            )

        # Validates the method before anything is stored
        self.pricing_service.schedule.cost(payload.shipping_method)

        lucky = draw_lucky_discount() if get_settings().LUCKY_DISCOUNT_ENABLED else 0.0
        checkout = CheckoutSession(
            user_id=user_id,
            shipping_method=payload.shipping_method,
            lucky_discount=lucky,
        )
        checkout = self.checkout_repo.save(session, checkout)
        logger.info("Checkout %s started for user %s", checkout.id, user_id)
        return self._to_read(session, checkout)

    def get_session(
        self,
        session: Session,
        user_id: uuid.UUID,
        checkout_id: uuid.UUID,
    ) -> CheckoutSessionRead:
        return self._to_read(session, self.get_open_session(session, user_id, checkout_id))

    def update_shipping(
        self,
        session: Session,
        user_id: uuid.UUID,
        checkout_id: uuid.UUID,
        payload: CheckoutSessionUpdate,
    ) -> CheckoutSessionRead:
        checkout = self.get_open_session(session, user_id, checkout_id)
        self.ensure_not_ordered(checkout)
        self.pricing_service.schedule.cost(payload.shipping_method)

        checkout.shipping_method = payload.shipping_method
        checkout = self.checkout_repo.save(session, checkout)
        return self._to_read(session, checkout)

    def apply_coupon(
        self,
        session: Session,
        user_id: uuid.UUID,
        checkout_id: uuid.UUID,
        code: str,
    ) -> CheckoutSessionRead:
        """
        Validate the code, then evaluate it against the cart.

        Raises:
            HTTPException(400): with the reason the coupon was rejected.
        """
        checkout = self.get_open_session(session, user_id, checkout_id)
        self.ensure_not_ordered(checkout)

        validation = self.discount_service.validate_coupon_code(session, code)
        if not validation.is_valid:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=validation.message,
            )

        items = self.cart_repo.list_for_user(session, user_id)
        result = self.discount_service.calculate_discount(session, items, code)

        if result is None or not _same_code(result.discount_code, code):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Coupon is not valid for the items in your cart",
            )
        if not result.is_applicable:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=result.reason or "Coupon cannot be applied",
            )

        checkout.coupon_code = result.discount_code
        checkout = self.checkout_repo.save(session, checkout)
        logger.info("Coupon %s applied to checkout %s", checkout.coupon_code, checkout.id)
        return self._to_read(session, checkout)

    def remove_coupon(
        self,
        session: Session,
        user_id: uuid.UUID,
        checkout_id: uuid.UUID,
    ) -> CheckoutSessionRead:
        checkout = self.get_open_session(session, user_id, checkout_id)
        self.ensure_not_ordered(checkout)

        checkout.coupon_code = None
        checkout = self.checkout_repo.save(session, checkout)
        return self._to_read(session, checkout)
