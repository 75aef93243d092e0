import logging
import uuid
from collections.abc import Sequence
from datetime import datetime, timezone

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from app.models.cart import CartItem
from app.models.discount import Discount
from app.repositories.discount_repo import DiscountRepository
from app.schemas.discount import (
    CartWithDiscount,
    CouponValidation,
    DiscountRead,
    DiscountResult,
)
from app.services.cart_service import cart_subtotal

logger = logging.getLogger(__name__)

USAGE_LIMIT_REACHED = "Discount usage limit reached"


def _as_utc(value: datetime | None) -> datetime | None:
    # Naive timestamps come back from SQLite; they are stored as UTC.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _usage_exhausted(discount: Discount) -> bool:
    return bool(discount.usage_limit) and discount.usage_count >= discount.usage_limit


def _listed(ids: list[str] | None, value: uuid.UUID | None) -> bool:
    return value is not None and str(value) in (ids or [])


def is_discount_applicable(
    discount: Discount,
    cart_items: Sequence[CartItem],
    cart_total: float,
) -> bool:
    """
    min_cart_value (when set) AND the scope condition:
      all      -> always
      products -> a non-combo line whose product is listed
      combos   -> a line whose combo is listed
      variants -> a line whose variant is listed
    """
    if discount.min_cart_value and cart_total < discount.min_cart_value:
        return False

    scope = discount.applicable_to
    if scope == "all":
        return True
    if scope == "products":
        return any(
            it.combo_id is None and _listed(discount.product_ids, it.product_id)
            for it in cart_items
        )
    if scope == "combos":
        return any(_listed(discount.combo_ids, it.combo_id) for it in cart_items)
    if scope == "variants":
        return any(_listed(discount.variant_ids, it.variant_id) for it in cart_items)
    return False


def calculate_discount_amount(discount: Discount, cart_total: float) -> float:
    """
    percentage   -> cart_total * value / 100
    fixed_amount -> value
    cart_value   -> value (flat; no tiers)

    Capped at max_discount_amount, then at cart_total.
    """
    if discount.type == "percentage":
        amount = cart_total * discount.value / 100
    elif discount.type in ("fixed_amount", "cart_value"):
        amount = discount.value
    else:
        amount = 0.0

    if discount.max_discount_amount and amount > discount.max_discount_amount:
        amount = discount.max_discount_amount

    return round(min(amount, cart_total), 2)


def format_discount_text(discount: Discount) -> str:
    if discount.type == "percentage":
        return f"{discount.value:g}% off"
    if discount.type == "fixed_amount":
        return f"₹{discount.value:g} off"
    if discount.type == "cart_value":
        return f"₹{discount.value:g} off on orders above ₹{(discount.min_cart_value or 0):g}"
    return "Discount available"


def discount_eligibility_message(discount: Discount, cart_total: float) -> str:
    if discount.min_cart_value and cart_total < discount.min_cart_value:
        short_by = round(discount.min_cart_value - cart_total, 2)
        return f"Add ₹{short_by:g} more to get this discount"
    if _usage_exhausted(discount):
        return "This discount has reached its usage limit"
    return "Discount available"


def to_read(discount: Discount) -> DiscountRead:
    return DiscountRead(
        id=discount.id,
        name=discount.name,
        description=discount.description,
        code=discount.code,
        type=discount.type,
        value=discount.value,
        min_cart_value=discount.min_cart_value,
        max_discount_amount=discount.max_discount_amount,
        applicable_to=discount.applicable_to,
        start_date=discount.start_date,
        end_date=discount.end_date,
        display_text=format_discount_text(discount),
    )


class DiscountService:
    """
    Discount selection and coupon validation.

    Selection is first-match in the order the store returns active
    discounts (oldest first), not best-for-customer.
    """

    def __init__(self, repo: DiscountRepository):
        self.repo = repo

    def _select(
        self,
        discounts: list[Discount],
        cart_items: Sequence[CartItem],
        cart_total: float,
        coupon_code: str | None,
    ) -> Discount | None:
        if coupon_code:
            wanted = coupon_code.strip().lower()
            for d in discounts:
                if d.code and d.code.lower() == wanted and is_discount_applicable(
                    d, cart_items, cart_total
                ):
                    return d

        for d in discounts:
            if not d.code and is_discount_applicable(d, cart_items, cart_total):
                return d
        return None

    @staticmethod
    def _rejected_coupon(
        discounts: list[Discount],
        cart_items: Sequence[CartItem],
        cart_total: float,
        coupon_code: str | None,
    ) -> DiscountResult | None:
        # A known code that fails the cart conditions is reported, not dropped
        if not coupon_code:
            return None
        wanted = coupon_code.strip().lower()
        discount = next((d for d in discounts if d.code and d.code.lower() == wanted), None)
        if discount is None:
            return None

        if discount.min_cart_value and cart_total < discount.min_cart_value:
            reason = f"Minimum cart value of ₹{discount.min_cart_value:g} required"
        else:
            reason = "Coupon is not valid for the items in your cart"

        return DiscountResult(
            discount_id=discount.id,
            discount_name=discount.name,
            discount_code=discount.code,
            discount_type=discount.type,
            discount_value=discount.value,
            discount_amount=0.0,
            original_amount=cart_total,
            final_amount=cart_total,
            is_applicable=False,
            reason=reason,
        )

    def calculate_discount(
        self,
        session: Session,
        cart_items: Sequence[CartItem],
        coupon_code: str | None = None,
        now: datetime | None = None,
    ) -> DiscountResult | None:
        """
        Pick the discount for this cart and compute its amount.

        Returns:
            None when the cart is empty or no discount is a candidate.
            A result with is_applicable=False when the chosen discount has
            reached its usage limit, or when the given coupon exists but the
            cart does not meet its conditions.
        """
        if not cart_items:
            return None

        now = now or datetime.now(timezone.utc)
        try:
            discounts = self.repo.list_active(session, now)
        except SQLAlchemyError:
            logger.exception("Discount calculation error")
            return None

        cart_total = cart_subtotal(list(cart_items))
        discount = self._select(discounts, cart_items, cart_total, coupon_code)
        if discount is None:
            return self._rejected_coupon(discounts, cart_items, cart_total, coupon_code)

        base = dict(
            discount_id=discount.id,
            discount_name=discount.name,
            discount_code=discount.code,
            discount_type=discount.type,
            discount_value=discount.value,
            original_amount=cart_total,
        )

        if _usage_exhausted(discount):
            return DiscountResult(
                **base,
                discount_amount=0.0,
                final_amount=cart_total,
                is_applicable=False,
                reason=USAGE_LIMIT_REACHED,
            )

        amount = calculate_discount_amount(discount, cart_total)
        return DiscountResult(
            **base,
            discount_amount=amount,
            final_amount=round(cart_total - amount, 2),
            is_applicable=True,
        )

    def apply_discount_to_cart(
        self,
        session: Session,
        cart_items: Sequence[CartItem],
        coupon_code: str | None = None,
    ) -> CartWithDiscount:
        subtotal = cart_subtotal(list(cart_items))
        result = self.calculate_discount(session, cart_items, coupon_code)
        applied = result if result is not None and result.is_applicable else None
        return CartWithDiscount(
            subtotal=subtotal,
            total_items=sum(it.quantity for it in cart_items),
            discount=applied,
            total=applied.final_amount if applied else subtotal,
        )

    def validate_coupon_code(
        self,
        session: Session,
        code: str | None,
        now: datetime | None = None,
    ) -> CouponValidation:
        """
        Pre-check a coupon independent of the cart. Never raises: the
        message tells the customer why a code was rejected.
        """
        if not code or not code.strip():
            return CouponValidation(is_valid=False, message="Please enter a coupon code")

        now = now or datetime.now(timezone.utc)
        try:
            discount = self.repo.get_active_by_code(session, code)
        except SQLAlchemyError:
            logger.exception("Coupon validation error")
            return CouponValidation(is_valid=False, message="Error validating coupon code")

        if discount is None:
            return CouponValidation(is_valid=False, message="Invalid coupon code")

        end_date = _as_utc(discount.end_date)
        if end_date and end_date < now:
            return CouponValidation(is_valid=False, message="Coupon code has expired")

        start_date = _as_utc(discount.start_date)
        if start_date and start_date > now:
            return CouponValidation(is_valid=False, message="Coupon code is not yet active")

        if _usage_exhausted(discount):
            return CouponValidation(is_valid=False, message="Coupon code usage limit reached")

        return CouponValidation(is_valid=True, discount=to_read(discount))

    def increment_discount_usage(self, session: Session, discount_id: uuid.UUID) -> None:
        """
        Record one redemption. Part of the caller's transaction.
        """
        self.repo.increment_usage(session, discount_id)

    def list_available_discounts(self, session: Session) -> list[DiscountRead]:
        try:
            discounts = self.repo.list_active(
                session, datetime.now(timezone.utc), newest_first=True
            )
        except SQLAlchemyError:
            logger.exception("Get available discounts error")
            return []
        return [to_read(d) for d in discounts]
