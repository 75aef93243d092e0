import random
from dataclasses import dataclass

from fastapi import HTTPException, status

from app.core.config import Settings, get_settings
from app.schemas.checkout import PriceBreakdown, ShippingOptionRead
from app.schemas.discount import DiscountResult


@dataclass(frozen=True)
class ShippingTier:
    name: str
    price: float
    time: str


class ShippingSchedule:
    """
    Shipping cost per method. Prices come from configuration so they can
    change without a deploy.
    """

    def __init__(self, tiers: dict[str, ShippingTier]):
        self.tiers = tiers

    @classmethod
    def from_settings(cls, settings: Settings) -> "ShippingSchedule":
        return cls(
            {
                "standard": ShippingTier(
                    "Standard Shipping", settings.SHIPPING_STANDARD_COST, "5-7 business days"
                ),
                "express": ShippingTier(
                    "Express Shipping", settings.SHIPPING_EXPRESS_COST, "2-3 business days"
                ),
                "overnight": ShippingTier(
                    "Overnight Delivery", settings.SHIPPING_OVERNIGHT_COST, "Next business day"
                ),
            }
        )

    def cost(self, method: str) -> float:
        tier = self.tiers.get(method)
        if tier is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Unknown shipping method: {method}",
            )
        return tier.price

    def options(self) -> list[ShippingOptionRead]:
        return [
            ShippingOptionRead(method=method, name=t.name, price=t.price, time=t.time)
            for method, t in self.tiers.items()
        ]


def draw_lucky_discount(rng: random.Random | None = None) -> float:
    """
    Random whole paise in 1..99, expressed in rupees (0.01 .. 0.99).
    """
    rng = rng or random
    return rng.randint(1, 99) / 100


class PricingService:
    """
    Checkout totals:
        total = subtotal + shipping - lucky - coupon

    A raw total below zero is floored at 0 with total_clamped=True;
    order placement refuses such a quote.
    """

    def __init__(self, schedule: ShippingSchedule | None = None):
        self.schedule = schedule or ShippingSchedule.from_settings(get_settings())

    def quote(
        self,
        subtotal: float,
        total_items: int,
        shipping_method: str,
        lucky_discount: float = 0.0,
        applied_discount: DiscountResult | None = None,
    ) -> PriceBreakdown:
        shipping_cost = self.schedule.cost(shipping_method)
        coupon = (
            applied_discount.discount_amount
            if applied_discount is not None and applied_discount.is_applicable
            else 0.0
        )

        raw_total = round(subtotal + shipping_cost - lucky_discount - coupon, 2)

        return PriceBreakdown(
            subtotal=round(subtotal, 2),
            total_items=total_items,
            shipping_method=shipping_method,
            shipping_cost=shipping_cost,
            lucky_discount=lucky_discount,
            coupon_discount=coupon,
            total_discount=round(lucky_discount + coupon, 2),
            total=max(raw_total, 0.0),
            total_clamped=raw_total < 0,
            applied_discount=applied_discount if coupon else None,
        )

    @staticmethod
    def ensure_payable(breakdown: PriceBreakdown) -> None:
        """
        Raises:
            HTTPException(400): if the quote had to be clamped or is zero.
        """
        if breakdown.total_clamped or breakdown.total <= 0:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Order total must be positive",
            )
