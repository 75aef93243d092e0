import uuid
from datetime import datetime, timedelta, timezone

import pytest

from app.models.cart import CartItem
from app.models.discount import Discount
from app.repositories.discount_repo import DiscountRepository
from app.services.discount_service import (
    USAGE_LIMIT_REACHED,
    DiscountService,
    calculate_discount_amount,
    discount_eligibility_message,
    format_discount_text,
    is_discount_applicable,
)


def line(price=500.0, quantity=1, **kw) -> CartItem:
    return CartItem(
        user_id=uuid.uuid4(),
        product_id=kw.pop("product_id", uuid.uuid4()),
        quantity=quantity,
        price=price,
        **kw,
    )


@pytest.fixture
def service():
    return DiscountService(DiscountRepository())


# ---- pure helpers ----


def test_percentage_is_capped_at_max_discount_amount():
    d = Discount(name="Big", type="percentage", value=20, max_discount_amount=100)
    assert calculate_discount_amount(d, 1000) == 100


def test_amount_never_exceeds_cart_total():
    d = Discount(name="Flat", type="fixed_amount", value=500)
    assert calculate_discount_amount(d, 300) == 300


def test_cart_value_is_a_flat_amount():
    d = Discount(name="Threshold", type="cart_value", value=75, min_cart_value=1000)
    assert calculate_discount_amount(d, 2000) == 75


def test_below_min_cart_value_is_not_applicable():
    d = Discount(name="Min", type="fixed_amount", value=50, min_cart_value=1000)
    assert not is_discount_applicable(d, [line(999)], 999)
    assert is_discount_applicable(d, [line(1000)], 1000)


def test_products_scope_ignores_combo_lines():
    product_id = uuid.uuid4()
    d = Discount(
        name="Scoped",
        type="percentage",
        value=5,
        applicable_to="products",
        product_ids=[str(product_id)],
    )
    combo_line = line(product_id=product_id, combo_id=uuid.uuid4())
    plain_line = line(product_id=product_id)

    assert not is_discount_applicable(d, [combo_line], 500)
    assert is_discount_applicable(d, [plain_line], 500)


def test_variant_and_combo_scopes_match_listed_ids():
    variant_id, combo_id = uuid.uuid4(), uuid.uuid4()
    by_variant = Discount(
        name="V", type="percentage", value=5, applicable_to="variants", variant_ids=[str(variant_id)]
    )
    by_combo = Discount(
        name="C", type="percentage", value=5, applicable_to="combos", combo_ids=[str(combo_id)]
    )

    assert is_discount_applicable(by_variant, [line(variant_id=variant_id)], 500)
    assert not is_discount_applicable(by_variant, [line()], 500)
    assert is_discount_applicable(by_combo, [line(combo_id=combo_id)], 500)


def test_display_text_and_eligibility():
    d = Discount(name="T", type="cart_value", value=100, min_cart_value=999)
    assert format_discount_text(d) == "₹100 off on orders above ₹999"
    assert format_discount_text(Discount(name="P", type="percentage", value=15)) == "15% off"
    assert discount_eligibility_message(d, 899) == "Add ₹100 more to get this discount"


# ---- selection against the database ----


def test_usage_limit_reached_returns_non_applicable_result(session, service, make_discount):
    make_discount(code="FIVE", usage_limit=5, usage_count=5)

    result = service.calculate_discount(session, [line(1000)], "FIVE")

    assert result is not None
    assert result.is_applicable is False
    assert result.discount_amount == 0
    assert result.reason == USAGE_LIMIT_REACHED


def test_first_match_in_creation_order(session, service, make_discount):
    base = datetime(2026, 1, 1, tzinfo=timezone.utc)
    make_discount(name="Older", value=5, created_at=base)
    make_discount(name="Newer", value=50, created_at=base + timedelta(days=1))

    result = service.calculate_discount(session, [line(1000)])

    assert result.discount_name == "Older"
    assert result.discount_amount == 50


def test_coupon_takes_precedence_over_automatic(session, service, make_discount):
    make_discount(name="Auto", value=5)
    make_discount(name="Coupon", code="SAVE10", value=10)

    result = service.calculate_discount(session, [line(1000)], "save10")

    assert result.discount_code == "SAVE10"
    assert result.discount_amount == 100


def test_coupon_below_minimum_is_reported(session, service, make_discount):
    make_discount(code="BIGCART", type="fixed_amount", value=200, min_cart_value=5000)

    result = service.calculate_discount(session, [line(1000)], "BIGCART")

    assert result.is_applicable is False
    assert result.reason == "Minimum cart value of ₹5000 required"


def test_no_candidates_returns_none(session, service):
    assert service.calculate_discount(session, [line(1000)]) is None
    assert service.calculate_discount(session, []) is None


def test_expired_discounts_are_not_candidates(session, service, make_discount):
    make_discount(end_date=datetime.now(timezone.utc) - timedelta(days=1))
    assert service.calculate_discount(session, [line(1000)]) is None


@pytest.mark.parametrize(
    "fields, message",
    [
        ({"end_date": datetime.now(timezone.utc) - timedelta(days=1)}, "Coupon code has expired"),
        ({"start_date": datetime.now(timezone.utc) + timedelta(days=1)}, "Coupon code is not yet active"),
        ({"usage_limit": 3, "usage_count": 3}, "Coupon code usage limit reached"),
    ],
)
def test_validate_coupon_rejections(session, service, make_discount, fields, message):
    make_discount(code="WELCOME", **fields)

    result = service.validate_coupon_code(session, "WELCOME")

    assert result.is_valid is False
    assert result.message == message


def test_validate_coupon_unknown_and_valid(session, service, make_discount):
    make_discount(code="WELCOME")

    assert service.validate_coupon_code(session, "NOPE").message == "Invalid coupon code"
    assert service.validate_coupon_code(session, "  ").message == "Please enter a coupon code"

    ok = service.validate_coupon_code(session, "welcome")
    assert ok.is_valid is True
    assert ok.discount.code == "WELCOME"


def test_increment_usage(session, service, make_discount):
    d = make_discount(code="COUNT", usage_count=2)

    service.increment_discount_usage(session, d.id)
    session.commit()
    session.refresh(d)

    assert d.usage_count == 3


def test_apply_discount_to_cart(session, service, make_discount):
    make_discount(name="Auto", value=10)

    cart = service.apply_discount_to_cart(session, [line(400, quantity=2)])

    assert cart.subtotal == 800
    assert cart.total_items == 2
    assert cart.total == 720


def test_list_available_newest_first(session, service, make_discount):
    base = datetime(2026, 1, 1, tzinfo=timezone.utc)
    make_discount(name="First", created_at=base)
    make_discount(name="Second", created_at=base + timedelta(hours=1))
    make_discount(name="Disabled", is_active=False)

    names = [d.name for d in service.list_available_discounts(session)]

    assert names == ["Second", "First"]


def test_offers_endpoints(client, auth_headers, product, add_line, customer, make_discount):
    make_discount(name="Festive", code="DIWALI", value=20, max_discount_amount=150)
    add_line(customer, product)

    offers = client.get("/api/v1/discounts").json()
    assert offers[0]["display_text"] == "20% off"

    check = client.post("/api/v1/discounts/validate", json={"code": "diwali"}, headers=auth_headers)
    assert check.json()["is_valid"] is True

    cart = client.get("/api/v1/discounts/cart?coupon_code=DIWALI", headers=auth_headers).json()
    assert cart["discount"]["discount_amount"] == 150
    assert cart["total"] == 850
