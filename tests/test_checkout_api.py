import uuid

import httpx
import pytest
from sqlmodel import Session, select

from app.models.address import SavedAddress
from app.models.cart import CartItem
from app.models.discount import Discount
from app.models.order import Order
from app.routers import orders as orders_router
from app.services import checkout_service as checkout_module

API = "/api/v1"


@pytest.fixture(autouse=True)
def fixed_lucky_discount(monkeypatch):
    monkeypatch.setattr(checkout_module, "draw_lucky_discount", lambda: 0.37)


@pytest.fixture
def cart(client, auth_headers, product):
    res = client.post(f"{API}/cart", json={"product_id": str(product.id)}, headers=auth_headers)
    assert res.status_code == 200
    return res.json()


@pytest.fixture
def checkout(client, auth_headers, cart):
    res = client.post(f"{API}/checkout/sessions", json={}, headers=auth_headers)
    assert res.status_code == 201
    return res.json()


@pytest.fixture
def webhook(engine, monkeypatch):
    """Point background verification at the test DB and a fake webhook."""
    answers = {"verified": True}
    payment_service = orders_router.payment_service
    monkeypatch.setattr(payment_service, "session_factory", lambda: Session(engine))
    monkeypatch.setattr(payment_service, "delay_seconds", 0)
    monkeypatch.setattr(
        payment_service,
        "transport",
        httpx.MockTransport(lambda request: httpx.Response(200, json=answers)),
    )
    return answers


# ---- cart ----


def test_cart_merges_lines_and_prices_options(client, auth_headers, product, variant, combo):
    client.post(f"{API}/cart", json={"product_id": str(product.id)}, headers=auth_headers)
    client.post(
        f"{API}/cart", json={"product_id": str(product.id), "quantity": 2}, headers=auth_headers
    )
    client.post(
        f"{API}/cart",
        json={"product_id": str(product.id), "variant_id": str(variant.id)},
        headers=auth_headers,
    )
    summary = client.post(
        f"{API}/cart",
        json={"product_id": str(product.id), "combo_id": str(combo.id)},
        headers=auth_headers,
    ).json()

    assert len(summary["items"]) == 3
    assert summary["total_quantity"] == 5
    assert summary["total_price"] == 3000 + 4500 + 2500


def test_cart_rejects_variant_and_combo_together(client, auth_headers, product, variant, combo):
    res = client.post(
        f"{API}/cart",
        json={
            "product_id": str(product.id),
            "variant_id": str(variant.id),
            "combo_id": str(combo.id),
        },
        headers=auth_headers,
    )
    assert res.status_code == 422


def test_cart_update_and_remove(client, auth_headers, cart):
    item_id = cart["items"][0]["id"]

    updated = client.patch(f"{API}/cart/{item_id}", json={"quantity": 3}, headers=auth_headers)
    assert updated.json()["total_price"] == 3000

    emptied = client.delete(f"{API}/cart/{item_id}", headers=auth_headers)
    assert emptied.json()["items"] == []


# ---- checkout session ----


def test_checkout_quote(client, auth_headers, checkout):
    quote = checkout["quote"]

    assert quote["subtotal"] == 1000
    assert quote["shipping_cost"] == 0
    assert quote["lucky_discount"] == 0.37
    assert quote["total"] == 999.63


def test_shipping_change_recomputes(client, auth_headers, checkout):
    res = client.patch(
        f"{API}/checkout/sessions/{checkout['id']}",
        json={"shipping_method": "express"},
        headers=auth_headers,
    )

    assert res.json()["quote"]["total"] == 1149.63


def test_empty_cart_cannot_start_checkout(client, auth_headers):
    res = client.post(f"{API}/checkout/sessions", json={}, headers=auth_headers)
    assert res.status_code == 400


def test_coupon_apply_and_remove_round_trip(client, auth_headers, checkout, make_discount):
    make_discount(code="SAVE10", value=10, max_discount_amount=100)
    url = f"{API}/checkout/sessions/{checkout['id']}"
    client.patch(url, json={"shipping_method": "express"}, headers=auth_headers)
    before = client.get(f"{url}/quote", headers=auth_headers).json()

    applied = client.post(f"{url}/coupon", json={"code": "save10"}, headers=auth_headers).json()

    assert applied["coupon_code"] == "SAVE10"
    assert applied["quote"]["coupon_discount"] == 100
    assert applied["quote"]["total"] == 1049.63

    removed = client.delete(f"{url}/coupon", headers=auth_headers).json()

    assert removed["coupon_code"] is None
    assert removed["quote"] == before


@pytest.mark.parametrize(
    "fields, detail",
    [
        ({"usage_limit": 5, "usage_count": 5}, "Coupon code usage limit reached"),
        ({"min_cart_value": 5000}, "Minimum cart value of ₹5000 required"),
    ],
)
def test_coupon_rejections(client, auth_headers, checkout, make_discount, fields, detail):
    make_discount(code="NOPE10", **fields)

    res = client.post(
        f"{API}/checkout/sessions/{checkout['id']}/coupon",
        json={"code": "NOPE10"},
        headers=auth_headers,
    )

    assert res.status_code == 400
    assert res.json()["detail"] == detail


# ---- order + payment ----


def place(client, auth_headers, checkout, **body):
    return client.post(
        f"{API}/checkout/sessions/{checkout['id']}/orders", json=body, headers=auth_headers
    )


def test_place_order_with_typed_address(client, session, auth_headers, checkout, address_payload):
    res = place(client, auth_headers, checkout, address=address_payload)

    assert res.status_code == 201
    data = res.json()
    order = data["order"]
    assert order["status"] == "placed"
    assert order["payment_stage"] == "idle"
    assert order["total"] == 999.63
    assert order["shipping_zip_code"] == "400001"
    assert order["items"][0]["product_price"] == 1000
    assert data["payment"]["upi_link"] == (
        f"upi://pay?pa=hrejuh%40upi&pn=Cigarro&am=999.63"
        f"&tn=Order%20{order['transaction_id']}&cu=INR"
    )

    # typed address saved to the address book once
    assert len(session.exec(select(SavedAddress)).all()) == 1
    # cart is kept until payment is verified
    assert len(session.exec(select(CartItem)).all()) == 1

    again = place(client, auth_headers, checkout, address=address_payload)
    assert again.status_code == 409


def test_place_order_with_saved_address(client, auth_headers, checkout, address_payload):
    saved = client.post(f"{API}/addresses", json=address_payload, headers=auth_headers).json()

    res = place(client, auth_headers, checkout, address_id=saved["id"])

    assert res.status_code == 201
    assert res.json()["order"]["shipping_name"] == "Ravi Kumar"


def test_place_order_needs_exactly_one_address(client, auth_headers, checkout, address_payload):
    assert place(client, auth_headers, checkout).status_code == 422


def test_full_payment_flow(client, session, auth_headers, checkout, address_payload, make_discount, webhook):
    discount = make_discount(code="SAVE10", value=10)
    client.post(
        f"{API}/checkout/sessions/{checkout['id']}/coupon",
        json={"code": "SAVE10"},
        headers=auth_headers,
    )
    order = place(client, auth_headers, checkout, address=address_payload).json()["order"]
    assert order["discount_code"] == "SAVE10"

    confirm = client.post(f"{API}/orders/me/{order['id']}/payment/confirm", headers=auth_headers)

    assert confirm.status_code == 202
    assert confirm.json()["payment_stage"] == "processing"

    session.expire_all()
    status = client.get(f"{API}/orders/me/{order['id']}/payment/status", headers=auth_headers).json()
    assert status["payment_stage"] == "confirmed"
    assert status["payment_verified"] == "YES"
    assert status["redirect_to"] is None

    session.expire_all()
    assert session.exec(select(CartItem)).all() == []
    assert session.get(Discount, discount.id).usage_count == 1


def test_unverified_payment_is_pending(client, session, auth_headers, checkout, address_payload, webhook):
    webhook["verified"] = False
    order = place(client, auth_headers, checkout, address=address_payload).json()["order"]

    client.post(f"{API}/orders/me/{order['id']}/payment/confirm", headers=auth_headers)
    session.expire_all()
    status = client.get(f"{API}/orders/me/{order['id']}/payment/status", headers=auth_headers).json()

    assert status["payment_stage"] == "pending"
    assert status["redirect_to"] == "/orders"


# ---- admin ----


def test_admin_status_transitions(client, session, auth_headers, admin_headers, checkout, address_payload):
    order = place(client, auth_headers, checkout, address=address_payload).json()["order"]
    url = f"{API}/orders/{order['id']}/status"

    assert client.patch(url, json={"status": "shipped"}, headers=admin_headers).status_code == 400
    for step in ("processing", "shipped", "delivered"):
        res = client.patch(url, json={"status": step}, headers=admin_headers)
        assert res.status_code == 200
        assert res.json()["status"] == step
    assert client.patch(url, json={"status": "cancelled"}, headers=admin_headers).status_code == 400


def test_admin_lists_pending_payments(client, session, admin_headers, auth_headers, checkout, address_payload):
    order = place(client, auth_headers, checkout, address=address_payload).json()["order"]
    row = session.get(Order, uuid.UUID(order["id"]))
    row.payment_stage = "pending"
    session.add(row)
    session.commit()

    listed = client.get(f"{API}/orders?payment_stage=pending", headers=admin_headers).json()

    assert [o["id"] for o in listed] == [order["id"]]
    assert client.get(f"{API}/orders", headers=auth_headers).status_code == 403


def test_customer_sees_own_orders(client, auth_headers, checkout, address_payload):
    order = place(client, auth_headers, checkout, address=address_payload).json()["order"]

    mine = client.get(f"{API}/orders/me", headers=auth_headers).json()
    detail = client.get(f"{API}/orders/me/{order['id']}", headers=auth_headers).json()

    assert [o["id"] for o in mine] == [order["id"]]
    assert detail["items"][0]["quantity"] == 1
