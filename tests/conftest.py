import os
import uuid
from datetime import datetime, timedelta, timezone

# Settings are read at import time; configure before importing the app.
os.environ["SUPABASE_URL"] = "https://example.supabase.co"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SUPABASE_JWT_SECRET"] = "test-jwt-secret"
os.environ["PAYMENT_VERIFY_DELAY_SECONDS"] = "0"
os.environ["PAYMENT_WEBHOOK_URL"] = "http://webhook.test/payment-email-webhook"
os.environ["PAYMENT_WEBHOOK_SECRET"] = "webhook-secret"
os.environ["UPI_PAYEE_VPA"] = "hrejuh@upi"
os.environ["UPI_PAYEE_NAME"] = "Cigarro"

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from app.database import get_session
from app.main import app
from app.models.address import PincodeLookup
from app.models.cart import CartItem
from app.models.discount import Discount
from app.models.product import Combo, Product, ProductVariant
from app.models.user import User


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def client(session):
    def _get_session():
        yield session

    app.dependency_overrides[get_session] = _get_session
    yield TestClient(app)
    app.dependency_overrides.clear()


def make_token(user_id: uuid.UUID, email: str) -> str:
    claims = {
        "sub": str(user_id),
        "email": email,
        "exp": datetime.now(timezone.utc) + timedelta(hours=1),
        "user_metadata": {"full_name": "Test Customer"},
    }
    return jwt.encode(claims, os.environ["SUPABASE_JWT_SECRET"], algorithm="HS256")


@pytest.fixture
def customer(session) -> User:
    user = User(id=uuid.uuid4(), email="ravi@example.com", name="Ravi Kumar", role="user")
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


@pytest.fixture
def auth_headers(customer) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(customer.id, customer.email)}"}


@pytest.fixture
def admin_headers(session) -> dict[str, str]:
    admin = User(id=uuid.uuid4(), email="admin@example.com", name="Admin", role="admin")
    session.add(admin)
    session.commit()
    return {"Authorization": f"Bearer {make_token(admin.id, admin.email)}"}


@pytest.fixture
def product(session) -> Product:
    p = Product(name="Marlboro Gold", brand="Marlboro", price=1000.0, image_url="gold.png")
    session.add(p)
    session.commit()
    session.refresh(p)
    return p


@pytest.fixture
def variant(session, product) -> ProductVariant:
    v = ProductVariant(product_id=product.id, variant_name="Carton", variant_price=4500.0)
    session.add(v)
    session.commit()
    session.refresh(v)
    return v


@pytest.fixture
def combo(session) -> Combo:
    c = Combo(name="Smoker's Kit", combo_price=2500.0)
    session.add(c)
    session.commit()
    session.refresh(c)
    return c


@pytest.fixture
def add_line(session):
    """Put a line straight into a user's cart."""

    def _add(user: User, product: Product, quantity: int = 1, **extra) -> CartItem:
        item = CartItem(
            user_id=user.id,
            product_id=product.id,
            quantity=quantity,
            price=product.price,
            product_name=product.name,
            product_brand=product.brand,
            **extra,
        )
        session.add(item)
        session.commit()
        session.refresh(item)
        return item

    return _add


@pytest.fixture
def make_discount(session):
    def _make(**fields) -> Discount:
        fields.setdefault("name", "Offer")
        fields.setdefault("type", "percentage")
        fields.setdefault("value", 10.0)
        discount = Discount(**fields)
        session.add(discount)
        session.commit()
        session.refresh(discount)
        return discount

    return _make


@pytest.fixture
def mumbai_pincode(session) -> PincodeLookup:
    row = PincodeLookup(
        pincode="400001",
        city="Mumbai",
        state="Maharashtra",
        district="Mumbai",
        region="West",
    )
    session.add(row)
    session.commit()
    return row


@pytest.fixture
def address_payload() -> dict:
    return {
        "full_name": "Ravi Kumar",
        "phone": "9876543210",
        "address": "12 Marine Drive, Churchgate",
        "pincode": "400001",
        "city": "Mumbai",
        "state": "Maharashtra",
    }


@pytest.fixture
def token_for():
    return make_token
