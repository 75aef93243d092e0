import uuid

from app.models.user import User

API = "/api/v1/cart"


def test_first_request_provisions_profile(client, session, token_for):
    user_id = uuid.uuid4()
    token = token_for(user_id, "new.buyer@example.com")

    res = client.get(API, headers={"Authorization": f"Bearer {token}"})

    assert res.status_code == 200
    user = session.get(User, user_id)
    assert user.name == "Test Customer"
    assert user.role == "user"


def test_invalid_token_is_rejected(client):
    res = client.get(API, headers={"Authorization": "Bearer not-a-jwt"})

    assert res.status_code == 401
    assert res.json()["detail"] == "Invalid or expired token"


def test_admins_cannot_shop(client, admin_headers):
    assert client.get(API, headers=admin_headers).status_code == 403
