"""Login, token Bearer y dependencias de sesión"""
import pytest

from inventory_api.core.auth.dependencies import get_optional_user
from inventory_api.core.auth.security import decode_token, get_password_hash
from inventory_api.main import app
from inventory_api.shared.database.models import User


@pytest.fixture
def account(db_session, seed):
    user = db_session.query(User).filter(User.id == seed.encargado.id).one()
    user.password_hash = get_password_hash("secreto123")
    db_session.commit()
    return user


def test_login_returns_token(client, account):
    response = client.post("/api/v1/auth/login", json={"email": " Encargado@example.com ", "password": "secreto123"})

    assert response.status_code == 200
    body = response.json()
    assert body["token_type"] == "bearer"
    assert body["user"]["role"] == "encargado"
    assert decode_token(body["access_token"])["sub"] == account.id


def test_login_wrong_password(client, account):
    response = client.post("/api/v1/auth/login", json={"email": "encargado@example.com", "password": "nope"})

    assert response.status_code == 401
    assert response.json() == {"success": False, "message": "Invalid email or password"}


def test_bearer_token_resolves_user(client, account):
    token = client.post(
        "/api/v1/auth/login", json={"email": "encargado@example.com", "password": "secreto123"}
    ).json()["access_token"]
    app.dependency_overrides.pop(get_optional_user)

    response = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 200
    assert response.json()["warehouse_id"] == account.warehouse_id

    response = client.get("/api/v1/auth/me", headers={"Authorization": "Bearer invalid"})
    assert response.status_code == 401
    assert response.json()["message"] == "Invalid or expired token"


def test_me_requires_authentication(client, seed, session_user):
    session_user.set(None)
    response = client.get("/api/v1/auth/me")
    assert response.status_code == 401
    assert response.json()["message"] == "Authentication required"


def test_health(client):
    body = client.get("/api/v1/health").json()
    assert body["status"] == "healthy"
    assert "merma" in body["modules"]


@pytest.mark.parametrize("method,path", [
    ("get", "/api/v1/product-stock/all"),
    ("get", "/api/v1/users/all"),
    ("get", "/api/v1/warehouse/all"),
    ("post", "/api/v1/product-stock/update-is-empty"),
    ("post", "/api/v1/warehouse-transfers/create"),
    ("post", "/api/v1/employee/create"),
])
def test_module_routes_require_session(client, seed, session_user, method, path):
    session_user.set(None)
    response = getattr(client, method)(path, json={}) if method == "post" else client.get(path)

    assert response.status_code == 401
    assert response.json() == {"success": False, "message": "Authentication required"}