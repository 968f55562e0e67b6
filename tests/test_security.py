import pytest

from catalog_api.app.core.errors import InvalidToken
from catalog_api.app.core.security import (
    create_access_token,
    decode_access_token,
    hash_password,
    verify_password,
    verify_token,
)

from .helpers import auth


def test_token_round_trip():
    token = create_access_token(42)
    assert verify_token(token) == 42
    assert decode_access_token(token)["sub"] == "42"


def test_tampered_token_is_rejected():
    header, payload, signature = create_access_token(7).split(".")
    forged = create_access_token(8).split(".")[1]
    with pytest.raises(InvalidToken):
        verify_token(f"{header}.{forged}.{signature}")


def test_expired_token_is_rejected():
    token = create_access_token(7, expires_delta=-10)
    assert decode_access_token(token) is None


@pytest.mark.parametrize("token", ["", "abc", "a.b.c", "a.b"])
def test_malformed_token_is_rejected(token):
    assert decode_access_token(token) is None


def test_password_hashing():
    hashed = hash_password("secret1")
    assert hashed != hash_password("secret1")  # salted
    assert verify_password("secret1", hashed)
    assert not verify_password("secret2", hashed)
    assert not verify_password("secret1", "not-a-hash")


def test_missing_token(client):
    response = client.get("/api/v1/auth/profile")
    assert response.status_code == 401
    assert response.json()["message"] == "Access token required"


def test_invalid_token(client):
    response = client.get("/api/v1/auth/profile", headers=auth("garbage"))
    assert response.status_code == 401
    assert response.json()["message"] == "Invalid or expired token"


def test_token_for_deleted_user(client):
    response = client.get("/api/v1/auth/profile", headers=auth(create_access_token(999)))
    assert response.status_code == 401
    assert response.json()["message"] == "User no longer exists"


def test_deactivated_user_is_locked_out(client, user, admin):
    response = client.delete(f"/api/v1/users/{user['user']['id']}", headers=auth(admin["token"]))
    assert response.status_code == 200
    response = client.get("/api/v1/auth/profile", headers=auth(user["token"]))
    assert response.status_code == 401
    assert response.json()["message"] == "Account is deactivated"


def test_admin_gate(client, user):
    response = client.get("/api/v1/users/", headers=auth(user["token"]))
    assert response.status_code == 403
    assert response.json()["message"] == "Admin access required"


def test_optional_auth_ignores_bad_token(client, admin):
    from .helpers import create_product

    product = create_product(client, admin["token"])
    response = client.patch(f"/api/v1/products/{product['id']}/view", headers=auth("garbage"))
    assert response.status_code == 200
    assert response.json() == {"views": 1}
