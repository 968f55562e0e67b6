from catalog_api.app.services import user_service

from .helpers import auth, promote_to_admin, register


def test_register_returns_token_and_public_user(client):
    body = register(client, email="Asha@Example.com")
    assert body["message"] == "User registered successfully"
    assert body["token"]
    assert body["user"]["email"] == "asha@example.com"
    assert body["user"]["role"] == "user"
    assert "password" not in body["user"]


def test_register_duplicate_email_and_phone(client, user):
    response = client.post(
        "/api/v1/auth/register",
        json={"name": "Someone", "email": "asha@example.com", "phone": "9000000001", "password": "secret1"},
    )
    assert response.status_code == 400
    assert response.json() == {"success": False, "message": "Email already registered"}

    response = client.post(
        "/api/v1/auth/register",
        json={"name": "Someone", "email": "new@example.com", "phone": "9876543210", "password": "secret1"},
    )
    assert response.status_code == 400
    assert response.json()["message"] == "Phone number already registered"


def test_register_validation_errors(client):
    response = client.post(
        "/api/v1/auth/register",
        json={"name": "A", "email": "not-an-email", "phone": "12345", "password": "123"},
    )
    assert response.status_code == 400
    body = response.json()
    assert body["message"] == "Validation failed"
    fields = {error["field"] for error in body["errors"]}
    assert {"name", "email", "phone", "password"} <= fields


def test_login(client, user):
    response = client.post("/api/v1/auth/login", json={"email": "ASHA@example.com", "password": "secret1"})
    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Login successful"
    assert body["user"]["id"] == user["user"]["id"]

    profile = client.get("/api/v1/auth/profile", headers=auth(body["token"])).json()
    assert profile["user"]["lastLogin"] is not None


def test_login_wrong_password(client, user):
    response = client.post("/api/v1/auth/login", json={"email": "asha@example.com", "password": "wrong!"})
    assert response.status_code == 401
    assert response.json()["message"] == "Invalid credentials"


def test_login_unknown_email(client):
    response = client.post("/api/v1/auth/login", json={"email": "ghost@example.com", "password": "secret1"})
    assert response.status_code == 401
    assert response.json()["message"] == "Invalid credentials"


def test_admin_login_requires_admin_role(client, user):
    response = client.post("/api/v1/auth/admin-login", json={"email": "asha@example.com", "password": "secret1"})
    assert response.status_code == 401
    assert response.json()["message"] == "Invalid admin credentials"

    promote_to_admin(user["user"]["id"])
    response = client.post("/api/v1/auth/admin-login", json={"email": "asha@example.com", "password": "secret1"})
    assert response.status_code == 200
    assert response.json()["user"]["role"] == "admin"


def test_profile_update(client, user, other_user):
    headers = auth(user["token"])
    response = client.put("/api/v1/auth/profile", json={"name": "  Asha V  "}, headers=headers)
    assert response.status_code == 200
    assert response.json()["user"]["name"] == "Asha V"

    response = client.put("/api/v1/auth/profile", json={"phone": "9123456780"}, headers=headers)
    assert response.status_code == 400
    assert response.json()["message"] == "Phone number already in use"


def test_profile_phone_race_is_a_conflict(client, user, other_user, monkeypatch):
    # Another account claims the phone between the check and the write.
    monkeypatch.setattr(user_service, "_holder_of", lambda *args, **kwargs: False)
    response = client.put("/api/v1/auth/profile", json={"phone": "9123456780"}, headers=auth(user["token"]))
    assert response.status_code == 400
    assert response.json() == {"success": False, "message": "Phone number already in use"}


def test_profile_update_ignores_role(client, user):
    response = client.put(
        "/api/v1/auth/profile", json={"name": "Asha", "role": "admin"}, headers=auth(user["token"])
    )
    assert response.status_code == 200
    assert response.json()["user"]["role"] == "user"


def test_change_password(client, user):
    headers = auth(user["token"])
    response = client.post(
        "/api/v1/auth/change-password",
        json={"currentPassword": "wrong!", "newPassword": "secret2"},
        headers=headers,
    )
    assert response.status_code == 400
    assert response.json()["message"] == "Current password is incorrect"

    response = client.post(
        "/api/v1/auth/change-password",
        json={"currentPassword": "secret1", "newPassword": "secret2"},
        headers=headers,
    )
    assert response.status_code == 200
    login = client.post("/api/v1/auth/login", json={"email": "asha@example.com", "password": "secret2"})
    assert login.status_code == 200


def test_logout(client, user):
    response = client.post("/api/v1/auth/logout", headers=auth(user["token"]))
    assert response.status_code == 200
    assert response.json() == {"message": "Logout successful"}
