"""Request helpers shared by the API tests."""

import sqlite3

from catalog_api.app.core.db import get_database_path

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


def auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def register(client, name="Asha Verma", email="asha@example.com", phone="9876543210", password="secret1") -> dict:
    response = client.post(
        "/api/v1/auth/register",
        json={"name": name, "email": email, "phone": phone, "password": password},
    )
    assert response.status_code == 201, response.text
    return response.json()


def promote_to_admin(user_id: int) -> None:
    conn = sqlite3.connect(get_database_path())
    try:
        conn.execute("UPDATE users SET role = 'admin' WHERE id = ?", (user_id,))
        conn.commit()
    finally:
        conn.close()


def product_form(**overrides) -> dict:
    form = {
        "name": "ThinkPad T480",
        "description": "Business laptop with 16GB RAM",
        "category": "Laptops",
        "condition": "Excellent",
        "type": "Second Hand",
        "price": "25000",
        "originalPrice": "40000",
        "discount": "37",
        "stock": "3",
        "tags": "Laptop, Lenovo",
    }
    form.update(overrides)
    return form


def image_files(count: int = 1, content_type: str = "image/png") -> list:
    return [("images", (f"photo{i}.png", PNG_BYTES, content_type)) for i in range(count)]


def create_product(client, token: str, images: int = 1, **overrides) -> dict:
    response = client.post(
        "/api/v1/products/",
        data=product_form(**overrides),
        files=image_files(images),
        headers=auth(token),
    )
    assert response.status_code == 201, response.text
    return response.json()["product"]
