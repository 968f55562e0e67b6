import asyncio
import json
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from catalog_api.app.core.config import settings
from catalog_api.app.services.product_service import ProductService

from .helpers import auth, create_product, image_files, product_form


def test_create_requires_admin(client, user):
    response = client.post("/api/v1/products/", data=product_form(), files=image_files())
    assert response.status_code == 401
    response = client.post(
        "/api/v1/products/", data=product_form(), files=image_files(), headers=auth(user["token"])
    )
    assert response.status_code == 403


def test_create_product(client, admin):
    product = create_product(client, admin["token"], images=2)
    assert product["name"] == "ThinkPad T480"
    assert product["type"] == "Second Hand"
    assert product["originalPrice"] == 40000
    assert product["tags"] == ["laptop", "lenovo"]
    assert product["availability"] == "Available"
    assert product["isActive"] is True
    assert product["views"] == 0 and product["likes"] == 0
    assert product["createdBy"] == admin["user"]["id"]
    assert len(product["images"]) == len(product["imagePublicIds"]) == 2

    # Stored locally and served under /uploads.
    response = client.get(product["images"][0])
    assert response.status_code == 200


def test_create_product_structured_fields(client, admin):
    product = create_product(
        client,
        admin["token"],
        features=["16GB RAM", "512GB SSD"],
        specifications=json.dumps({"cpu": "i5-8350U", "ram": "16GB"}),
        tags='["Business", "business", " Lenovo "]',
    )
    assert product["features"] == ["16GB RAM", "512GB SSD"]
    assert product["specifications"] == {"cpu": "i5-8350U", "ram": "16GB"}
    assert product["tags"] == ["business", "lenovo"]


def test_create_product_without_images(client, admin):
    response = client.post("/api/v1/products/", data=product_form(), headers=auth(admin["token"]))
    assert response.status_code == 400
    assert response.json()["message"] == "At least one image is required"


def test_create_product_invalid_fields(client, admin):
    response = client.post(
        "/api/v1/products/",
        data=product_form(category="Phones", discount="150"),
        files=image_files(),
        headers=auth(admin["token"]),
    )
    assert response.status_code == 400
    body = response.json()
    assert body["message"] == "Validation failed"
    assert {error["field"] for error in body["errors"]} == {"category", "discount"}


def test_create_product_rejects_bad_uploads(client, admin):
    headers = auth(admin["token"])
    response = client.post("/api/v1/products/", data=product_form(), files=image_files(6), headers=headers)
    assert response.status_code == 400
    assert response.json()["errors"][0]["field"] == "images"

    response = client.post(
        "/api/v1/products/", data=product_form(), files=image_files(1, "text/plain"), headers=headers
    )
    assert response.status_code == 400


def test_get_product(client, admin):
    product = create_product(client, admin["token"])
    response = client.get(f"/api/v1/products/{product['id']}")
    assert response.status_code == 200
    assert response.json()["product"]["id"] == product["id"]

    assert client.get("/api/v1/products/9999").status_code == 404
    response = client.get("/api/v1/products/xyz")
    assert response.status_code == 400
    assert response.json()["message"] == "Invalid product ID"


def test_list_hides_soft_deleted(client, admin):
    token = admin["token"]
    kept = create_product(client, token, name="Kept laptop")
    removed = create_product(client, token, name="Removed laptop")
    response = client.delete(f"/api/v1/products/{removed['id']}", headers=auth(token))
    assert response.status_code == 200
    assert response.json() == {"message": "Product deleted successfully"}

    listing = client.get("/api/v1/products/").json()
    assert [p["id"] for p in listing["products"]] == [kept["id"]]
    assert listing["pagination"]["totalItems"] == 1

    hidden = client.get("/api/v1/products/", params={"isActive": "false"}).json()
    assert [p["id"] for p in hidden["products"]] == [removed["id"]]
    assert hidden["products"][0]["availability"] == "Discontinued"

    # Direct reads still find soft-deleted products.
    assert client.get(f"/api/v1/products/{removed['id']}").json()["product"]["isActive"] is False


def test_list_filters_and_sort(client, admin):
    token = admin["token"]
    laptop = create_product(client, token, price="25000")
    monitor = create_product(
        client, token, name="Dell 24 inch monitor", category="Monitors", price="9000", tags="display,dell"
    )
    cctv = create_product(
        client, token, name="CCTV camera kit", category="Security", price="15000", condition="New", tags="camera"
    )

    def ids(**params):
        return [p["id"] for p in client.get("/api/v1/products/", params=params).json()["products"]]

    assert ids(category="Monitors") == [monitor["id"]]
    assert ids(minPrice=10000, maxPrice=20000) == [cctv["id"]]
    assert ids(search="thinkpad") == [laptop["id"]]
    assert set(ids(search="camera dell")) == {monitor["id"], cctv["id"]}
    assert ids(tags="DELL,unknown") == [monitor["id"]]
    assert ids(condition="New") == [cctv["id"]]
    assert ids(sort="price") == [monitor["id"], cctv["id"], laptop["id"]]
    assert ids(sort="-price") == [laptop["id"], cctv["id"], monitor["id"]]
    # Newest first by default, and for unknown sort fields.
    assert ids() == [cctv["id"], monitor["id"], laptop["id"]]
    assert ids(sort="secret") == ids()


def test_list_rejects_bad_filters(client):
    assert client.get("/api/v1/products/", params={"category": "Phones"}).status_code == 400
    assert client.get("/api/v1/products/", params={"minPrice": -1}).status_code == 400


def test_list_pagination(client, admin):
    for i in range(5):
        create_product(client, admin["token"], name=f"Laptop {i}")
    body = client.get("/api/v1/products/", params={"page": 2, "limit": 2}).json()
    assert [p["name"] for p in body["products"]] == ["Laptop 2", "Laptop 1"]
    assert body["pagination"] == {
        "currentPage": 2,
        "totalPages": 3,
        "totalItems": 5,
        "hasNextPage": True,
        "hasPrevPage": True,
    }


def test_list_far_page_is_empty(client, admin):
    create_product(client, admin["token"])
    response = client.get("/api/v1/products/", params={"page": 10**17, "limit": 100})
    assert response.status_code == 200
    body = response.json()
    assert body["products"] == []
    assert body["pagination"]["hasNextPage"] is False


def test_list_field_projection(client, admin):
    create_product(client, admin["token"])
    body = client.get("/api/v1/products/", params={"fields": "name,price,bogus"}).json()
    assert set(body["products"][0]) == {"id", "name", "price"}


def test_update_product_json(client, admin):
    product = create_product(client, admin["token"])
    response = client.put(
        f"/api/v1/products/{product['id']}",
        json={"price": 21000, "availability": "Out of Stock", "tags": "Sale", "views": 500},
        headers=auth(admin["token"]),
    )
    assert response.status_code == 200
    updated = response.json()["product"]
    assert updated["price"] == 21000
    assert updated["availability"] == "Out of Stock"
    assert updated["tags"] == ["sale"]
    assert updated["views"] == 0
    assert updated["images"] == product["images"]


def test_update_product_images(client, admin):
    token = admin["token"]
    product = create_product(client, token, images=2)
    first_id, second_id = product["imagePublicIds"]
    response = client.put(
        f"/api/v1/products/{product['id']}",
        data={"removePublicIds": f"{first_id},products/not-mine"},
        files=image_files(1),
        headers=auth(token),
    )
    assert response.status_code == 200
    updated = response.json()["product"]
    assert updated["imagePublicIds"][0] == second_id
    assert first_id not in updated["imagePublicIds"]
    assert len(updated["images"]) == len(updated["imagePublicIds"]) == 2
    assert updated["images"][0] == product["images"][1]
    assert not list((Path(settings.upload_dir) / "products").glob(first_id.split("/")[1] + ".*"))


def test_update_ignores_storage_failures_on_removal(client, admin):
    token = admin["token"]
    product = create_product(client, token, images=2)
    public_id = product["imagePublicIds"][0]
    for path in (Path(settings.upload_dir) / "products").glob(public_id.split("/")[1] + ".*"):
        path.unlink()

    response = client.put(
        f"/api/v1/products/{product['id']}",
        data={"removePublicIds": public_id},
        headers=auth(token),
    )
    assert response.status_code == 200
    assert response.json()["product"]["imagePublicIds"] == product["imagePublicIds"][1:]


def test_update_missing_product(client, admin):
    response = client.put("/api/v1/products/9999", json={"price": 1}, headers=auth(admin["token"]))
    assert response.status_code == 404
    assert response.json()["message"] == "Product not found"


def test_view_and_like_counters(client, admin, user):
    product = create_product(client, admin["token"])
    url = f"/api/v1/products/{product['id']}"
    assert client.patch(f"{url}/view").json() == {"views": 1}
    assert client.patch(f"{url}/view", headers=auth(user["token"])).json() == {"views": 2}
    assert client.post(f"{url}/like").json() == {"likes": 1}
    assert client.post(f"{url}/like").json() == {"likes": 2}
    assert client.patch("/api/v1/products/9999/view").status_code == 404


def test_concurrent_increments_are_not_lost(client, admin):
    product = create_product(client, admin["token"])

    def view(_):
        return asyncio.run(ProductService.increment_view(product["id"]))

    with ThreadPoolExecutor(max_workers=8) as pool:
        counts = list(pool.map(view, range(40)))

    assert sorted(counts) == list(range(1, 41))
    assert client.get(f"/api/v1/products/{product['id']}").json()["product"]["views"] == 40
