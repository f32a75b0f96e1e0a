import pytest
from fastapi.testclient import TestClient

from context import AppContext
from main import create_app
from storage import MemoryStorage


@pytest.fixture
def ctx():
    return AppContext(storage=MemoryStorage(), api_delay=(0, 0), login_delay=0, search_delay=0)


@pytest.fixture
def client(ctx):
    with TestClient(create_app(ctx)) as test_client:
        yield test_client


def login(client, email):
    response = client.post("/auth/token", json={"email": email, "password": "secret"})
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


def test_root(client):
    assert client.get("/").json() == {"message": "Supermarket Management API"}


def test_diagnostics(client):
    info = client.get("/test").json()
    assert info["collections"]["product"] == 14
    assert info["session"] == "Not Authenticated"


def test_login_with_form(client):
    response = client.post("/auth/token", data={"username": "Admin@Supermarket.com", "password": "x"})
    assert response.status_code == 200
    assert response.json()["token_type"] == "bearer"


def test_login_rejects_bad_credentials(client):
    assert client.post("/auth/token", json={"email": "ghost@supermarket.com", "password": "x"}).status_code == 401
    assert client.post("/auth/token", json={"email": "admin@supermarket.com", "password": ""}).status_code == 401
    assert client.post("/auth/token", json={"password": "x"}).status_code == 422


def test_requires_token(client):
    assert client.get("/products").status_code == 401
    assert client.get("/products", headers={"Authorization": "Bearer junk"}).status_code == 401


def test_logout_ends_session(client, ctx):
    headers = login(client, "staff@supermarket.com")
    assert client.get("/auth/me", headers=headers).json()["role"] == "staff"

    assert client.post("/auth/logout", headers=headers).status_code == 200
    assert not ctx.auth_service.is_authenticated()
    assert client.get("/auth/me", headers=headers).status_code == 401


def test_roles_are_enforced(client):
    staff = login(client, "staff@supermarket.com")
    assert client.get("/cart", headers=staff).status_code == 403
    assert client.get("/ai/forecasts", headers=staff).status_code == 403
    assert client.delete("/products/1", headers=staff).status_code == 403
    assert client.get("/dashboard/stats", headers=staff).status_code == 200


def test_product_listing_filters(client):
    headers = login(client, "staff@supermarket.com")

    body = client.get("/products", params={"search": "milk", "category": "Dairy"}, headers=headers).json()
    assert body["success"] is True
    assert [p["id"] for p in body["data"]] == ["1", "2"]
    assert "reorderLevel" in body["data"][0]

    out = client.get("/products", params={"stock_status": "outOfStock"}, headers=headers).json()
    assert [p["id"] for p in out["data"]] == ["4"]

    assert client.get("/products", params={"stock_status": "bogus"}, headers=headers).status_code == 422
    assert client.get("/products/categories", headers=headers).json()["data"][0] == "Dairy"


def test_missing_product_returns_envelope(client):
    headers = login(client, "staff@supermarket.com")
    response = client.get("/products/999", headers=headers)
    assert response.status_code == 404
    assert response.json() == {"success": False, "error": "Product not found"}


def test_admin_manages_products(client):
    headers = login(client, "admin@supermarket.com")
    created = client.post("/products", headers=headers, json={
        "name": "Rye Bread", "category": "Bakery", "price": 3.5, "stock": 12, "reorderLevel": 4, "supplier": "Baker's Best",
    }).json()
    assert created["message"] == "Product added successfully"
    product_id = created["data"]["id"]

    updated = client.put(f"/products/{product_id}", headers=headers, json={"price": 3.75}).json()
    assert updated["data"]["price"] == 3.75

    assert client.delete(f"/products/{product_id}", headers=headers).json() == {
        "success": True, "message": "Product deleted successfully",
    }
    assert client.get(f"/products/{product_id}", headers=headers).status_code == 404


def test_forecasts_for_admin(client):
    headers = login(client, "admin@supermarket.com")
    assert len(client.get("/ai/forecasts", headers=headers).json()["data"]) == 6
    assert client.get("/ai/forecast/3", headers=headers).json() == {"success": False, "error": "Forecast not found"}


def test_billing_flow(client, ctx):
    headers = login(client, "cashier@supermarket.com")

    found = client.get("/billing/search", params={"q": "sourdough"}, headers=headers).json()
    assert [p["id"] for p in found["data"]] == ["5"]

    cart = client.post("/cart/items", json={"productId": "5", "quantity": 2}, headers=headers).json()
    assert cart["totalItems"] == 2
    assert cart["totalAmount"] == pytest.approx(8.5)

    cart = client.post("/cart/items", json={"productId": "9"}, headers=headers).json()
    cart = client.put("/cart/items/9", json={"quantity": 3}, headers=headers).json()
    assert cart["totalItems"] == 5

    too_many = client.put("/cart/items/9", json={"quantity": 1000}, headers=headers)
    assert too_many.status_code == 400
    assert too_many.json()["detail"] == "Only 60 units available"

    out_of_stock = client.post("/cart/items", json={"productId": "4"}, headers=headers)
    assert out_of_stock.status_code == 400

    sale = client.post("/cart/checkout", headers=headers).json()
    assert sale["success"] is True
    assert sale["data"]["totalAmount"] == pytest.approx(8.5 + 3 * 3.29)
    assert sale["data"]["cashierName"] == "Cashier User"

    assert client.get("/cart", headers=headers).json()["items"] == []
    assert ctx.db.find_one("product", {"id": "5"}).stock == 20
    assert ctx.db.find_one("product", {"id": "9"}).stock == 57

    assert client.post("/cart/checkout", headers=headers).status_code == 400


def test_cart_removal_routes(client):
    headers = login(client, "admin@supermarket.com")
    client.post("/cart/items", json={"productId": "1"}, headers=headers)
    client.post("/cart/items", json={"productId": "3"}, headers=headers)

    cart = client.delete("/cart/items/1", headers=headers).json()
    assert [i["product"]["id"] for i in cart["items"]] == ["3"]

    cart = client.delete("/cart", headers=headers).json()
    assert cart == {"items": [], "totalItems": 0, "totalAmount": 0}


def test_unknown_product_cannot_be_added(client):
    headers = login(client, "cashier@supermarket.com")
    response = client.post("/cart/items", json={"productId": "404"}, headers=headers)
    assert response.status_code == 404
