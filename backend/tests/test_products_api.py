from conftest import make_product
from models.product import Product
from models.stock import StockMovement


def product_payload(**overrides):
    data = {
        "code": "new001",
        "name": "Wireless Mouse",
        "category": "Electronics",
        "quantity": 12,
        "minStock": 5,
        "costPrice": 8.5,
        "salePrice": 15.0,
        "supplier": "Acme",
        "barcode": "4006381333931",
        "tags": ["office", "office", "usb"],
    }
    data.update(overrides)
    return data


def test_list_requires_token(client):
    r = client.get("/products")
    assert r.status_code == 401
    body = r.json()
    assert body["success"] is False
    assert body["error"] == "auth_error"


def test_invalid_token_rejected(client):
    r = client.get("/products", headers={"Authorization": "Bearer nonsense"})
    assert r.status_code == 401
    assert r.json()["message"] == "Invalid token"


def test_create_product(client, admin_headers):
    r = client.post("/products", json=product_payload(), headers=admin_headers)
    assert r.status_code == 201, r.text
    data = r.json()["data"]
    assert data["code"] == "NEW001"
    assert data["totalValue"] == 180.0
    assert data["stockStatus"] == "in-stock"
    assert data["tags"] == ["office", "usb"]
    assert data["profitMargin"] == 76.47
    assert "passwordHash" not in data


def test_create_requires_admin(client, user_headers):
    r = client.post("/products", json=product_payload(), headers=user_headers)
    assert r.status_code == 403
    assert r.json()["error"] == "authorization_error"


def test_create_validation_errors(client, admin_headers):
    r = client.post("/products", json=product_payload(code="x!", salePrice=1.0), headers=admin_headers)
    assert r.status_code == 400
    body = r.json()
    assert body["error"] == "validation_error"
    assert any(e.startswith("code") for e in body["errors"])

    r = client.post("/products", json=product_payload(salePrice=5.0), headers=admin_headers)
    assert r.status_code == 400
    assert "salePrice cannot be lower than costPrice" in " ".join(r.json()["errors"])

    r = client.post("/products", json=product_payload(colour="red"), headers=admin_headers)
    assert r.status_code == 400


def test_duplicate_code_and_barcode(client, admin_headers):
    assert client.post("/products", json=product_payload(), headers=admin_headers).status_code == 201
    r = client.post("/products", json=product_payload(code="NEW001"), headers=admin_headers)
    assert r.status_code == 400
    assert "code: already in use" in r.json()["errors"]
    assert "barcode: already in use" in r.json()["errors"]


def test_get_product_and_not_found(client, db, user_headers):
    p = make_product(db)
    r = client.get(f"/products/{p.id}", headers=user_headers)
    assert r.status_code == 200
    assert r.json()["data"]["code"] == "PRD001"

    assert client.get("/products/9999", headers=user_headers).status_code == 404
    assert client.get("/products/abc", headers=user_headers).status_code == 400


def test_list_with_filters_and_pagination(client, db, user_headers):
    make_product(db, code="LST001", name="Out", quantity=0)
    make_product(db, code="LST002", name="Low", quantity=2)
    make_product(db, code="LST003", name="In", quantity=50)

    r = client.get("/products", params={"stockStatus": "available", "limit": 1, "sortBy": "name", "sortOrder": "asc"},
                   headers=user_headers)
    assert r.status_code == 200
    body = r.json()
    assert [p["code"] for p in body["data"]] == ["LST003"]
    assert body["pagination"] == {
        "current": 1, "pages": 2, "total": 2, "hasNext": True, "hasPrev": False, "limit": 1,
    }
    assert body["filters"]["stockStatus"] == "available"
    assert body["summary"]["lowStockCount"] == 1

    r = client.get("/products", params={"page": 9}, headers=user_headers)
    assert r.status_code == 200
    assert r.json()["data"] == []


def test_list_short_search_rejected(client, user_headers):
    r = client.get("/products", params={"search": "x"}, headers=user_headers)
    assert r.status_code == 400


def test_search_scoring(client, db, user_headers):
    make_product(db, code="CAB001", name="Cable", description="usb cable")
    make_product(db, code="CAB002", name="Cable holder")
    make_product(db, code="MSC001", name="Mouse", description="comes with a cable")

    r = client.get("/products/search", params={"q": "cable"}, headers=user_headers)
    assert r.status_code == 200
    data = r.json()["data"]
    assert [d["code"] for d in data] == ["CAB001", "CAB002", "MSC001"]
    assert [d["searchScore"] for d in data] == [12, 5, 2]

    r = client.get("/products/search", params={"q": "c"}, headers=user_headers)
    assert r.status_code == 400
    r = client.get("/products/search", params={"q": "cable", "fields": "colour"}, headers=user_headers)
    assert r.status_code == 400


def test_fuzzy_search_matches_tokens(client, db, user_headers):
    make_product(db, code="FZ0001", name="Red chair")
    make_product(db, code="FZ0002", name="Blue table")
    r = client.get("/products/search", params={"q": "chair table", "fuzzy": "true"}, headers=user_headers)
    assert sorted(d["code"] for d in r.json()["data"]) == ["FZ0001", "FZ0002"]
    r = client.get("/products/search", params={"q": "chair table"}, headers=user_headers)
    assert r.json()["data"] == []


def test_fuzzy_search_ignores_single_letter_words(client, db, user_headers):
    make_product(db, code="FZ0001", name="Red chair")
    make_product(db, code="FZ0003", name="USB cable")
    r = client.get("/products/search", params={"q": "cable e", "fuzzy": "true"}, headers=user_headers)
    assert r.status_code == 200
    assert [d["code"] for d in r.json()["data"]] == ["FZ0003"]

    r = client.get("/products/search", params={"q": "a b", "fuzzy": "true"}, headers=user_headers)
    assert r.status_code == 400


def test_partial_update(client, db, admin_headers):
    p = make_product(db, quantity=10, sale_price=10.0, cost_price=5.0)
    r = client.put(f"/products/{p.id}", json={"salePrice": 12.0, "tags": ["x"]}, headers=admin_headers)
    assert r.status_code == 200, r.text
    data = r.json()["data"]
    assert data["salePrice"] == 12.0
    assert data["totalValue"] == 120.0
    assert data["name"] == "Sample product"
    assert data["tags"] == ["x"]

    r = client.put(f"/products/{p.id}", json={"costPrice": 20.0}, headers=admin_headers)
    assert r.status_code == 400


def test_soft_delete(client, db, admin_headers):
    p = make_product(db)
    r = client.delete(f"/products/{p.id}", headers=admin_headers)
    assert r.status_code == 200
    db.expire_all()
    assert db.get(Product, p.id).status == "inactive"
    listing = client.get("/products", headers=admin_headers).json()
    assert listing["pagination"]["total"] == 0


def test_stock_adjustments(client, db, admin_headers):
    p = make_product(db, quantity=10, min_stock=5)
    url = f"/products/{p.id}/stock"

    r = client.patch(url, json={"quantity": 5, "operation": "add"}, headers=admin_headers)
    assert r.json()["data"]["quantity"] == 15

    r = client.patch(url, json={"quantity": 15, "operation": "subtract"}, headers=admin_headers)
    data = r.json()["data"]
    assert data["quantity"] == 0
    assert data["stockStatus"] == "out-of-stock"

    r = client.patch(url, json={"quantity": 1, "operation": "subtract"}, headers=admin_headers)
    assert r.status_code == 400

    r = client.patch(url, json={"quantity": 4, "operation": "set"}, headers=admin_headers)
    assert r.json()["data"]["stockStatus"] == "low-stock"

    r = client.patch(url, json={"quantity": 4, "operation": "double"}, headers=admin_headers)
    assert r.status_code == 400

    db.expire_all()
    moves = db.query(StockMovement).order_by(StockMovement.id).all()
    assert [(m.operation, m.qty, m.quantity_after) for m in moves] == [
        ("add", 5, 15), ("subtract", -15, 0), ("set", 4, 4),
    ]


def test_public_categories_and_brands(client, db):
    make_product(db, code="BR0001", supplier="Zeta", category="Books")
    make_product(db, code="BR0002", supplier="Alpha")
    make_product(db, code="BR0003", supplier="")

    r = client.get("/products/categories")
    assert r.status_code == 200
    cats = {c["category"]: c["count"] for c in r.json()["data"]["categories"]}
    assert cats["Books"] == 1
    assert cats["Toys"] == 0

    r = client.get("/products/brands")
    assert [b["name"] for b in r.json()["data"]] == ["Alpha", "Zeta"]


def test_stock_views_and_price_range(client, db, user_headers):
    make_product(db, code="SV0001", quantity=0, sale_price=20.0)
    make_product(db, code="SV0002", quantity=3, sale_price=60.0)
    make_product(db, code="SV0003", quantity=1, sale_price=30.0)

    low = client.get("/products/low-stock", headers=user_headers).json()
    assert [p["code"] for p in low["data"]] == ["SV0003", "SV0002"]
    out = client.get("/products/out-of-stock", headers=user_headers).json()
    assert [p["code"] for p in out["data"]] == ["SV0001"]

    pr = client.get("/products/price-range", headers=user_headers).json()["data"]
    assert pr["minPrice"] == 20.0
    assert pr["maxPrice"] == 60.0
    assert pr["avgPrice"] == 36.67
    assert [b["label"] for b in pr["distribution"]] == ["0-50", "50-100"]


def test_statistics(client, db, user_headers):
    make_product(db, code="ST0001", quantity=0)
    make_product(db, code="ST0002", category="Food")
    r = client.get("/products/statistics", headers=user_headers)
    data = r.json()["data"]
    assert data["overview"]["totalProducts"] == 2
    assert data["overview"]["outOfStockCount"] == 1
    assert len(data["recentProducts"]) == 2
