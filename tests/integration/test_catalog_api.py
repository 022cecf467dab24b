def _payload(**overrides):
    data = {
        "name": "Juventus 1996 Home",
        "team": "Juventus",
        "year": "1996",
        "price": "149.90",
        "condition": "Mint",
        "size": "M",
        "description": "Finale de Rome",
        "sku": "JUV-96-H-M",
        "inventory": 2,
        "featured": True,
        "images": [{"imageUrl": "https://cdn.example.com/juv96.jpg", "altText": "Face", "displayOrder": 0}],
    }
    data.update(overrides)
    return data


def test_list_products_paginates_and_filters(client, make_product):
    make_product(team="Ajax", price="80.00")
    make_product(team="Ajax", price="120.00")
    make_product(team="Porto", price="95.00")

    res = client.get("/api/products", params={"team": "Ajax", "limit": 1})
    assert res.status_code == 200
    body = res.json()
    assert body["total"] == 2
    assert body["perPage"] == 1
    assert body["totalPages"] == 2
    assert len(body["data"]) == 1

    res = client.get("/api/products", params={"minPrice": "90", "maxPrice": "100"})
    assert [p["team"] for p in res.json()["data"]] == ["Porto"]


def test_get_product_and_404(client, make_product):
    jersey = make_product(name="Ajax 1995 Home")
    res = client.get(f"/api/products/{jersey.id}")
    assert res.status_code == 200
    assert res.json()["name"] == "Ajax 1995 Home"
    assert isinstance(res.json()["price"], float)

    missing = client.get("/api/products/9999")
    assert missing.status_code == 404
    assert "error" in missing.json()


def test_featured_products(client, make_product):
    make_product(featured=True, name="Star")
    make_product(featured=False)
    res = client.get("/api/products/featured")
    assert [p["name"] for p in res.json()["data"]] == ["Star"]


def test_admin_crud(client, admin, login):
    login(admin)
    created = client.post("/api/products", json=_payload())
    assert created.status_code == 201
    product = created.json()
    assert product["sku"] == "JUV-96-H-M"
    assert product["images"][0]["image_url"] == "https://cdn.example.com/juv96.jpg"

    duplicate = client.post("/api/products", json=_payload(name="Autre"))
    assert duplicate.status_code == 409

    updated = client.put(f"/api/products/{product['id']}", json={"inventory": 7, "price": "139.90"})
    assert updated.status_code == 200
    assert updated.json()["inventory"] == 7
    assert updated.json()["price"] == 139.9

    deleted = client.delete(f"/api/products/{product['id']}")
    assert deleted.json() == {"success": True}
    assert client.get(f"/api/products/{product['id']}").status_code == 404


def test_negative_inventory_is_rejected(client, admin, login, make_product):
    login(admin)
    jersey = make_product()
    res = client.put(f"/api/products/{jersey.id}", json={"inventory": -1})
    assert res.status_code == 400
    assert "details" in res.json()


def test_customers_cannot_write_catalog(client):
    assert client.post("/api/products", json=_payload()).status_code == 403
