from jerseyshop.models import Order, Product

ADDRESS = {"street": "10 Calle Mayor", "city": "Madrid", "state": "MD", "zip": "28013", "country": "ES"}


def _fill_cart(client, product, quantity):
    res = client.post("/api/cart", json={"productId": product.id, "quantity": quantity})
    assert res.status_code == 201


def test_create_order_from_cart(client, db, make_product):
    jersey = make_product(price="100.00", inventory=5)
    _fill_cart(client, jersey, 2)

    res = client.post("/api/orders", json={"shippingAddress": ADDRESS, "paymentMethod": "stripe"})

    assert res.status_code == 201
    order = res.json()
    assert order["status"] == "pending"
    assert order["total_price"] == 200.0
    assert order["shipping_address"]["city"] == "Madrid"
    assert order["items"][0]["quantity"] == 2
    assert order["payments"][0]["payment_method"] == "stripe"
    assert order["payments"][0]["status"] == "pending"
    assert client.get("/api/cart").json()["count"] == 0
    db.expire_all()
    assert db.get(Product, jersey.id).inventory == 3


def test_empty_cart_is_400(client):
    res = client.post("/api/orders", json={"shippingAddress": ADDRESS, "paymentMethod": "paypal"})
    assert res.status_code == 400
    assert res.json()["error"] == "Panier vide"


def test_incomplete_address_is_400(client, make_product):
    _fill_cart(client, make_product(), 1)
    res = client.post("/api/orders", json={"shippingAddress": dict(ADDRESS, city=""), "paymentMethod": "stripe"})
    assert res.status_code == 400
    assert res.json()["details"]


def test_unknown_payment_method_is_400(client, make_product):
    _fill_cart(client, make_product(), 1)
    res = client.post("/api/orders", json={"shippingAddress": ADDRESS, "paymentMethod": "cash"})
    assert res.status_code == 400


def test_stock_sold_out_after_adding_to_cart_is_409(client, db, make_product):
    jersey = make_product(inventory=2, name="Boca 1981")
    _fill_cart(client, jersey, 2)
    # Un autre client achète entre-temps
    db.get(Product, jersey.id).inventory = 1
    db.commit()

    res = client.post("/api/orders", json={"shippingAddress": ADDRESS, "paymentMethod": "stripe"})

    assert res.status_code == 409
    assert "Boca 1981" in res.json()["error"]
    assert db.query(Order).count() == 0
    assert client.get("/api/cart").json()["count"] == 2


def test_list_and_get_orders(client, make_product, other_customer, admin, login):
    _fill_cart(client, make_product(), 1)
    order_id = client.post("/api/orders", json={"shippingAddress": ADDRESS, "paymentMethod": "square"}).json()["id"]

    mine = client.get("/api/orders").json()
    assert mine["total"] == 1
    assert mine["data"][0]["id"] == order_id
    assert client.get(f"/api/orders/{order_id}").json()["payments"][0]["payment_method"] == "square"

    login(other_customer)
    assert client.get("/api/orders").json()["total"] == 0
    forbidden = client.get(f"/api/orders/{order_id}")
    assert forbidden.status_code == 403
    assert "total_price" not in forbidden.json()

    login(admin)
    assert client.get("/api/orders").json()["total"] == 1
    assert client.get(f"/api/orders/{order_id}").status_code == 200
    assert client.get("/api/orders/4040").status_code == 404


def test_admin_status_updates(client, make_product, admin, login):
    _fill_cart(client, make_product(), 1)
    order_id = client.post("/api/orders", json={"shippingAddress": ADDRESS, "paymentMethod": "stripe"}).json()["id"]

    assert client.put(f"/api/orders/{order_id}", json={"status": "shipped"}).status_code == 403

    login(admin)
    res = client.put(f"/api/orders/{order_id}", json={"status": "shipped"})
    assert res.status_code == 409

    assert client.put(f"/api/orders/{order_id}", json={"status": "processing"}).status_code == 200
    res = client.put(f"/api/orders/{order_id}", json={"status": "shipped", "trackingNumber": "1Z999AA10123456784"})
    assert res.status_code == 200
    assert res.json()["tracking_number"] == "1Z999AA10123456784"
    assert client.put(f"/api/orders/{order_id}", json={"status": "delivered"}).json()["status"] == "delivered"
    assert client.put(f"/api/orders/{order_id}", json={"status": "cancelled"}).status_code == 409
    assert client.put(f"/api/orders/{order_id}", json={"status": "lost"}).status_code == 400
