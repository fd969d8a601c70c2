def _seed_orders(db):
    db.seed(
        "orders",
        {"id": "order-1", "user_id": "test-user", "status": "paid", "total_amount": 2640,
         "stripe_payment_intent_id": "pi_1", "shipping_rate_id": "rate_prio"},
        {"id": "order-2", "user_id": "someone-else", "status": "paid", "total_amount": 1000,
         "stripe_payment_intent_id": "pi_2"},
    )
    db.seed("order_items", {"order_id": "order-1", "product_id": "prod-1", "quantity": 2, "price": 1000})


def test_my_orders_lists_only_own_orders(client, shop):
    _seed_orders(shop)
    r = client.get("/orders/my-orders")
    assert r.status_code == 200
    orders = r.json()["orders"]
    assert [o["id"] for o in orders] == ["order-1"]
    assert orders[0]["items"][0]["product_id"] == "prod-1"


def test_my_order_of_another_user_is_404(client, shop):
    _seed_orders(shop)
    r = client.get("/orders/my-orders/order-2")
    assert r.status_code == 404
    assert r.json()["code"] == "order_not_found"


def test_cancel_order_restores_inventory(client, shop):
    _seed_orders(shop)
    r = client.post("/orders/my-orders/order-1/cancel")

    assert r.status_code == 200
    assert r.json()["order"]["status"] == "cancelled"
    assert shop.get("products", "prod-1")["inventory_quantity"] == 12


def test_cancel_shipped_order_422(client, shop):
    _seed_orders(shop)
    shop.tables["orders"][0]["status"] = "shipped"
    r = client.post("/orders/my-orders/order-1/cancel")
    assert r.status_code == 422
    assert r.json()["code"] == "order_not_cancelable"


def test_order_by_payment_intent(client, shop):
    _seed_orders(shop)
    r = client.get("/orders/by-payment-intent/pi_1")
    assert r.status_code == 200
    assert r.json()["order"]["id"] == "order-1"
    assert client.get("/orders/by-payment-intent/pi_unknown").status_code == 404


def test_admin_routes_require_authentication(client, shop):
    r = client.get("/admin/orders")
    assert r.status_code == 401


def test_admin_lists_all_orders(authenticated_admin_client, shop):
    _seed_orders(shop)
    r = authenticated_admin_client.get("/admin/orders")
    assert r.status_code == 200
    assert {o["id"] for o in r.json()["orders"]} == {"order-1", "order-2"}


def test_admin_ship_without_tracking_buys_label(authenticated_admin_client, shop, shippo):
    _seed_orders(shop)
    r = authenticated_admin_client.put("/admin/orders/order-1/status", json={"status": "shipped"})

    assert r.status_code == 200, r.text
    order = shop.get("orders", "order-1")
    assert order["status"] == "shipped"
    assert order["tracking_number"] == "TRK-rate_prio"
    assert shippo.labels == ["rate_prio"]


def test_admin_unknown_status_400(authenticated_admin_client, shop):
    _seed_orders(shop)
    r = authenticated_admin_client.put("/admin/orders/order-1/status", json={"status": "teleported"})
    assert r.status_code == 400
    assert r.json()["code"] == "validation_error"
