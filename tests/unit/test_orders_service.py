import pytest

from storefront.errors import OrderNotCancelable, OrderNotFound, PreconditionFailed, ValidationError
from storefront.orders import repository as orders_repo
from storefront.orders import service as orders_service


def _seed_order(db, status="paid", user_id="test-user", **extra):
    db.seed("orders", {
        "id": "order-1",
        "user_id": user_id,
        "status": status,
        "total_amount": 2640,
        "stripe_payment_intent_id": "pi_123",
        "shipping_rate_id": "rate_prio",
        **extra,
    })
    db.seed("order_items", {"id": "oi-1", "order_id": "order-1", "product_id": "prod-1", "quantity": 2, "unit_price": 1000, "total_price": 2000})


def test_cancel_paid_order_restores_inventory(shop):
    _seed_order(shop, status="paid")

    order = orders_service.cancel_order(shop, shop, "order-1", "test-user")

    assert order["status"] == "cancelled"
    assert shop.get("products", "prod-1")["inventory_quantity"] == 12
    assert ("increment_inventory", {"p_product_id": "prod-1", "p_quantity": 2}) in shop.rpc_calls


def test_cancel_shipped_order_is_rejected(shop):
    _seed_order(shop, status="shipped")

    with pytest.raises(OrderNotCancelable):
        orders_service.cancel_order(shop, shop, "order-1", "test-user")

    assert shop.get("orders", "order-1")["status"] == "shipped"
    assert shop.get("products", "prod-1")["inventory_quantity"] == 10


def test_cancel_someone_elses_order(shop):
    _seed_order(shop, user_id="other-user")
    with pytest.raises(OrderNotFound):
        orders_service.cancel_order(shop, shop, "order-1", "test-user")


def test_cancel_loses_race_against_status_change(shop, monkeypatch):
    _seed_order(shop, status="paid")
    monkeypatch.setattr(orders_repo, "update_order_if_status", lambda *a, **kw: None)
    shop.tables["orders"][0]["status"] = "shipped"
    monkeypatch.setattr(orders_repo, "get_user_order", lambda client, oid, uid: {"id": oid, "status": "paid"})

    with pytest.raises(OrderNotCancelable) as exc:
        orders_service.cancel_order(shop, shop, "order-1", "test-user")
    assert exc.value.status == "shipped"


def test_cancel_restore_failure_is_logged_only(shop, caplog):
    _seed_order(shop, status="processing")
    shop.failing_rpc_products.add("prod-1")

    order = orders_service.cancel_order(shop, shop, "order-1", "test-user")

    assert order["status"] == "cancelled"
    assert "remise en stock" in caplog.text


def test_update_status_rejects_unknown_status(shop):
    _seed_order(shop)
    with pytest.raises(ValidationError):
        orders_service.update_order_status(shop, "order-1", "teleported")


def test_shipped_without_tracking_buys_label(shop, shippo):
    _seed_order(shop, status="paid")

    order = orders_service.update_order_status(shop, "order-1", "shipped")

    assert shippo.labels == ["rate_prio"]
    assert order["status"] == "shipped"
    assert order["tracking_number"] == "TRK-rate_prio"
    assert order["label_url"].endswith("rate_prio.pdf")


def test_shipped_with_tracking_does_not_buy_label(shop, shippo):
    _seed_order(shop, status="paid")
    order = orders_service.update_order_status(shop, "order-1", "shipped", tracking_number="1Z999")
    assert shippo.labels == []
    assert order["tracking_number"] == "1Z999"


def test_shipped_without_rate_token(shop, shippo):
    _seed_order(shop, status="paid", shipping_rate_id=None)
    with pytest.raises(PreconditionFailed):
        orders_service.update_order_status(shop, "order-1", "shipped")


def test_list_user_orders_includes_items(shop):
    _seed_order(shop)
    orders = orders_service.list_user_orders(shop, "test-user")
    assert [o["id"] for o in orders] == ["order-1"]
    assert orders[0]["items"][0]["product_id"] == "prod-1"
    assert orders_service.list_user_orders(shop, "someone-else") == []


def test_get_order_by_payment_intent(shop):
    _seed_order(shop)
    assert orders_service.get_order_by_payment_intent(shop, "pi_123")["id"] == "order-1"
    with pytest.raises(OrderNotFound):
        orders_service.get_order_by_payment_intent(shop, "pi_unknown")
