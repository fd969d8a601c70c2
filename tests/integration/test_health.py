from storefront.health import service as health_service


def test_health_root(client):
    r = client.get("/health")
    assert r.status_code == 200
    body = r.json()
    assert body["ok"] is True
    assert "rate_limit" in body


def test_health_supabase_reports_tables(client, fake_db, monkeypatch):
    monkeypatch.setattr(health_service.supabase_client, "get_supabase", lambda: fake_db)
    monkeypatch.setattr(health_service, "SUPABASE_URL", None)

    body = client.get("/health/supabase").json()

    assert body["connect_ok"] is True
    assert set(body["tables"]) == {"carts", "products", "orders"}
    assert all(t["ok"] for t in body["tables"].values())


def test_api_responses_are_not_cached(client, shop):
    r = client.get("/cart/cart-1")
    assert r.status_code == 200
    assert r.headers.get("cache-control") == "no-store"
    assert r.headers.get("x-content-type-options") == "nosniff"
