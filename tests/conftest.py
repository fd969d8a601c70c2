import os

# Pas de Redis ni de vraies clés pendant les tests
os.environ.setdefault("DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS", "1")

import copy
import threading
import uuid
from typing import Any, Dict, Generator, List, Optional

import pytest
from fastapi.testclient import TestClient
from postgrest.exceptions import APIError

from storefront.asgi import app as fastapi_app
from storefront.shipping import shippo_client
from storefront.shipping.models import ShippingRate
from storefront.payments import stripe_client
from storefront.utils.db import get_scoped_client, get_service_client
from storefront.utils.security import require_admin, require_user


# Marquage automatique selon le dossier
def pytest_collection_modifyitems(config, items):
    for item in items:
        nodeid = item.nodeid.replace("\\", "/")
        if "tests/unit/" in nodeid:
            item.add_marker(pytest.mark.unit)
        elif "tests/integration/" in nodeid:
            item.add_marker(pytest.mark.integration)


# --- Supabase en mémoire ---

class _Resp:
    def __init__(self, data=None, count=None):
        self.data = data
        self.count = count


class _Query:
    """Sous-ensemble du query builder PostgREST utilisé par l'application."""

    def __init__(self, db: "FakeSupabase", table: str):
        self.db = db
        self.table = table
        self.op = None
        self.payload = None
        self.filters = []
        self.order_by = None
        self.limit_n = None
        self.on_conflict = ""
        self.ignore_duplicates = False

    def select(self, *_cols, **_kw):
        if self.op is None:
            self.op = "select"
        return self

    def insert(self, payload, **_kw):
        self.op, self.payload = "insert", payload
        return self

    def upsert(self, payload, on_conflict: str = "", ignore_duplicates: bool = False, **_kw):
        self.op, self.payload = "upsert", payload
        self.on_conflict, self.ignore_duplicates = on_conflict, ignore_duplicates
        return self

    def update(self, payload, **_kw):
        self.op, self.payload = "update", payload
        return self

    def delete(self, **_kw):
        self.op = "delete"
        return self

    def eq(self, col, value):
        self.filters.append(lambda r: r.get(col) == value)
        return self

    def in_(self, col, values):
        values = list(values)
        self.filters.append(lambda r: r.get(col) in values)
        return self

    def is_(self, col, value):
        expected = None if str(value).lower() == "null" else value
        self.filters.append(lambda r: r.get(col) == expected)
        return self

    def order(self, col, desc: bool = False, **_kw):
        self.order_by = (col, desc)
        return self

    def limit(self, n):
        self.limit_n = n
        return self

    def _match(self, row):
        return all(f(row) for f in self.filters)

    def execute(self):
        return self.db._execute(self)


class _Rpc:
    def __init__(self, db, fn, params):
        self.db, self.fn, self.params = db, fn, params

    def execute(self):
        return self.db._rpc(self.fn, self.params)


class FakeSupabase:
    UNIQUE = {
        "orders": [("stripe_payment_intent_id",)],
        "cart_items": [("cart_id", "product_id")],
        "order_items": [("order_id", "product_id")],
    }

    def __init__(self):
        self.tables: Dict[str, List[Dict[str, Any]]] = {}
        self.lock = threading.RLock()
        self.rpc_calls: List[tuple] = []
        self.failing_rpc_products: set = set()
        self._seq = 0

    def table(self, name: str) -> _Query:
        return _Query(self, name)

    def rpc(self, fn: str, params: Dict[str, Any]) -> _Rpc:
        return _Rpc(self, fn, params)

    # helpers de test
    def seed(self, table: str, *rows: Dict[str, Any]) -> None:
        with self.lock:
            for row in rows:
                self._store(table, dict(row))

    def rows(self, table: str) -> List[Dict[str, Any]]:
        with self.lock:
            return copy.deepcopy(self.tables.get(table, []))

    def get(self, table: str, row_id: str) -> Optional[Dict[str, Any]]:
        return next((r for r in self.rows(table) if r.get("id") == row_id), None)

    def _store(self, table, row):
        self._seq += 1
        row.setdefault("id", str(uuid.uuid4()))
        row.setdefault("created_at", f"2024-01-01T00:00:{self._seq:06d}")
        self.tables.setdefault(table, []).append(row)
        return row

    def _conflict(self, table, row, cols) -> Optional[Dict[str, Any]]:
        for existing in self.tables.get(table, []):
            if all(row.get(c) is not None and existing.get(c) == row.get(c) for c in cols):
                return existing
        return None

    def _execute(self, q: _Query) -> _Resp:
        with self.lock:
            rows = self.tables.setdefault(q.table, [])
            if q.op in ("insert", "upsert"):
                payload = q.payload if isinstance(q.payload, list) else [q.payload]
                out = []
                for raw in payload:
                    row = dict(raw)
                    if q.op == "upsert" and q.on_conflict:
                        cols = tuple(c.strip() for c in q.on_conflict.split(","))
                        existing = self._conflict(q.table, row, cols)
                        if existing is not None:
                            if not q.ignore_duplicates:
                                existing.update(row)
                                out.append(copy.deepcopy(existing))
                            continue
                    for cols in self.UNIQUE.get(q.table, []):
                        if self._conflict(q.table, row, cols) is not None:
                            raise APIError({
                                "code": "23505",
                                "message": "duplicate key value violates unique constraint",
                                "details": f"Key ({', '.join(cols)}) already exists.",
                                "hint": None,
                            })
                    out.append(copy.deepcopy(self._store(q.table, row)))
                return _Resp(out)

            matched = [r for r in rows if q._match(r)]
            if q.op == "update":
                for r in matched:
                    r.update(copy.deepcopy(q.payload))
                return _Resp(copy.deepcopy(matched))
            if q.op == "delete":
                self.tables[q.table] = [r for r in rows if not q._match(r)]
                return _Resp(copy.deepcopy(matched))

            result = copy.deepcopy(matched)
            if q.order_by:
                col, desc = q.order_by
                result.sort(key=lambda r: str(r.get(col) or ""), reverse=desc)
            if q.limit_n is not None:
                result = result[: q.limit_n]
            return _Resp(result)

    def _rpc(self, fn, params):
        with self.lock:
            self.rpc_calls.append((fn, dict(params)))
            if fn != "increment_inventory":
                raise APIError({"code": "42883", "message": f"function {fn} does not exist", "details": "", "hint": None})
            if params["p_product_id"] in self.failing_rpc_products:
                raise APIError({"code": "57014", "message": "canceling statement due to statement timeout", "details": "", "hint": None})
            for p in self.tables.get("products", []):
                if p.get("id") == params["p_product_id"]:
                    p["inventory_quantity"] = int(p.get("inventory_quantity") or 0) + int(params["p_quantity"])
            return _Resp(None)


@pytest.fixture
def fake_db() -> FakeSupabase:
    return FakeSupabase()


@pytest.fixture
def shop(fake_db) -> FakeSupabase:
    """
    Jeu de données de référence:
    - panier cart-1 (test-user): 2 x prod-1 à 1000 -> sous-total 2000
    - adresses addr-ship (US) et addr-bill
    """
    fake_db.seed(
        "products",
        {"id": "prod-1", "name": "Mug", "price": 1000, "sku": "MUG-1", "weight": 0.4,
         "dimensions": {"length": 12, "width": 10, "height": 10}, "inventory_quantity": 10},
        {"id": "prod-2", "name": "Poster", "price": 2500, "sku": "PST-1", "weight": 0.2,
         "dimensions": {"length": 60, "width": 8, "height": 8}, "inventory_quantity": 1},
    )
    fake_db.seed("carts", {"id": "cart-1", "user_id": "test-user"}, {"id": "cart-empty", "user_id": "test-user"})
    fake_db.seed("cart_items", {"id": "ci-1", "cart_id": "cart-1", "product_id": "prod-1", "quantity": 2})
    fake_db.seed(
        "addresses",
        {"id": "addr-ship", "user_id": "test-user", "name": "Test User", "address_line1": "1 Market St",
         "city": "San Francisco", "state": "CA", "postal_code": "94105", "country": "US"},
        {"id": "addr-bill", "user_id": "test-user", "name": "Test User", "address_line1": "2 Market St",
         "city": "San Francisco", "state": "CA", "postal_code": "94105", "country": "US"},
    )
    return fake_db


# --- Shippo simulé ---

class FakeShippo:
    def __init__(self):
        self.rates = [
            ShippingRate(rate_id="rate_ups", carrier="UPS", service_code="ups_ground", service_name="Ground", rate=1200, estimated_days=4),
            ShippingRate(rate_id="rate_prio", carrier="USPS", service_code="usps_priority", service_name="Priority Mail", rate=500, estimated_days=2),
            ShippingRate(rate_id="rate_ground", carrier="USPS", service_code="usps_ground_advantage", service_name="Ground Advantage", rate=450, estimated_days=5),
        ]
        # jeton -> tarif renvoyé par GET /rates/{id} (par défaut: celui de la cotation)
        self.requoted: Dict[str, ShippingRate] = {}
        self.shipments: List[tuple] = []
        self.labels: List[str] = []

    def create_shipment_rates(self, destination, parcel):
        self.shipments.append((destination, parcel))
        return [r.model_copy() for r in self.rates]

    def get_rate(self, rate_id):
        if rate_id in self.requoted:
            return self.requoted[rate_id].model_copy()
        return next((r.model_copy() for r in self.rates if r.rate_id == rate_id), None)

    def purchase_label(self, rate_id):
        self.labels.append(rate_id)
        return {"tracking_number": f"TRK-{rate_id}", "label_url": f"https://labels.test/{rate_id}.pdf", "carrier": "USPS", "cost": 500}

    def track_shipment(self, carrier, tracking_number):
        return {"tracking_number": tracking_number, "carrier": carrier, "status": "transit", "estimated_delivery": None, "tracking_events": []}


@pytest.fixture
def shippo(monkeypatch) -> FakeShippo:
    fake = FakeShippo()
    monkeypatch.setattr(shippo_client, "create_shipment_rates", fake.create_shipment_rates)
    monkeypatch.setattr(shippo_client, "get_rate", fake.get_rate)
    monkeypatch.setattr(shippo_client, "purchase_label", fake.purchase_label)
    monkeypatch.setattr(shippo_client, "track_shipment", fake.track_shipment)
    return fake


# --- Stripe simulé ---

class FakeStripe:
    def __init__(self):
        self.intents: Dict[str, Dict[str, Any]] = {}
        self.charges: Dict[str, Dict[str, Any]] = {}
        self._n = 0

    def create_payment_intent(self, *, amount, currency, metadata, customer=None):
        self._n += 1
        pi_id = f"pi_test_{self._n}"
        self.intents[pi_id] = {
            "id": pi_id,
            "object": "payment_intent",
            "amount": amount,
            "currency": currency,
            "customer": customer,
            "metadata": dict(metadata),
            "status": "requires_payment_method",
            "client_secret": f"{pi_id}_secret",
        }
        return dict(self.intents[pi_id])

    def succeed(self, pi_id: str) -> Dict[str, Any]:
        self.intents[pi_id]["status"] = "succeeded"
        return dict(self.intents[pi_id])

    def retrieve_payment_intent(self, pi_id):
        return copy.deepcopy(self.intents[pi_id])

    def retrieve_charge(self, charge_id):
        return copy.deepcopy(self.charges[charge_id])


@pytest.fixture
def stripe_fake(monkeypatch) -> FakeStripe:
    fake = FakeStripe()
    monkeypatch.setattr(stripe_client, "create_payment_intent", fake.create_payment_intent)
    monkeypatch.setattr(stripe_client, "retrieve_payment_intent", fake.retrieve_payment_intent)
    monkeypatch.setattr(stripe_client, "retrieve_charge", fake.retrieve_charge)
    return fake


@pytest.fixture
def intent_for_cart():
    """Construit un PaymentIntent réussi cohérent avec le jeu `shop` (2640 = 2000 + 140 + 500)."""
    def _make(pi_id="pi_123", amount=2640, cart_id="cart-1", method="usps_priority", rate_id="rate_prio", user_id="test-user"):
        return {
            "id": pi_id,
            "object": "payment_intent",
            "status": "succeeded",
            "amount": amount,
            "currency": "usd",
            "metadata": {
                "cart_id": cart_id,
                "user_id": user_id,
                "shipping_address_id": "addr-ship",
                "billing_address_id": "addr-bill",
                "shipping_method": method,
                "shipping_rate_id": rate_id,
                "subtotal": "2000",
                "tax": "140",
                "shipping_cost": "500",
            },
        }
    return _make


# --- Application ---

@pytest.fixture(scope="session")
def app():
    return fastapi_app


@pytest.fixture()
def client(app) -> Generator[TestClient, None, None]:
    with TestClient(app) as c:
        yield c


# Les accesseurs DB de l'app pointent vers la base en mémoire du test
@pytest.fixture(autouse=True)
def _override_db(app, fake_db):
    app.dependency_overrides[get_scoped_client] = lambda: fake_db
    app.dependency_overrides[get_service_client] = lambda: fake_db
    try:
        yield
    finally:
        app.dependency_overrides.pop(get_scoped_client, None)
        app.dependency_overrides.pop(get_service_client, None)


# Simuler un utilisateur authentifié pour les endpoints protégés
@pytest.fixture(autouse=True)
def _override_require_user(app):
    fake_user: Dict[str, Any] = {
        "id": "test-user",
        "email": "test@example.com",
        "role": "user",
        "metadata": {"full_name": "Test User"},
        "token": "fake-token",
    }
    app.dependency_overrides[require_user] = lambda: fake_user
    try:
        yield
    finally:
        app.dependency_overrides.pop(require_user, None)


@pytest.fixture
def authenticated_admin_client(app, client):
    def _override_require_admin():
        return {"id": "admin-user-id", "role": "admin", "email": "admin@example.com"}
    app.dependency_overrides[require_admin] = _override_require_admin
    yield client
    app.dependency_overrides.pop(require_admin, None)
