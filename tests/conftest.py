import json
import os

# the module-level app in storefront.main is built at import time
os.environ.setdefault("STORAGE_BACKEND", "memory")

import httpx
import pytest
from fastapi.testclient import TestClient

from storefront.application.auth import AuthService, create_access_token
from storefront.core_settings import Settings
from storefront.infrastructure.db import Database
from storefront.infrastructure.notifications import NotificationClient
from storefront.infrastructure.payments import FakeCardGateway
from storefront.infrastructure.storage import Storage
from storefront.main import create_app
from storefront.scripts.seed import seed_catalog, seed_shipping_rates

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "s3cret-pass"


def make_settings(**overrides) -> Settings:
    values = {
        "STORAGE_BACKEND": "memory",
        "PAYMENT_PROVIDER": "fake",
        "RECOVERY_EMAIL_DELAY_SECONDS": 0,
        "ABANDONED_CART_SCAN_INTERVAL_SECONDS": 0,
        "JWT_SECRET": "test-secret",
        "OWNER_EMAIL": "owner@example.com",
        "NOTIFICATION_API_URL": "http://mail.local/email",
        "NOTIFICATION_API_KEY": "test-key",
        "LOG_LEVEL": "WARNING",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def order_payload(product_id, rate_id, quantity=1, method="card", email="buyer@example.com"):
    return {
        "items": [{"product_id": product_id, "quantity": quantity}],
        "shipping_rate_id": rate_id,
        "payment_method": method,
        "customer": {
            "name": "Ada Buyer",
            "email": email,
            "address": "1 Main St",
            "city": "Springfield",
            "state": "IL",
            "zip": "62701",
        },
    }


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def outbox():
    """Every email the notification API accepted, as posted JSON bodies."""
    return []


@pytest.fixture
def notification_client(outbox):
    def handler(request: httpx.Request) -> httpx.Response:
        outbox.append(json.loads(request.content))
        return httpx.Response(200, json={"id": f"msg-{len(outbox)}"})

    return NotificationClient("http://mail.local/email", "test-key", transport=httpx.MockTransport(handler))


@pytest.fixture
def gateway():
    return FakeCardGateway()


@pytest.fixture
def app(settings, notification_client, gateway):
    return create_app(settings, card_gateway=gateway, notification_client=notification_client)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


def seed(app) -> dict:
    """Seeded rates and products: ``products`` by weight in grams, ``rates`` by service name."""
    with app.state.storage.repository() as repo:
        seed_shipping_rates(repo)
        seed_catalog(repo)
        return {
            "products": {p.weight_grams: p.id for p in repo.list_products()},
            "rates": {r.service_name: r.id for r in repo.list_active_rates()},
        }


def create_admin_headers(app) -> dict:
    settings = app.state.settings
    with app.state.storage.repository() as repo:
        user = AuthService(repo, settings).create_admin(ADMIN_EMAIL, ADMIN_PASSWORD, "Admin")
        token = create_access_token(settings, user)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def catalog(app):
    return seed(app)


@pytest.fixture
def admin_headers(app):
    return create_admin_headers(app)


@pytest.fixture(params=["memory", "sql"])
def backend_client(request, notification_client, gateway):
    """A client over each storage backend, seeded, with admin headers: ``(client, catalog, headers)``."""
    if request.param == "sql":
        settings = make_settings(STORAGE_BACKEND="sql", DATABASE_URL="sqlite://")
        storage = Storage("sql", database=Database("sqlite://"))
    else:
        settings = make_settings()
        storage = None
    app = create_app(settings, storage=storage, card_gateway=gateway, notification_client=notification_client)
    with TestClient(app) as client:
        yield client, seed(app), create_admin_headers(app)
