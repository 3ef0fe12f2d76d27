import json
from datetime import datetime, timedelta

import httpx
import pytest

from storefront.application.abandoned_carts import AbandonedCartService
from storefront.application.notifier import RECOVERY_SUBJECT, Notifier
from storefront.application.schemas import CartLine
from storefront.infrastructure.memory_repository import InMemoryRepository, MemoryStore
from storefront.infrastructure.notifications import NotificationClient
from storefront.main import run_recovery_once

LINES = [CartLine(product_id=1, product_name="SR17018 - 1 Gram", quantity=2, price_per_unit=4900)]
LATER = timedelta(hours=25)


@pytest.fixture
def sent():
    return []


@pytest.fixture
def status_code():
    """Status the fake notification API answers with; tests may change it."""
    return {"value": 200}


@pytest.fixture
def notifier(sent, status_code):
    def handler(request):
        sent.append(json.loads(request.content))
        return httpx.Response(status_code["value"])

    client = NotificationClient("http://mail.local/email", "key", transport=httpx.MockTransport(handler))
    return Notifier(client, owner_email="owner@example.com", frontend_url="https://shop.example.com",
                    bitcoin_address="bc1qexample")


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def service(notifier, sleeps):
    return AbandonedCartService(InMemoryRepository(MemoryStore()), notifier, age_hours=24, send_delay=1.0,
                                sleep=sleeps.append)


def start(service, email="shopper@example.com", name="Sam"):
    return service.record_checkout_started(email, name, LINES, 9800)


class TestTracking:
    def test_one_open_cart_per_email(self, service):
        first = start(service)
        second = service.record_checkout_started("shopper@example.com", "Sam", LINES * 2, 19600)
        assert first.id == second.id
        cart = service.get_open_cart("shopper@example.com")
        assert cart.total_amount == 19600
        assert len(json.loads(cart.cart_data)) == 2

    def test_new_cart_after_conversion(self, service):
        first = start(service)
        assert service.mark_converted("shopper@example.com", "SRABC123") == 1
        assert service.get_open_cart("shopper@example.com") is None
        second = start(service)
        assert second.id != first.id


class TestRecovery:
    def test_fresh_carts_not_due(self, service):
        start(service)
        assert service.find_carts_for_recovery() == []

    def test_due_cart_selected_once(self, service, sent):
        cart = start(service)
        now = datetime.utcnow() + LATER
        assert [c.id for c in service.find_carts_for_recovery(now)] == [cart.id]

        assert service.run_recovery(now) == {"processed": 1, "sent": 1, "failed": 0}
        assert service.find_carts_for_recovery(now) == []
        assert service.run_recovery(now) == {"processed": 0, "sent": 0, "failed": 0}
        assert len(sent) == 1

    def test_converted_cart_excluded(self, service):
        start(service)
        service.mark_converted("shopper@example.com", "SRABC123")
        assert service.find_carts_for_recovery(datetime.utcnow() + LATER) == []

    def test_overlapping_scans_select_same_cart(self, service):
        # Selection and marking are separate steps, so two schedulers running at
        # once would both email this cart. Only one recovery runner may be active.
        cart = start(service)
        now = datetime.utcnow() + LATER
        first = service.find_carts_for_recovery(now)
        second = service.find_carts_for_recovery(now)
        assert [c.id for c in first] == [c.id for c in second] == [cart.id]

    def test_failed_send_retried_next_run(self, service, status_code):
        start(service)
        now = datetime.utcnow() + LATER
        status_code["value"] = 500
        assert service.run_recovery(now) == {"processed": 1, "sent": 0, "failed": 1}
        status_code["value"] = 200
        assert service.run_recovery(now) == {"processed": 1, "sent": 1, "failed": 0}

    def test_delay_between_sends_only(self, service, sleeps):
        for i in range(3):
            start(service, email=f"shopper{i}@example.com")
        result = service.run_recovery(datetime.utcnow() + LATER)
        assert result["sent"] == 3
        assert sleeps == [1.0, 1.0]

    def test_recovery_email_content(self, service, sent):
        start(service, name="Sam <b>")
        service.run_recovery(datetime.utcnow() + LATER)
        [email] = sent
        assert email["to"] == "shopper@example.com"
        assert email["subject"] == RECOVERY_SUBJECT
        assert "https://shop.example.com/checkout?email=shopper%40example.com" in email["html"]
        assert "Sam &lt;b&gt;" in email["html"]
        assert "$98.00" in email["html"]

    def test_without_notifier_every_cart_fails(self, sleeps):
        service = AbandonedCartService(InMemoryRepository(MemoryStore()), None, sleep=sleeps.append)
        start(service)
        result = service.run_recovery(datetime.utcnow() + LATER)
        assert result == {"processed": 1, "sent": 0, "failed": 1}


class TestApi:
    def payload(self, email="shopper@example.com"):
        return {"email": email, "name": "Sam", "items": [LINES[0].model_dump()], "total_amount": 9800}

    def test_checkout_started_and_open_cart(self, client):
        resp = client.post("/abandoned-carts/checkout-started", json=self.payload())
        assert resp.status_code == 202
        assert resp.json()["tracked"] is True
        cart = client.get("/abandoned-carts/open", params={"email": "shopper@example.com"}).json()
        assert cart["id"] == resp.json()["id"]
        assert cart["items"] == [LINES[0].model_dump()]
        assert cart["total_amount"] == 9800

    def test_open_cart_hides_shopper_details(self, client):
        client.post("/abandoned-carts/checkout-started", json=self.payload())
        cart = client.get("/abandoned-carts/open", params={"email": "shopper@example.com"}).json()
        assert set(cart) == {"id", "items", "total_amount", "created_at"}

    def test_empty_cart_rejected(self, client):
        payload = self.payload()
        payload["items"] = []
        assert client.post("/abandoned-carts/checkout-started", json=payload).status_code == 422

    def test_no_open_cart(self, client):
        assert client.get("/abandoned-carts/open", params={"email": "nobody@example.com"}).status_code == 404

    def test_admin_trigger(self, client, admin_headers):
        client.post("/abandoned-carts/checkout-started", json=self.payload())
        assert client.get("/admin/abandoned-carts/due", headers=admin_headers).json() == []
        resp = client.post("/admin/abandoned-carts/recover", headers=admin_headers)
        assert resp.json() == {"processed": 0, "sent": 0, "failed": 0}

    def test_admin_trigger_requires_auth(self, client):
        assert client.post("/admin/abandoned-carts/recover").status_code == 401

    def test_scheduled_run_uses_app_storage(self, app, client):
        client.post("/abandoned-carts/checkout-started", json=self.payload())
        assert run_recovery_once(app) == {"processed": 0, "sent": 0, "failed": 0}
