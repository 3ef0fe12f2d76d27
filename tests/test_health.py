import logging

from fastapi.testclient import TestClient
from sqlalchemy.exc import IntegrityError

from conftest import make_settings
from storefront.application.catalog import CatalogService
from storefront.core.health import HealthStatus, ServiceHealth
from storefront.core.logging_config import SecurityFilter
from storefront.errors import InfrastructureError
from storefront.infrastructure.db import Database
from storefront.infrastructure.notifications import NotificationClient
from storefront.main import build_card_gateway, create_app
from storefront.infrastructure.payments import FakeCardGateway, SquareCardGateway
from storefront.infrastructure.storage import Storage


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "pass"
    assert client.get("/health/live").json() == {"status": "alive"}


def test_readiness_reports_each_dependency(client):
    body = client.get("/health/ready").json()
    assert {"database:connectivity", "notifications:configuration"} <= set(body["checks"])
    assert body["checks"]["database:connectivity"]["status"] == "pass"


def test_startup_warns_on_default_secret(notification_client):
    app = create_app(make_settings(JWT_SECRET="change-me"), notification_client=notification_client)
    with TestClient(app) as client:
        body = client.get("/health/startup").json()
    assert body["status"] == "started"
    assert body["checks"]["config:secrets"]["status"] == "warn"


def test_metrics(client):
    body = client.get("/metrics").json()
    assert body["service"] == "storefront"
    assert body["system"]["num_threads"] >= 1


def test_request_id_and_security_headers(client):
    resp = client.get("/health", headers={"X-Request-ID": "req-123"})
    assert resp.headers["X-Request-ID"] == "req-123"
    assert resp.headers["X-Content-Type-Options"] == "nosniff"
    assert resp.headers["X-Frame-Options"] == "DENY"


class TestServiceHealth:
    def test_sqlite_database_passes(self):
        health = ServiceHealth("storefront", database=Database("sqlite://"))
        assert health._check_database()["status"] == HealthStatus.PASS
        # tables created by create_all, not alembic
        assert health._check_migrations()["status"] == HealthStatus.WARN

    def test_missing_notification_config_only_warns(self):
        health = ServiceHealth("storefront", notifications=NotificationClient("http://mail.local", ""))
        check = health._check_notifications()
        assert check["status"] == HealthStatus.WARN
        assert health.calculate_overall_status({"n": check}) == HealthStatus.WARN

    def test_overall_status(self):
        health = ServiceHealth("storefront")
        assert health.calculate_overall_status({}) == HealthStatus.PASS
        assert health.calculate_overall_status({
            "a": {"status": HealthStatus.PASS}, "b": {"status": HealthStatus.FAIL}, "c": {"status": HealthStatus.WARN},
        }) == HealthStatus.FAIL


def test_security_filter_redacts_secrets():
    record = logging.LogRecord("t", logging.INFO, __file__, 1, "login token=abc123 password: hunter2", (), None)
    record.extra_fields = {"source_id": "cnon:secret", "order_number": "SR1"}
    SecurityFilter().filter(record)
    assert "abc123" not in record.getMessage()
    assert "hunter2" not in record.getMessage()
    assert record.extra_fields == {"source_id": "***REDACTED***", "order_number": "SR1"}


def test_card_gateway_selection():
    assert isinstance(build_card_gateway(make_settings(PAYMENT_PROVIDER="fake")), FakeCardGateway)
    square = build_card_gateway(make_settings(PAYMENT_PROVIDER="square", SQUARE_ACCESS_TOKEN="tok",
                                              SQUARE_ENVIRONMENT="production"))
    assert isinstance(square, SquareCardGateway)
    assert square.base_url == "https://connect.squareup.com"
    assert build_card_gateway(make_settings(PAYMENT_PROVIDER="square", SQUARE_ACCESS_TOKEN="")) is None


class TestDatabaseErrors:
    def sql_app(self, notification_client):
        settings = make_settings(STORAGE_BACKEND="sql", DATABASE_URL="sqlite://", AUTO_CREATE_TABLES=False)
        storage = Storage("sql", database=Database("sqlite://"))
        return create_app(settings, storage=storage, notification_client=notification_client)

    def test_operational_error_is_503(self, notification_client):
        # tables were never created, so every query fails inside the driver
        with TestClient(self.sql_app(notification_client)) as client:
            resp = client.get("/products/")
        assert resp.status_code == 503
        assert resp.json() == {"error": {"code": "INTERNAL", "message": "A database error occurred; nothing was saved"}}

    def test_other_database_errors_are_500(self, notification_client, monkeypatch):
        def broken(self, category=None):
            raise IntegrityError("INSERT", {}, Exception("constraint"))

        monkeypatch.setattr(CatalogService, "list_products", broken)
        with TestClient(self.sql_app(notification_client)) as client:
            resp = client.get("/products/")
        assert resp.status_code == 500
        assert resp.json()["error"]["code"] == "INTERNAL"


def test_infrastructure_error_status():
    assert InfrastructureError("down").status_code == 500
    assert InfrastructureError("down", status_code=503).status_code == 503
