import jwt
import pytest

from conftest import ADMIN_EMAIL, ADMIN_PASSWORD
from storefront.api.security import Capability, Principal
from storefront.application.auth import (
    AuthService,
    create_access_token,
    decode_access_token,
    hash_password,
    verify_password,
)
from storefront.domain.models import User
from storefront.errors import BadRequestError, ConflictError, UnauthorizedError
from storefront.infrastructure.memory_repository import InMemoryRepository, MemoryStore


def test_password_hashing():
    hashed = hash_password("correct horse")
    assert hashed != "correct horse"
    assert verify_password("correct horse", hashed)
    assert not verify_password("wrong", hashed)
    assert not verify_password("anything", "not-a-bcrypt-hash")


def test_token_round_trip(settings):
    token = create_access_token(settings, User(id=7, email="a@example.com", role="admin"))
    claims = decode_access_token(settings, token)
    assert (claims["sub"], claims["role"]) == ("7", "admin")
    assert decode_access_token(settings, token + "x") is None


def test_principal_capabilities():
    assert Principal(1, "a@example.com", "admin").can(Capability.EXPORT_DATA)
    assert not Principal(2, "u@example.com", "user").can(Capability.VIEW_ORDERS)
    assert not Principal(3, None, "").can(Capability.MANAGE_CATALOG)


class TestAuthService:
    @pytest.fixture
    def service(self, settings):
        return AuthService(InMemoryRepository(MemoryStore()), settings)

    def test_create_and_login(self, service, settings):
        user = service.create_admin("Owner@Example.com", "hunter22", "Owner")
        assert user.email == "owner@example.com"
        token = service.login("OWNER@example.com", "hunter22")
        assert decode_access_token(settings, token)["sub"] == str(user.id)
        assert service.get_user(user.id).last_signed_in is not None

    def test_wrong_password(self, service):
        service.create_admin("owner@example.com", "hunter22")
        with pytest.raises(UnauthorizedError):
            service.login("owner@example.com", "hunter23")
        with pytest.raises(UnauthorizedError):
            service.login("nobody@example.com", "hunter22")

    def test_duplicate_admin(self, service):
        service.create_admin("owner@example.com", "hunter22")
        with pytest.raises(ConflictError) as exc:
            service.create_admin("owner@example.com", "another1")
        assert exc.value.code == "USER_EXISTS"

    def test_promotes_existing_user(self, service):
        existing = service.repo.add_user(User(email="staff@example.com", password_hash="x", role="user"))
        promoted = service.create_admin("staff@example.com", "hunter22")
        assert promoted.id == existing.id
        assert promoted.role == "admin"

    @pytest.mark.parametrize("email,password", [("no-at-sign", "hunter22"), ("a@example.com", "short")])
    def test_invalid_credentials(self, service, email, password):
        with pytest.raises(BadRequestError):
            service.create_admin(email, password)


class TestApi:
    def test_admin_routes_need_token(self, client):
        resp = client.get("/admin/orders/")
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "UNAUTHORIZED"

    def test_garbage_token(self, client):
        resp = client.get("/admin/orders/", headers={"Authorization": "Bearer nonsense"})
        assert resp.status_code == 401

    def test_expired_token(self, client, settings):
        token = jwt.encode({"sub": "1", "role": "admin", "exp": 1}, settings.JWT_SECRET, algorithm=settings.JWT_ALG)
        resp = client.get("/admin/orders/", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401

    def test_user_role_forbidden(self, client, settings):
        token = create_access_token(settings, User(id=42, email="u@example.com", role="user"))
        resp = client.get("/admin/contacts/", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 403
        assert resp.json()["error"]["code"] == "FORBIDDEN"

    def test_login_and_me(self, client, admin_headers):
        resp = client.post("/auth/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
        assert resp.status_code == 200
        body = resp.json()
        assert body["token_type"] == "bearer"
        assert body["expires_in"] == 12 * 60 * 60
        me = client.get("/auth/me", headers={"Authorization": f"Bearer {body['access_token']}"}).json()
        assert (me["email"], me["role"]) == (ADMIN_EMAIL, "admin")
        assert client.get("/admin/orders/", headers={"Authorization": f"Bearer {body['access_token']}"}).status_code == 200

    def test_login_wrong_password(self, client, admin_headers):
        resp = client.post("/auth/login", json={"email": ADMIN_EMAIL, "password": "wrong-password"})
        assert resp.status_code == 401
