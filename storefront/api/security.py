"""Declarative access policy for the admin surface.

Roles map to capabilities once, here. Routers declare the capability they
need as a router-level dependency, so the check runs before any handler.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from fastapi import Depends, Request

from storefront.application.auth import decode_access_token
from storefront.core.logging_config import set_request_context
from storefront.domain.models import Role
from storefront.errors import ForbiddenError, UnauthorizedError

BEARER_PREFIX = "Bearer "


class Capability(str, Enum):
    MANAGE_CATALOG = "catalog:manage"
    VIEW_ORDERS = "orders:view"
    MANAGE_ORDERS = "orders:manage"
    MANAGE_CONTACTS = "contacts:manage"
    MANAGE_INVENTORY = "inventory:manage"
    RUN_RECOVERY = "carts:recover"
    EXPORT_DATA = "data:export"


ROLE_CAPABILITIES: dict[str, frozenset] = {
    Role.ADMIN.value: frozenset(Capability),
    Role.USER.value: frozenset(),
}


@dataclass
class Principal:
    id: int
    email: Optional[str]
    role: str

    def can(self, capability: Capability) -> bool:
        return capability in ROLE_CAPABILITIES.get(self.role, frozenset())


def get_principal(request: Request) -> Principal:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith(BEARER_PREFIX):
        raise UnauthorizedError("Missing token")
    token = auth_header.split(" ", 1)[1]
    claims = decode_access_token(request.app.state.settings, token)
    if not claims or "sub" not in claims:
        raise UnauthorizedError("Invalid token")
    try:
        principal = Principal(id=int(claims["sub"]), email=claims.get("email"), role=claims.get("role", ""))
    except (TypeError, ValueError):
        raise UnauthorizedError("Invalid token")
    set_request_context(principal_id=str(principal.id))
    return principal


def requires(capability: Capability):
    def check(principal: Principal = Depends(get_principal)) -> Principal:
        if not principal.can(capability):
            raise ForbiddenError("Admin access required")
        return principal

    return check
