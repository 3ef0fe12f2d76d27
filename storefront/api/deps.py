from typing import Iterator, Optional

from fastapi import Depends, Request

from storefront.application.abandoned_carts import AbandonedCartService
from storefront.application.notifier import Notifier
from storefront.application.orders import OrderService
from storefront.core_settings import Settings
from storefront.domain.repository import Repository
from storefront.infrastructure.payments import CardGateway


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_repository(request: Request) -> Iterator[Repository]:
    """One repository (one database session) per request."""
    with request.app.state.storage.repository() as repo:
        yield repo


def get_notifier(request: Request) -> Optional[Notifier]:
    return request.app.state.notifier


def get_card_gateway(request: Request) -> Optional[CardGateway]:
    return request.app.state.card_gateway


def get_order_service(
    repo: Repository = Depends(get_repository),
    settings: Settings = Depends(get_app_settings),
    notifier: Optional[Notifier] = Depends(get_notifier),
    gateway: Optional[CardGateway] = Depends(get_card_gateway),
) -> OrderService:
    return OrderService(repo, settings, notifier=notifier, gateway=gateway)


def get_cart_service(
    repo: Repository = Depends(get_repository),
    settings: Settings = Depends(get_app_settings),
    notifier: Optional[Notifier] = Depends(get_notifier),
) -> AbandonedCartService:
    return AbandonedCartService(
        repo,
        notifier,
        age_hours=settings.ABANDONED_CART_AGE_HOURS,
        send_delay=settings.RECOVERY_EMAIL_DELAY_SECONDS,
    )
