"""Storefront API application."""
import asyncio
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from starlette.middleware.base import BaseHTTPMiddleware

from storefront.api.routes import admin_routers, public_routers
from storefront.application.abandoned_carts import AbandonedCartService
from storefront.application.notifier import Notifier
from storefront.core import RequestLoggingMiddleware, ServiceHealth, get_logger, setup_logging
from storefront.core_settings import Settings, get_settings
from storefront.errors import InfrastructureError, StorefrontError
from storefront.infrastructure.notifications import NotificationClient
from storefront.infrastructure.payments import CardGateway, FakeCardGateway, SquareCardGateway
from storefront.infrastructure.storage import Storage

logger = get_logger(__name__)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-XSS-Protection"] = "1; mode=block"
        return response


def build_card_gateway(settings: Settings) -> Optional[CardGateway]:
    provider = settings.PAYMENT_PROVIDER.lower()
    if provider == "fake":
        return FakeCardGateway()
    if provider == "square" and settings.SQUARE_ACCESS_TOKEN:
        return SquareCardGateway(
            access_token=settings.SQUARE_ACCESS_TOKEN,
            environment=settings.SQUARE_ENVIRONMENT,
            location_id=settings.SQUARE_LOCATION_ID,
            api_version=settings.SQUARE_API_VERSION,
            currency=settings.CURRENCY,
            timeout=settings.PAYMENT_TIMEOUT_SECONDS,
        )
    logger.warning("Card payments disabled: no processor configured")
    return None


def run_recovery_once(app: FastAPI) -> dict:
    settings = app.state.settings
    with app.state.storage.repository() as repo:
        service = AbandonedCartService(
            repo,
            app.state.notifier,
            age_hours=settings.ABANDONED_CART_AGE_HOURS,
            send_delay=settings.RECOVERY_EMAIL_DELAY_SECONDS,
        )
        return service.run_recovery()


async def _recovery_loop(app: FastAPI, interval: float):
    while True:
        await asyncio.sleep(interval)
        try:
            await asyncio.to_thread(run_recovery_once, app)
        except Exception:
            # keep the scheduler alive; the next tick retries
            logger.error("Scheduled abandoned cart recovery failed", exc_info=True)


def error_response(exc: StorefrontError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": {"code": exc.code, "message": exc.message}},
    )


def register_exception_handlers(app: FastAPI):
    @app.exception_handler(StorefrontError)
    async def storefront_error_handler(request: Request, exc: StorefrontError):
        if exc.status_code >= 500:
            logger.error(f"{exc.code}: {exc.message}", extra={"extra_fields": {"path": request.url.path}})
        return error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=422,
            content={"error": {
                "code": "VALIDATION_ERROR",
                "message": "Request failed validation",
                "details": jsonable_encoder(exc.errors()),
            }},
        )

    @app.exception_handler(SQLAlchemyError)
    async def database_error_handler(request: Request, exc: SQLAlchemyError):
        logger.error(
            "Database error",
            exc_info=(type(exc), exc, exc.__traceback__),
            extra={"extra_fields": {"path": request.url.path}},
        )
        # OperationalError covers lost or refused connections
        status = 503 if isinstance(exc, OperationalError) else 500
        return error_response(InfrastructureError("A database error occurred; nothing was saved", status_code=status))


def create_app(
    settings: Optional[Settings] = None,
    storage: Optional[Storage] = None,
    card_gateway: Optional[CardGateway] = None,
    notification_client: Optional[NotificationClient] = None,
) -> FastAPI:
    settings = settings or get_settings()
    setup_logging(settings.SERVICE_NAME, settings.LOG_LEVEL, version=settings.SERVICE_VERSION)

    storage = storage or Storage.from_settings(settings)
    notifier = Notifier.from_settings(settings, notification_client)
    if card_gateway is None:
        card_gateway = build_card_gateway(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if settings.AUTO_CREATE_TABLES:
            storage.init()
        task = None
        if settings.ABANDONED_CART_SCAN_INTERVAL_SECONDS > 0:
            task = asyncio.create_task(_recovery_loop(app, settings.ABANDONED_CART_SCAN_INTERVAL_SECONDS))
        logger.info(
            "Storefront started",
            extra={"extra_fields": {"storage": storage.backend, "recovery_interval": settings.ABANDONED_CART_SCAN_INTERVAL_SECONDS}},
        )
        try:
            yield
        finally:
            if task is not None:
                task.cancel()
            storage.close()

    app = FastAPI(title="Storefront API", version=settings.SERVICE_VERSION, docs_url="/swagger", lifespan=lifespan)
    app.state.settings = settings
    app.state.storage = storage
    app.state.notifier = notifier
    app.state.card_gateway = card_gateway

    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)

    health = ServiceHealth(
        settings.SERVICE_NAME,
        settings.SERVICE_VERSION,
        database=storage.database,
        notifications=notifier.client,
        jwt_secret=settings.JWT_SECRET,
    )
    app.include_router(health.create_health_router())
    for router in public_routers + admin_routers:
        app.include_router(router)

    @app.get("/", include_in_schema=False)
    async def root():
        return {
            "service": settings.SERVICE_NAME,
            "version": settings.SERVICE_VERSION,
            "docs": "/swagger",
            "health": "/health",
        }

    return app


app = create_app()
