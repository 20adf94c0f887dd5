"""
FastAPI application factory.

* Registers the customer, driver, payment and admin routers.
* Owns the outbound clients (Redis, payment gateway, geocoder, push) and
  the background notification worker via lifespan events.
* Renders every ``DomainError`` as ``{"error": code, "detail": message}``.
* Applies rate-limiting middleware.
* Swagger / OpenAPI UI available at ``/docs``.
"""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from petrotech.api.middleware import limiter
from petrotech.api.routes import (
    addresses,
    admin,
    catalog,
    charging,
    devices,
    drivers,
    orders,
    payments,
)
from petrotech.config import settings
from petrotech.domain.errors import DomainError
from petrotech.infrastructure.database import async_session_factory
from petrotech.infrastructure.geocoding import GeocodingClient
from petrotech.infrastructure.payment_gateway import PaymentGatewayClient
from petrotech.infrastructure.push import PushClient
from petrotech.infrastructure.redis_client import create_redis
from petrotech.workers.notifier import NotificationDispatcher

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the outbound clients and start the notifier; tear down on shutdown."""
    app.state.redis = create_redis(settings.redis_url)
    app.state.gateway = PaymentGatewayClient(
        settings.stripe_secret_key,
        api_base=settings.stripe_api_base or None,
        timeout=settings.stripe_timeout_seconds,
        webhook_secret=settings.stripe_webhook_secret,
    )
    app.state.geocoder = GeocodingClient(
        settings.geocoding_base_url,
        settings.geocoding_user_agent,
        timeout=settings.geocoding_timeout_seconds,
        cache=app.state.redis,
        cache_ttl=settings.reverse_geocode_cache_ttl_seconds,
    )
    push = PushClient(settings.push_host, timeout=settings.push_timeout_seconds)
    app.state.notifier = NotificationDispatcher(
        async_session_factory, push, settings.notification_queue_size
    )
    await app.state.notifier.start()
    yield
    await app.state.notifier.stop()
    await push.close()
    await app.state.geocoder.close()
    await app.state.gateway.close()
    await app.state.redis.aclose()


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.code, "detail": exc.message},
    )


def create_app() -> FastAPI:
    app = FastAPI(
        title="Petrotech Delivery API",
        description=(
            "On-demand fuel delivery and mobile EV charging.  Prices orders, "
            "drives them through their lifecycles, dispatches drivers, keeps "
            "payments in sync with the gateway and pays drivers out."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_exception_handler(DomainError, domain_error_handler)

    # Routers
    for module in (catalog, addresses, orders, charging, drivers, devices, payments, admin):
        app.include_router(module.router, prefix="/api/v1")

    return app
