"""
FastAPI dependency injection helpers.

Identity comes from the upstream auth gateway as ``X-User-Id`` and
``X-User-Role`` headers and is trusted as-is.  Collaborator clients live on
``app.state`` (created in the lifespan) and are handed out from here, so
tests can swap any of them through ``app.dependency_overrides``.
"""

from typing import Iterable, Optional

from fastapi import BackgroundTasks, Depends, Header, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from petrotech.config import settings
from petrotech.domain.entities import Caller, NotificationJob
from petrotech.domain.enums import Role
from petrotech.domain.pricing import PricingEngine
from petrotech.infrastructure.database import async_session_factory
from petrotech.infrastructure.geocoding import GeocodingClient
from petrotech.infrastructure.locks import lock_factory
from petrotech.infrastructure.payment_gateway import PaymentGatewayClient
from petrotech.workers.notifier import NotificationDispatcher


async def get_db() -> AsyncSession:  # type: ignore[misc]
    """Yield an async DB session; commit on success, rollback on error."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


# ── Identity ──────────────────────────────────────────────────────────


def get_caller(
    x_user_id: Optional[int] = Header(None),
    x_user_role: Optional[str] = Header(None),
) -> Caller:
    if x_user_id is None or not x_user_role:
        raise HTTPException(status_code=401, detail="Authentication required")
    try:
        role = Role(x_user_role.upper())
    except ValueError:
        raise HTTPException(status_code=401, detail="Unknown role")
    return Caller(id=x_user_id, role=role)


def require_role(*roles: Role):
    def _check(caller: Caller = Depends(get_caller)) -> Caller:
        if caller.role not in roles:
            raise HTTPException(
                status_code=403,
                detail=f"{' or '.join(r.value.title() for r in roles)} access required",
            )
        return caller

    return _check


require_customer = require_role(Role.CUSTOMER)
require_driver = require_role(Role.DRIVER)
require_admin = require_role(Role.ADMIN)
require_driver_or_admin = require_role(Role.DRIVER, Role.ADMIN)


# ── Collaborators ─────────────────────────────────────────────────────


def get_pricing() -> PricingEngine:
    return PricingEngine.from_settings(settings)


def get_gateway(request: Request) -> PaymentGatewayClient:
    return request.app.state.gateway


def get_geocoder(request: Request) -> GeocodingClient:
    return request.app.state.geocoder


def get_dispatcher(request: Request) -> NotificationDispatcher:
    return request.app.state.notifier


def get_payout_lock(request: Request):
    return lock_factory(request.app.state.redis, settings.payout_lock_ttl_seconds)


async def publish_after_commit(
    db: AsyncSession,
    background: BackgroundTasks,
    dispatcher: NotificationDispatcher,
    jobs: Iterable[NotificationJob],
) -> None:
    """
    Commit the unit of work, then hand *jobs* to the notifier once the
    response is sent.  Nothing is announced for a change that never
    committed; the commit in ``get_db`` is then a no-op.
    """
    jobs = list(jobs)
    await db.commit()
    if jobs:
        background.add_task(dispatcher.enqueue, jobs)
