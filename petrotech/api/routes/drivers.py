"""
Driver endpoints (driver app)
=============================

GET   /api/v1/drivers/me                                 -- my profile
PUT   /api/v1/drivers/me                                 -- edit my profile / availability
GET   /api/v1/drivers/me/orders                          -- fuel orders assigned to me
GET   /api/v1/drivers/me/orders/{order_id}               -- one assigned fuel order
PATCH /api/v1/drivers/me/orders/{order_id}/status        -- advance or cancel it
GET   /api/v1/drivers/me/charging                        -- charging orders assigned to me
GET   /api/v1/drivers/me/charging/{order_id}             -- one assigned charging order
PATCH /api/v1/drivers/me/charging/{order_id}/status      -- advance or cancel it
PUT   /api/v1/drivers/me/location                        -- report my position
GET   /api/v1/drivers/me/earnings                        -- earnings summary
GET   /api/v1/drivers/me/payouts                         -- payout history
POST  /api/v1/drivers/me/payouts                         -- request a payout
POST  /api/v1/drivers/me/payout-account/onboarding       -- connect a payout account
GET   /api/v1/drivers/me/payout-account                  -- payout account status
GET   /api/v1/drivers/me/notifications                   -- in-app notification history
"""

from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from petrotech.api.dependencies import (
    get_db,
    get_dispatcher,
    get_gateway,
    get_payout_lock,
    publish_after_commit,
    require_driver,
)
from petrotech.api.middleware import limiter
from petrotech.api.schemas import (
    ChargingOrderResponse,
    ChargingStatusUpdateRequest,
    DriverLocationResponse,
    DriverNotificationResponse,
    DriverProfileUpdateRequest,
    DriverResponse,
    EarningsResponse,
    LocationUpdateRequest,
    OnboardingLinkResponse,
    OrderResponse,
    OrderStatusUpdateRequest,
    PayoutAccountStatusResponse,
    PayoutRequest,
    PayoutResponse,
)
from petrotech.config import settings
from petrotech.domain.entities import Caller
from petrotech.domain.enums import PayoutStatus
from petrotech.infrastructure.payment_gateway import PaymentGatewayClient
from petrotech.infrastructure.repositories import DriverNotificationRepository
from petrotech.services.charging import ChargingService
from petrotech.services.dispatch import DispatchService
from petrotech.services.orders import OrderService
from petrotech.services.payouts import PayoutService
from petrotech.workers.notifier import NotificationDispatcher

router = APIRouter(prefix="/drivers/me", tags=["drivers"])


# ── Profile ───────────────────────────────────────────────────────────


@router.get("", response_model=DriverResponse, summary="My profile")
@limiter.limit(settings.rate_limit)
async def get_profile(
    request: Request,
    caller: Caller = Depends(require_driver),
    db: AsyncSession = Depends(get_db),
):
    return await DispatchService(db).get_driver(caller.id)


@router.put(
    "",
    response_model=DriverResponse,
    summary="Edit my profile",
    description="Email and activation are managed by admins.",
)
@limiter.limit(settings.rate_limit)
async def update_profile(
    request: Request,
    body: DriverProfileUpdateRequest,
    caller: Caller = Depends(require_driver),
    db: AsyncSession = Depends(get_db),
):
    return await DispatchService(db).update_driver(
        caller.id, **body.model_dump(exclude_unset=True, exclude_none=True)
    )


# ── Assigned orders ───────────────────────────────────────────────────


@router.get("/orders", response_model=list[OrderResponse], summary="My assigned fuel orders")
@limiter.limit(settings.rate_limit)
async def list_my_orders(
    request: Request,
    caller: Caller = Depends(require_driver),
    db: AsyncSession = Depends(get_db),
):
    return await OrderService(db).list_for_driver(caller.id)


@router.get("/orders/{order_id}", response_model=OrderResponse, summary="One assigned fuel order")
@limiter.limit(settings.rate_limit)
async def get_my_order(
    request: Request,
    order_id: int,
    caller: Caller = Depends(require_driver),
    db: AsyncSession = Depends(get_db),
):
    return await OrderService(db).get(order_id, caller)


@router.patch(
    "/orders/{order_id}/status",
    response_model=OrderResponse,
    summary="Update the status of an assigned fuel order",
)
@limiter.limit(settings.rate_limit)
async def update_my_order_status(
    request: Request,
    order_id: int,
    body: OrderStatusUpdateRequest,
    background: BackgroundTasks,
    caller: Caller = Depends(require_driver),
    db: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    order, jobs = await OrderService(db).change_status(
        order_id, body.status, caller, reason=body.reason
    )
    await publish_after_commit(db, background, dispatcher, jobs)
    return order


@router.get(
    "/charging", response_model=list[ChargingOrderResponse], summary="My assigned charging orders"
)
@limiter.limit(settings.rate_limit)
async def list_my_charging_orders(
    request: Request,
    caller: Caller = Depends(require_driver),
    db: AsyncSession = Depends(get_db),
):
    return await ChargingService(db).list_for_driver(caller.id)


@router.get(
    "/charging/{order_id}",
    response_model=ChargingOrderResponse,
    summary="One assigned charging order",
)
@limiter.limit(settings.rate_limit)
async def get_my_charging_order(
    request: Request,
    order_id: int,
    caller: Caller = Depends(require_driver),
    db: AsyncSession = Depends(get_db),
):
    return await ChargingService(db).get(order_id, caller)


@router.patch(
    "/charging/{order_id}/status",
    response_model=ChargingOrderResponse,
    summary="Update the status of an assigned charging order",
)
@limiter.limit(settings.rate_limit)
async def update_my_charging_status(
    request: Request,
    order_id: int,
    body: ChargingStatusUpdateRequest,
    background: BackgroundTasks,
    caller: Caller = Depends(require_driver),
    db: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    order, jobs = await ChargingService(db).change_status(
        order_id, body.status, caller, reason=body.reason
    )
    await publish_after_commit(db, background, dispatcher, jobs)
    return order


# ── Location ──────────────────────────────────────────────────────────


@router.put("/location", response_model=DriverLocationResponse, summary="Report my position")
@limiter.limit(settings.rate_limit)
async def update_location(
    request: Request,
    body: LocationUpdateRequest,
    caller: Caller = Depends(require_driver),
    db: AsyncSession = Depends(get_db),
):
    return await DispatchService(db).update_location(caller.id, **body.model_dump())


# ── Earnings & payouts ────────────────────────────────────────────────


@router.get("/earnings", response_model=EarningsResponse, summary="Earnings summary")
@limiter.limit(settings.rate_limit)
async def get_earnings(
    request: Request,
    caller: Caller = Depends(require_driver),
    db: AsyncSession = Depends(get_db),
):
    return await PayoutService(db).compute_earnings(
        caller.id
    )


@router.get("/payouts", response_model=list[PayoutResponse], summary="Payout history")
@limiter.limit(settings.rate_limit)
async def list_payouts(
    request: Request,
    caller: Caller = Depends(require_driver),
    db: AsyncSession = Depends(get_db),
):
    return await PayoutService(db).history(caller.id)


@router.post(
    "/payouts",
    status_code=201,
    response_model=PayoutResponse,
    summary="Request a payout",
    responses={
        409: {"description": "Insufficient balance or a payout already in progress."},
        502: {"description": "Transfer failed; a FAILED ledger row was recorded."},
    },
)
@limiter.limit(settings.rate_limit)
async def request_payout(
    request: Request,
    body: PayoutRequest,
    caller: Caller = Depends(require_driver),
    db: AsyncSession = Depends(get_db),
    gateway: PaymentGatewayClient = Depends(get_gateway),
    lock=Depends(get_payout_lock),
):
    service = PayoutService(db, gateway, lock)
    payout = await service.request_payout(caller.id, body.amount)
    if payout.status == PayoutStatus.FAILED:
        # FAILED rows are ledger entries and must survive the 502
        await db.commit()
        return JSONResponse(
            status_code=502,
            content={
                "error": "payout_failed",
                "detail": payout.failure_reason or "Transfer failed",
                "payout": PayoutResponse.model_validate(payout).model_dump(mode="json"),
            },
        )
    return payout


@router.post(
    "/payout-account/onboarding",
    response_model=OnboardingLinkResponse,
    summary="Start or resume payout account onboarding",
)
@limiter.limit(settings.rate_limit)
async def start_onboarding(
    request: Request,
    caller: Caller = Depends(require_driver),
    db: AsyncSession = Depends(get_db),
    gateway: PaymentGatewayClient = Depends(get_gateway),
):
    url = await PayoutService(db, gateway).start_onboarding(
        caller.id,
        settings.payout_onboarding_refresh_url,
        settings.payout_onboarding_return_url,
    )
    return OnboardingLinkResponse(url=url)


@router.get(
    "/payout-account",
    response_model=PayoutAccountStatusResponse,
    summary="Payout account status",
)
@limiter.limit(settings.rate_limit)
async def payout_account_status(
    request: Request,
    caller: Caller = Depends(require_driver),
    db: AsyncSession = Depends(get_db),
    gateway: PaymentGatewayClient = Depends(get_gateway),
):
    return await PayoutService(db, gateway).account_status(caller.id)


# ── Notifications ─────────────────────────────────────────────────────


@router.get(
    "/notifications",
    response_model=list[DriverNotificationResponse],
    summary="My notification history",
)
@limiter.limit(settings.rate_limit)
async def list_notifications(
    request: Request,
    caller: Caller = Depends(require_driver),
    db: AsyncSession = Depends(get_db),
):
    return await DriverNotificationRepository(db).list_for_driver(caller.id)
