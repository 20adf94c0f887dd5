"""
Charging order endpoints (customer)
===================================

GET   /api/v1/charging/prices                -- per-car price table
POST  /api/v1/charging                       -- book a charging session
GET   /api/v1/charging                       -- my charging orders (paginated)
GET   /api/v1/charging/{order_id}            -- one of my charging orders
PATCH /api/v1/charging/{order_id}/cancel     -- cancel until completed
GET   /api/v1/charging/{order_id}/tracking   -- live driver position
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from petrotech.api.dependencies import (
    get_db,
    get_dispatcher,
    get_geocoder,
    get_pricing,
    publish_after_commit,
    require_customer,
)
from petrotech.api.middleware import limiter
from petrotech.api.schemas import (
    CancelRequest,
    ChargingOrderCreateRequest,
    ChargingOrderPage,
    ChargingOrderResponse,
    ChargingPriceResponse,
    TrackingResponse,
)
from petrotech.config import settings
from petrotech.domain.entities import Caller
from petrotech.domain.enums import OrderKind
from petrotech.domain.pricing import PricingEngine
from petrotech.infrastructure.geocoding import GeocodingClient
from petrotech.services.charging import MAX_CARS, ChargingService, price_table
from petrotech.services.dispatch import DispatchService
from petrotech.workers.notifier import NotificationDispatcher

router = APIRouter(prefix="/charging", tags=["charging"])


@router.get("/prices", response_model=ChargingPriceResponse, summary="Charging price table")
async def get_prices():
    return ChargingPriceResponse(prices=price_table(), max_cars=MAX_CARS)


@router.post(
    "",
    status_code=201,
    response_model=ChargingOrderResponse,
    summary="Book a charging session",
)
@limiter.limit(settings.rate_limit)
async def create_charging_order(
    request: Request,
    body: ChargingOrderCreateRequest,
    caller: Caller = Depends(require_customer),
    db: AsyncSession = Depends(get_db),
    pricing: PricingEngine = Depends(get_pricing),
):
    return await ChargingService(db, pricing).create_order(
        user_id=caller.id,
        address_id=body.address_id,
        charging_duration=body.charging_duration,
        number_of_cars=body.number_of_cars,
        car_ids=body.car_ids,
        payment_method=body.payment_method,
        tip=body.tip,
        scheduled_at=body.scheduled_at,
        notes=body.notes,
    )


@router.get("", response_model=ChargingOrderPage, summary="List my charging orders")
@limiter.limit(settings.rate_limit)
async def list_charging_orders(
    request: Request,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    caller: Caller = Depends(require_customer),
    db: AsyncSession = Depends(get_db),
):
    orders, total = await ChargingService(db).list_for_user(caller.id, page, limit)
    return ChargingOrderPage(
        orders=[ChargingOrderResponse.model_validate(o) for o in orders],
        total=total,
        page=page,
        limit=limit,
    )


@router.get(
    "/{order_id}",
    response_model=ChargingOrderResponse,
    summary="Get one of my charging orders",
)
@limiter.limit(settings.rate_limit)
async def get_charging_order(
    request: Request,
    order_id: int,
    caller: Caller = Depends(require_customer),
    db: AsyncSession = Depends(get_db),
):
    return await ChargingService(db).get(order_id, caller)


@router.patch(
    "/{order_id}/cancel",
    response_model=ChargingOrderResponse,
    summary="Cancel a charging order",
    description="Allowed until the session is COMPLETED.",
)
@limiter.limit(settings.rate_limit)
async def cancel_charging_order(
    request: Request,
    order_id: int,
    background: BackgroundTasks,
    body: Optional[CancelRequest] = None,
    caller: Caller = Depends(require_customer),
    db: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    order, jobs = await ChargingService(db).cancel(
        order_id, caller.id, body.reason if body else None
    )
    await publish_after_commit(db, background, dispatcher, jobs)
    return order


@router.get(
    "/{order_id}/tracking",
    response_model=TrackingResponse,
    summary="Track the driver on my charging order",
)
@limiter.limit(settings.rate_limit)
async def track_charging_order(
    request: Request,
    order_id: int,
    caller: Caller = Depends(require_customer),
    db: AsyncSession = Depends(get_db),
    geocoder: GeocodingClient = Depends(get_geocoder),
):
    return await DispatchService(db, geocoder).track(OrderKind.CHARGING, order_id, caller)
