"""
Fuel order endpoints (customer)
===============================

POST  /api/v1/orders                     -- place a fuel order
GET   /api/v1/orders                     -- my orders, newest first (paginated)
GET   /api/v1/orders/{order_id}          -- one of my orders
PATCH /api/v1/orders/{order_id}/cancel   -- cancel while PENDING or CONFIRMED
GET   /api/v1/orders/{order_id}/tracking -- live driver position
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
    OrderCreateRequest,
    OrderPage,
    OrderResponse,
    TrackingResponse,
)
from petrotech.config import settings
from petrotech.domain.entities import Caller
from petrotech.domain.enums import OrderKind
from petrotech.domain.pricing import PricingEngine
from petrotech.infrastructure.geocoding import GeocodingClient
from petrotech.services.dispatch import DispatchService
from petrotech.services.orders import OrderService
from petrotech.workers.notifier import NotificationDispatcher

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post(
    "",
    status_code=201,
    response_model=OrderResponse,
    summary="Place a fuel order",
    responses={422: {"description": "Invalid quantity, tip, or ungeocoded address."}},
)
@limiter.limit(settings.rate_limit)
async def create_order(
    request: Request,
    body: OrderCreateRequest,
    caller: Caller = Depends(require_customer),
    db: AsyncSession = Depends(get_db),
    pricing: PricingEngine = Depends(get_pricing),
):
    service = OrderService(db, pricing)
    return await service.create_order(
        user_id=caller.id,
        address_id=body.address_id,
        delivery_type=body.delivery_type,
        payment_method=body.payment_method,
        items=[(item.product_id, item.quantity) for item in body.items],
        tip=body.tip,
        delivery_date=body.delivery_date,
        notes=body.notes,
    )


@router.get("", response_model=OrderPage, summary="List my fuel orders")
@limiter.limit(settings.rate_limit)
async def list_orders(
    request: Request,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    caller: Caller = Depends(require_customer),
    db: AsyncSession = Depends(get_db),
):
    orders, total = await OrderService(db).list_for_user(caller.id, page, limit)
    return OrderPage(
        orders=[OrderResponse.model_validate(o) for o in orders],
        total=total,
        page=page,
        limit=limit,
    )


@router.get("/{order_id}", response_model=OrderResponse, summary="Get one of my orders")
@limiter.limit(settings.rate_limit)
async def get_order(
    request: Request,
    order_id: int,
    caller: Caller = Depends(require_customer),
    db: AsyncSession = Depends(get_db),
):
    return await OrderService(db).get(order_id, caller)


@router.patch(
    "/{order_id}/cancel",
    response_model=OrderResponse,
    summary="Cancel a fuel order",
    description="Allowed while the order is PENDING or CONFIRMED.",
)
@limiter.limit(settings.rate_limit)
async def cancel_order(
    request: Request,
    order_id: int,
    background: BackgroundTasks,
    body: Optional[CancelRequest] = None,
    caller: Caller = Depends(require_customer),
    db: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    order, jobs = await OrderService(db).cancel(
        order_id, caller.id, body.reason if body else None
    )
    await publish_after_commit(db, background, dispatcher, jobs)
    return order


@router.get(
    "/{order_id}/tracking",
    response_model=TrackingResponse,
    summary="Track the driver on my order",
)
@limiter.limit(settings.rate_limit)
async def track_order(
    request: Request,
    order_id: int,
    caller: Caller = Depends(require_customer),
    db: AsyncSession = Depends(get_db),
    geocoder: GeocodingClient = Depends(get_geocoder),
):
    return await DispatchService(db, geocoder).track(OrderKind.FUEL, order_id, caller)
