"""
Admin / observability endpoints
===============================

GET    /api/v1/admin/orders                          -- all fuel orders (filter by status)
GET    /api/v1/admin/orders/{order_id}               -- any fuel order, with internal markup
PATCH  /api/v1/admin/orders/{order_id}/status        -- move along the state machine
POST   /api/v1/admin/orders/{order_id}/assign        -- assign a driver
POST   /api/v1/admin/orders/{order_id}/refund        -- refund an online payment
GET    /api/v1/admin/charging                        -- all charging orders
GET    /api/v1/admin/charging/{order_id}             -- any charging order
PATCH  /api/v1/admin/charging/{order_id}/status      -- move along the state machine
POST   /api/v1/admin/charging/{order_id}/assign      -- assign a driver (and unit)
POST   /api/v1/admin/charging/{order_id}/refund      -- refund an online payment
GET    /api/v1/admin/drivers                         -- roster (``available_only`` filter)
POST   /api/v1/admin/drivers                         -- add a driver
PATCH  /api/v1/admin/drivers/{driver_id}             -- edit / (de)activate a driver
DELETE /api/v1/admin/drivers/{driver_id}             -- remove a driver with no active orders
GET    /api/v1/admin/drivers/{driver_id}/earnings    -- a driver's earnings summary
GET    /api/v1/admin/products                        -- whole catalogue, base prices
POST   /api/v1/admin/products                        -- add a product
PUT    /api/v1/admin/products/{product_id}           -- edit price, name or availability
DELETE /api/v1/admin/products/{product_id}           -- remove a product no order uses
GET    /api/v1/admin/health                          -- simple health check
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from petrotech.api.dependencies import (
    get_db,
    get_dispatcher,
    get_gateway,
    publish_after_commit,
    require_admin,
)
from petrotech.api.middleware import limiter
from petrotech.api.schemas import (
    AdminOrderPage,
    AdminOrderResponse,
    AssignDriverRequest,
    ChargingOrderPage,
    ChargingOrderResponse,
    ChargingStatusUpdateRequest,
    DriverCreateRequest,
    DriverResponse,
    DriverUpdateRequest,
    EarningsResponse,
    HealthResponse,
    OrderStatusUpdateRequest,
    ProductCreateRequest,
    ProductResponse,
    ProductUpdateRequest,
    RefundRequest,
    RefundResponse,
)
from petrotech.config import settings
from petrotech.domain.entities import Caller
from petrotech.domain.enums import ChargingOrderStatus, OrderKind, OrderStatus
from petrotech.infrastructure.payment_gateway import PaymentGatewayClient
from petrotech.services.charging import ChargingService
from petrotech.services.catalog import ProductService
from petrotech.services.dispatch import DispatchService
from petrotech.services.orders import OrderService
from petrotech.services.payments import PaymentService
from petrotech.services.payouts import PayoutService
from petrotech.workers.notifier import NotificationDispatcher

router = APIRouter(prefix="/admin", tags=["admin"])


# ── Fuel orders ───────────────────────────────────────────────────────


@router.get("/orders", response_model=AdminOrderPage, summary="List all fuel orders")
@limiter.limit(settings.rate_limit)
async def list_orders(
    request: Request,
    status: Optional[OrderStatus] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    caller: Caller = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    orders, total = await OrderService(db).list_all(status, page, limit)
    return AdminOrderPage(
        orders=[AdminOrderResponse.model_validate(o) for o in orders],
        total=total,
        page=page,
        limit=limit,
    )


@router.get("/orders/{order_id}", response_model=AdminOrderResponse, summary="Get a fuel order")
@limiter.limit(settings.rate_limit)
async def get_order(
    request: Request,
    order_id: int,
    caller: Caller = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await OrderService(db).get(order_id, caller)


@router.patch(
    "/orders/{order_id}/status",
    response_model=AdminOrderResponse,
    summary="Change a fuel order's status",
    description="Any edge of the order state machine; terminal orders stay terminal.",
)
@limiter.limit(settings.rate_limit)
async def update_order_status(
    request: Request,
    order_id: int,
    body: OrderStatusUpdateRequest,
    background: BackgroundTasks,
    caller: Caller = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    order, jobs = await OrderService(db).change_status(
        order_id, body.status, caller, reason=body.reason
    )
    await publish_after_commit(db, background, dispatcher, jobs)
    return order


@router.post(
    "/orders/{order_id}/assign",
    response_model=AdminOrderResponse,
    summary="Assign a driver to a fuel order",
    responses={409: {"description": "Driver unavailable or order already closed."}},
)
@limiter.limit(settings.rate_limit)
async def assign_order(
    request: Request,
    order_id: int,
    body: AssignDriverRequest,
    background: BackgroundTasks,
    caller: Caller = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    order, jobs = await DispatchService(db).assign_driver(
        OrderKind.FUEL, order_id, body.driver_id, body.charging_unit_id
    )
    await publish_after_commit(db, background, dispatcher, jobs)
    return order


@router.post("/orders/{order_id}/refund", response_model=RefundResponse, summary="Refund a fuel order")
@limiter.limit(settings.rate_limit)
async def refund_order(
    request: Request,
    order_id: int,
    body: RefundRequest,
    caller: Caller = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    gateway: PaymentGatewayClient = Depends(get_gateway),
):
    order, refund_status = await PaymentService(db, gateway).refund(
        OrderKind.FUEL, order_id, body.amount
    )
    return RefundResponse(
        order_id=order.id, refund_status=refund_status, payment_status=order.payment_status
    )


# ── Charging orders ───────────────────────────────────────────────────


@router.get("/charging", response_model=ChargingOrderPage, summary="List all charging orders")
@limiter.limit(settings.rate_limit)
async def list_charging_orders(
    request: Request,
    status: Optional[ChargingOrderStatus] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    caller: Caller = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    orders, total = await ChargingService(db).list_all(status, page, limit)
    return ChargingOrderPage(
        orders=[ChargingOrderResponse.model_validate(o) for o in orders],
        total=total,
        page=page,
        limit=limit,
    )


@router.get(
    "/charging/{order_id}", response_model=ChargingOrderResponse, summary="Get a charging order"
)
@limiter.limit(settings.rate_limit)
async def get_charging_order(
    request: Request,
    order_id: int,
    caller: Caller = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await ChargingService(db).get(order_id, caller)


@router.patch(
    "/charging/{order_id}/status",
    response_model=ChargingOrderResponse,
    summary="Change a charging order's status",
)
@limiter.limit(settings.rate_limit)
async def update_charging_status(
    request: Request,
    order_id: int,
    body: ChargingStatusUpdateRequest,
    background: BackgroundTasks,
    caller: Caller = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    order, jobs = await ChargingService(db).change_status(
        order_id, body.status, caller, reason=body.reason
    )
    await publish_after_commit(db, background, dispatcher, jobs)
    return order


@router.post(
    "/charging/{order_id}/assign",
    response_model=ChargingOrderResponse,
    summary="Assign a driver (and optionally a charging unit)",
)
@limiter.limit(settings.rate_limit)
async def assign_charging_order(
    request: Request,
    order_id: int,
    body: AssignDriverRequest,
    background: BackgroundTasks,
    caller: Caller = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    order, jobs = await DispatchService(db).assign_driver(
        OrderKind.CHARGING, order_id, body.driver_id, body.charging_unit_id
    )
    await publish_after_commit(db, background, dispatcher, jobs)
    return order


@router.post(
    "/charging/{order_id}/refund", response_model=RefundResponse, summary="Refund a charging order"
)
@limiter.limit(settings.rate_limit)
async def refund_charging_order(
    request: Request,
    order_id: int,
    body: RefundRequest,
    caller: Caller = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    gateway: PaymentGatewayClient = Depends(get_gateway),
):
    order, refund_status = await PaymentService(db, gateway).refund(
        OrderKind.CHARGING, order_id, body.amount
    )
    return RefundResponse(
        order_id=order.id, refund_status=refund_status, payment_status=order.payment_status
    )


# ── Drivers ───────────────────────────────────────────────────────────


@router.get("/drivers", response_model=list[DriverResponse], summary="List drivers")
@limiter.limit(settings.rate_limit)
async def list_drivers(
    request: Request,
    available_only: bool = False,
    caller: Caller = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await DispatchService(db).list_drivers(available_only)


@router.post("/drivers", status_code=201, response_model=DriverResponse, summary="Add a driver")
@limiter.limit(settings.rate_limit)
async def create_driver(
    request: Request,
    body: DriverCreateRequest,
    caller: Caller = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await DispatchService(db).create_driver(**body.model_dump())


@router.patch("/drivers/{driver_id}", response_model=DriverResponse, summary="Edit a driver")
@limiter.limit(settings.rate_limit)
async def update_driver(
    request: Request,
    driver_id: int,
    body: DriverUpdateRequest,
    caller: Caller = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await DispatchService(db).update_driver(
        driver_id, **body.model_dump(exclude_unset=True)
    )


@router.delete("/drivers/{driver_id}", status_code=204, summary="Remove a driver")
@limiter.limit(settings.rate_limit)
async def delete_driver(
    request: Request,
    driver_id: int,
    caller: Caller = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    await DispatchService(db).delete_driver(driver_id)
    return Response(status_code=204)


@router.get(
    "/drivers/{driver_id}/earnings",
    response_model=EarningsResponse,
    summary="A driver's earnings summary",
)
@limiter.limit(settings.rate_limit)
async def driver_earnings(
    request: Request,
    driver_id: int,
    caller: Caller = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    service = PayoutService(db)
    await DispatchService(db).get_driver(driver_id)
    return await service.compute_earnings(driver_id)


# ── Products ──────────────────────────────────────────────────────────


@router.get("/products", response_model=list[ProductResponse], summary="List the whole catalogue")
@limiter.limit(settings.rate_limit)
async def list_products(
    request: Request,
    caller: Caller = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await ProductService(db).list_all()


@router.post(
    "/products", status_code=201, response_model=ProductResponse, summary="Add a product"
)
@limiter.limit(settings.rate_limit)
async def create_product(
    request: Request,
    body: ProductCreateRequest,
    caller: Caller = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await ProductService(db).create(**body.model_dump())


@router.put(
    "/products/{product_id}",
    response_model=ProductResponse,
    summary="Edit a product",
    description="Price changes apply to new orders; placed orders keep their unit price.",
)
@limiter.limit(settings.rate_limit)
async def update_product(
    request: Request,
    product_id: int,
    body: ProductUpdateRequest,
    caller: Caller = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await ProductService(db).update(
        product_id, **body.model_dump(exclude_unset=True, exclude_none=True)
    )


@router.delete(
    "/products/{product_id}",
    status_code=204,
    summary="Remove a product",
    responses={409: {"description": "Product appears on orders."}},
)
@limiter.limit(settings.rate_limit)
async def delete_product(
    request: Request,
    product_id: int,
    caller: Caller = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    await ProductService(db).delete(product_id)
    return Response(status_code=204)


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health():
    return HealthResponse()
