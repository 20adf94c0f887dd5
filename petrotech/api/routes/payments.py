"""
Payment endpoints
=================

POST /api/v1/payments/intents  -- start an online payment for my order
POST /api/v1/payments/confirm  -- sync an intent's outcome after checkout
POST /api/v1/payments/webhook  -- signed gateway callbacks (no caller identity)
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from petrotech.api.dependencies import (
    get_db,
    get_dispatcher,
    get_gateway,
    publish_after_commit,
    require_customer,
)
from petrotech.api.middleware import limiter
from petrotech.api.schemas import (
    ConfirmPaymentRequest,
    ConfirmPaymentResponse,
    PaymentIntentRequest,
    PaymentIntentResponse,
    WebhookResponse,
)
from petrotech.config import settings
from petrotech.domain.entities import Caller
from petrotech.infrastructure.payment_gateway import PaymentGatewayClient
from petrotech.services.payments import PaymentService
from petrotech.workers.notifier import NotificationDispatcher

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post(
    "/intents",
    response_model=PaymentIntentResponse,
    summary="Create a payment intent for an order",
)
@limiter.limit(settings.rate_limit)
async def create_intent(
    request: Request,
    body: PaymentIntentRequest,
    caller: Caller = Depends(require_customer),
    db: AsyncSession = Depends(get_db),
    gateway: PaymentGatewayClient = Depends(get_gateway),
):
    result = await PaymentService(db, gateway).create_intent(
        body.order_type, body.order_id, caller.id
    )
    return PaymentIntentResponse(
        client_secret=result.client_secret,
        payment_intent_id=result.payment_intent_id,
    )


@router.post(
    "/confirm",
    response_model=ConfirmPaymentResponse,
    summary="Confirm a payment after checkout",
    description="Idempotent: confirming an already-paid order changes nothing.",
)
@limiter.limit(settings.rate_limit)
async def confirm_payment(
    request: Request,
    body: ConfirmPaymentRequest,
    background: BackgroundTasks,
    caller: Caller = Depends(require_customer),
    db: AsyncSession = Depends(get_db),
    gateway: PaymentGatewayClient = Depends(get_gateway),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    result, jobs = await PaymentService(db, gateway).confirm(
        body.payment_intent_id, caller.id
    )
    await publish_after_commit(db, background, dispatcher, jobs)
    return ConfirmPaymentResponse(
        success=result.success,
        order_id=result.order_id,
        order_type=result.order_type,
        payment_intent_id=result.payment_intent_id,
        status=result.status,
    )


@router.post("/webhook", response_model=WebhookResponse, summary="Gateway webhook")
async def webhook(
    request: Request,
    background: BackgroundTasks,
    stripe_signature: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db),
    gateway: PaymentGatewayClient = Depends(get_gateway),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    payload = await request.body()
    _, jobs = await PaymentService(db, gateway).handle_webhook(payload, stripe_signature)
    await publish_after_commit(db, background, dispatcher, jobs)
    return WebhookResponse()
