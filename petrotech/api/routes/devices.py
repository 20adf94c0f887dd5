"""
Device endpoints
================

POST /api/v1/push-tokens -- register this device for push notifications
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from petrotech.api.dependencies import get_caller, get_db
from petrotech.api.middleware import limiter
from petrotech.api.schemas import PushTokenRequest, PushTokenResponse
from petrotech.config import settings
from petrotech.domain.entities import Caller
from petrotech.domain.enums import Role
from petrotech.infrastructure.repositories import PushTokenRepository

router = APIRouter(prefix="/push-tokens", tags=["devices"])


@router.post("", status_code=201, response_model=PushTokenResponse, summary="Register a push token")
@limiter.limit(settings.rate_limit)
async def register_push_token(
    request: Request,
    body: PushTokenRequest,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    owner = (
        {"driver_id": caller.id}
        if caller.role == Role.DRIVER
        else {"user_id": caller.id}
    )
    return await PushTokenRepository(db).register(body.token, body.platform, **owner)
