"""
Domain value objects shared by the services.

- ``Caller``: who is acting, and in which role.
- ``Location`` with range validation for driver pings.
- ``new_order_number`` for the human-facing order identifiers.
- ``NotificationJob``: a side effect produced by a command and dispatched
  only after the command's unit of work has committed.
"""

from __future__ import annotations

import random
import string
import time
from dataclasses import dataclass, field
from typing import Any, Optional

from .enums import OrderKind, Role
from .errors import ValidationError

ORDER_NUMBER_PREFIX = {OrderKind.FUEL: "PT", OrderKind.CHARGING: "CHG"}

_SUFFIX_ALPHABET = string.ascii_uppercase + string.digits


def new_order_number(kind: OrderKind, now_ms: Optional[int] = None) -> str:
    """``<prefix>-<epoch millis>-<6 random [A-Z0-9]>``."""
    now_ms = int(time.time() * 1000) if now_ms is None else now_ms
    suffix = "".join(random.choices(_SUFFIX_ALPHABET, k=6))
    return f"{ORDER_NUMBER_PREFIX[OrderKind(kind)]}-{now_ms}-{suffix}"


# ── Value Objects ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class Caller:
    """Identity of the authenticated principal, as asserted upstream."""

    id: int
    role: Role


@dataclass(frozen=True)
class Location:
    latitude: float
    longitude: float

    def __post_init__(self):
        if not -90 <= self.latitude <= 90:
            raise ValidationError("latitude must be between -90 and 90")
        if not -180 <= self.longitude <= 180:
            raise ValidationError("longitude must be between -180 and 180")


# ── Side effects ──────────────────────────────────────────────────────


@dataclass(frozen=True)
class NotificationJob:
    """
    A push notification to a customer (``user_id``) or a driver
    (``driver_id``).  Driver jobs are also written to the driver's
    notification history when ``persist`` is set.
    """

    title: str
    body: str
    type: str
    user_id: Optional[int] = None
    driver_id: Optional[int] = None
    data: dict[str, Any] = field(default_factory=dict)
    persist: bool = False
