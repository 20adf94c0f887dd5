"""
Driver earnings accrual.

A driver earns ``delivery_fee + tip`` on every fuel order that is
DELIVERED and PAID and on every charging order that is COMPLETED and PAID.
The available balance is the accrued total minus successful payouts,
floored at zero.  Accrual is derived from order state, so replaying a
payment callback can never credit a driver twice.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, Optional

from .enums import OrderKind

MIN_PAYOUT_AMOUNT = 5.0
RECENT_EARNINGS_LIMIT = 20


@dataclass(frozen=True)
class EarningSource:
    """One qualifying order as seen by the ledger."""

    id: int
    order_number: str
    kind: OrderKind
    delivery_fee: float
    tip: float
    completed_at: Optional[datetime]

    @property
    def amount(self) -> float:
        return round((self.delivery_fee or 0.0) + (self.tip or 0.0), 2)


@dataclass(frozen=True)
class RecentEarning:
    id: int
    order_number: str
    type: OrderKind
    amount: float
    completed_at: Optional[datetime]


@dataclass
class EarningsSummary:
    total_earned: float
    total_paid_out: float
    available_balance: float
    can_withdraw: bool
    min_payout_amount: float
    recent_earnings: list[RecentEarning] = field(default_factory=list)


def _completion_key(stamp: Optional[datetime]) -> tuple[bool, datetime]:
    if stamp is None:
        return (False, datetime.min)
    if stamp.tzinfo is not None:
        # some backends hand back naive UTC, some aware
        stamp = stamp.astimezone(timezone.utc).replace(tzinfo=None)
    return (True, stamp)


def summarize_earnings(
    sources: Iterable[EarningSource],
    paid_out: Iterable[float],
    min_payout: float = MIN_PAYOUT_AMOUNT,
    recent_limit: int = RECENT_EARNINGS_LIMIT,
) -> EarningsSummary:
    sources = list(sources)
    total_earned = round(sum(s.amount for s in sources), 2)
    total_paid_out = round(sum(paid_out), 2)
    available = round(max(0.0, total_earned - total_paid_out), 2)

    recent = [
        RecentEarning(
            id=s.id,
            order_number=s.order_number,
            type=s.kind,
            amount=s.amount,
            completed_at=s.completed_at,
        )
        for s in sources
        if s.amount > 0
    ]
    # newest first; orders without a completion stamp sink to the bottom
    recent.sort(key=lambda r: _completion_key(r.completed_at), reverse=True)

    return EarningsSummary(
        total_earned=total_earned,
        total_paid_out=total_paid_out,
        available_balance=available,
        can_withdraw=available >= min_payout,
        min_payout_amount=min_payout,
        recent_earnings=recent[:recent_limit],
    )
