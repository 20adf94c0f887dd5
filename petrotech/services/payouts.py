"""
Earnings & payout ledger
========================

Concurrency safety
------------------
The available balance is derived (earned minus successful payouts), so two
concurrent payout requests could both pass the balance check.  Each
request therefore runs its read-validate-transfer-write sequence:

* under a **Redis distributed lock** ``lock:payout:<driver_id>``, which
  turns a parallel request away with 409 while the transfer is in flight;
* after a **SELECT ... FOR UPDATE** on the driver row, which makes a
  request that arrives between lock release and commit wait, and then
  recompute from committed rows.

Every attempted transfer leaves exactly one ledger row, SUCCEEDED or
FAILED; rejected requests leave none.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from petrotech.config import settings
from petrotech.domain.earnings import (
    EarningSource,
    EarningsSummary,
    summarize_earnings,
)
from petrotech.domain.enums import OrderKind, PayoutStatus
from petrotech.domain.errors import (
    ExternalServiceError,
    InsufficientBalance,
    NotFoundError,
    PayoutAccountMissing,
    ValidationError,
)
from petrotech.infrastructure.locks import DistributedLock
from petrotech.infrastructure.models import DriverModel, DriverPayoutModel
from petrotech.infrastructure.payment_gateway import PaymentGatewayClient
from petrotech.infrastructure.repositories import (
    ChargingOrderRepository,
    DriverRepository,
    OrderRepository,
    PayoutRepository,
)

from .payments import to_cents

logger = logging.getLogger(__name__)

TRANSFER_DESCRIPTION = "Driver earnings payout"


@dataclass
class PayoutAccountStatus:
    has_account: bool
    charges_enabled: bool = False
    payouts_enabled: bool = False
    details_submitted: bool = False


class PayoutService:
    def __init__(
        self,
        session: AsyncSession,
        gateway: Optional[PaymentGatewayClient] = None,
        lock: Optional[Callable[[str], DistributedLock]] = None,
        min_payout: Optional[float] = None,
    ):
        self.session = session
        self.gateway = gateway
        self.lock = lock
        self.min_payout = settings.min_payout_amount if min_payout is None else min_payout
        self.drivers = DriverRepository(session)
        self.payouts = PayoutRepository(session)

    async def _driver(self, driver_id: int, for_update: bool = False) -> DriverModel:
        if for_update:
            driver = await self.drivers.get_for_update(driver_id)
        else:
            driver = await self.drivers.get_by_id(driver_id)
        if driver is None:
            raise NotFoundError("Driver not found")
        return driver

    # ── Earnings ──────────────────────────────────────────────────────

    async def compute_earnings(self, driver_id: int) -> EarningsSummary:
        fuel = await OrderRepository(self.session).earning_orders(driver_id)
        charging = await ChargingOrderRepository(self.session).earning_orders(driver_id)

        sources = [
            EarningSource(
                id=o.id,
                order_number=o.order_number,
                kind=OrderKind.FUEL,
                delivery_fee=o.delivery_fee,
                tip=o.tip,
                completed_at=o.delivered_at or o.updated_at,
            )
            for o in fuel
        ] + [
            EarningSource(
                id=o.id,
                order_number=o.order_number,
                kind=OrderKind.CHARGING,
                delivery_fee=o.delivery_fee,
                tip=o.tip,
                completed_at=o.completed_at or o.updated_at,
            )
            for o in charging
        ]
        paid_out = await self.payouts.succeeded_amounts(driver_id)
        return summarize_earnings(sources, paid_out, min_payout=self.min_payout)

    # ── Payouts ───────────────────────────────────────────────────────

    async def request_payout(self, driver_id: int, amount: float) -> DriverPayoutModel:
        """
        Transfer *amount* to the driver's connected account.

        Returns the ledger row; check ``status`` for the transfer outcome.
        Raises before writing anything when the request itself is invalid.
        """
        amount = round(amount, 2)
        if amount <= 0:
            raise ValidationError("Payout amount must be positive")
        if amount < self.min_payout:
            raise ValidationError(f"Minimum payout is ${self.min_payout:.2f}")

        async with self.lock(f"payout:{driver_id}"):
            driver = await self._driver(driver_id, for_update=True)
            if not driver.payout_account_id:
                raise PayoutAccountMissing(
                    "Connect a payout account before requesting a payout"
                )

            summary = await self.compute_earnings(driver_id)
            if amount > summary.available_balance:
                raise InsufficientBalance(
                    f"Requested {amount:.2f} exceeds available balance "
                    f"{summary.available_balance:.2f}"
                )

            try:
                transfer_id = await self.gateway.create_transfer(
                    to_cents(amount), driver.payout_account_id, TRANSFER_DESCRIPTION
                )
            except ExternalServiceError as exc:
                logger.warning("Payout of %.2f to driver %d failed: %s", amount, driver_id, exc.message)
                return await self.payouts.create(
                    DriverPayoutModel(
                        driver_id=driver_id,
                        amount=amount,
                        status=PayoutStatus.FAILED,
                        failure_reason=exc.message,
                    )
                )

            payout = await self.payouts.create(
                DriverPayoutModel(
                    driver_id=driver_id,
                    amount=amount,
                    status=PayoutStatus.SUCCEEDED,
                    external_transfer_id=transfer_id,
                )
            )
            logger.info(
                "Payout %d: %.2f to driver %d (transfer %s)",
                payout.id,
                amount,
                driver_id,
                transfer_id,
            )
            return payout

    async def history(self, driver_id: int) -> list[DriverPayoutModel]:
        return await self.payouts.list_for_driver(driver_id)

    # ── Connected account ─────────────────────────────────────────────

    async def start_onboarding(
        self, driver_id: int, refresh_url: str, return_url: str
    ) -> str:
        """Create the connected account on first use; return an onboarding link."""
        driver = await self._driver(driver_id, for_update=True)
        if not driver.payout_account_id:
            driver.payout_account_id = await self.gateway.create_connected_account(
                driver.email
            )
            await self.session.flush()
            logger.info("Payout account created for driver %d", driver_id)
        return await self.gateway.create_account_link(
            driver.payout_account_id, refresh_url, return_url
        )

    async def account_status(self, driver_id: int) -> PayoutAccountStatus:
        driver = await self._driver(driver_id)
        if not driver.payout_account_id:
            return PayoutAccountStatus(has_account=False)
        account = await self.gateway.retrieve_account(driver.payout_account_id)
        return PayoutAccountStatus(
            has_account=True,
            charges_enabled=bool(account.get("charges_enabled")),
            payouts_enabled=bool(account.get("payouts_enabled")),
            details_submitted=bool(account.get("details_submitted")),
        )
