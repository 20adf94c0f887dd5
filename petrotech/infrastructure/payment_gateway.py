"""
Payment gateway client (Stripe SDK, async calls over its ``httpx`` client).

The core only keeps the gateway's id references and the last outcome it
was told about; every call here is a thin request/response mapping.
Amounts cross this boundary in cents.  Any ``StripeError`` is raised as
``ExternalServiceError`` with the gateway's message.
"""

from __future__ import annotations

import logging
from typing import Optional

import stripe

from petrotech.domain.errors import ExternalServiceError, ValidationError

logger = logging.getLogger(__name__)

SIGNATURE_TOLERANCE_SECONDS = 300


class PaymentGatewayClient:
    def __init__(
        self,
        secret_key: str,
        api_base: Optional[str] = None,
        timeout: float = 10.0,
        webhook_secret: str = "",
        stripe_client: Optional[stripe.StripeClient] = None,
    ):
        self.webhook_secret = webhook_secret
        self.http_client: Optional[stripe.HTTPXClient] = None
        if stripe_client is None and secret_key:
            self.http_client = stripe.HTTPXClient(timeout=timeout)
            options = {"base_addresses": {"api": api_base}} if api_base else {}
            stripe_client = stripe.StripeClient(
                secret_key, http_client=self.http_client, **options
            )
        self.stripe = stripe_client
        if self.stripe is None:
            logger.warning("Payment gateway secret key is not set; payments disabled")

    async def close(self) -> None:
        if self.http_client is not None:
            await self.http_client.close_async()

    async def _call(self, operation: str, call):
        if self.stripe is None:
            raise ExternalServiceError("Payment gateway is not configured")
        try:
            return await call(self.stripe)
        except stripe.APIConnectionError as exc:
            logger.warning("Payment gateway %s failed: %s", operation, exc)
            raise ExternalServiceError("Payment gateway unreachable") from exc
        except stripe.StripeError as exc:
            message = exc.user_message or str(exc)
            logger.warning("Payment gateway %s -> %s: %s", operation, exc.http_status, message)
            raise ExternalServiceError(message) from exc

    # ── Charges ───────────────────────────────────────────────────────

    async def create_payment_intent(
        self,
        amount_cents: int,
        currency: str,
        metadata: dict[str, str],
        description: str,
    ):
        return await self._call(
            "create_payment_intent",
            lambda client: client.payment_intents.create_async(
                params={
                    "amount": amount_cents,
                    "currency": currency.lower(),
                    "metadata": metadata,
                    "description": description,
                    "automatic_payment_methods": {"enabled": True},
                }
            ),
        )

    async def retrieve_payment_intent(self, payment_intent_id: str):
        return await self._call(
            "retrieve_payment_intent",
            lambda client: client.payment_intents.retrieve_async(payment_intent_id),
        )

    async def create_refund(
        self, payment_intent_id: str, amount_cents: Optional[int] = None
    ):
        params = {"payment_intent": payment_intent_id}
        if amount_cents is not None:
            params["amount"] = amount_cents
        return await self._call(
            "create_refund", lambda client: client.refunds.create_async(params=params)
        )

    # ── Connected payout accounts ─────────────────────────────────────

    async def create_connected_account(self, email: str) -> str:
        account = await self._call(
            "create_connected_account",
            lambda client: client.accounts.create_async(
                params={
                    "type": "express",
                    "country": "US",
                    "email": email,
                    "capabilities": {"transfers": {"requested": True}},
                }
            ),
        )
        return account["id"]

    async def create_account_link(
        self, account_id: str, refresh_url: str, return_url: str
    ) -> str:
        link = await self._call(
            "create_account_link",
            lambda client: client.account_links.create_async(
                params={
                    "account": account_id,
                    "refresh_url": refresh_url,
                    "return_url": return_url,
                    "type": "account_onboarding",
                }
            ),
        )
        return link["url"]

    async def retrieve_account(self, account_id: str):
        return await self._call(
            "retrieve_account", lambda client: client.accounts.retrieve_async(account_id)
        )

    async def create_transfer(
        self, amount_cents: int, destination: str, description: str
    ) -> str:
        transfer = await self._call(
            "create_transfer",
            lambda client: client.transfers.create_async(
                params={
                    "amount": amount_cents,
                    "currency": "usd",
                    "destination": destination,
                    "description": description,
                }
            ),
        )
        return transfer["id"]

    # ── Webhooks ──────────────────────────────────────────────────────

    def construct_event(self, payload: bytes, signature: Optional[str]):
        """Verify the ``Stripe-Signature`` header and decode the event."""
        if not signature or not self.webhook_secret:
            raise ValidationError("Missing webhook signature or secret")
        try:
            return stripe.Webhook.construct_event(
                payload,
                signature,
                self.webhook_secret,
                tolerance=SIGNATURE_TOLERANCE_SECONDS,
            )
        except stripe.SignatureVerificationError as exc:
            raise ValidationError(f"Webhook signature verification failed: {exc}")
        except ValueError:
            raise ValidationError("Webhook payload is not JSON")
