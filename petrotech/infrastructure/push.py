"""Expo push notification client (``exponent_server_sdk``)."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

import requests
from exponent_server_sdk import (
    DeviceNotRegisteredError,
    PushClient as ExpoPushClient,
    PushMessage,
    PushTicketError,
)

logger = logging.getLogger(__name__)

__all__ = ["PushClient", "PushMessage"]


class PushClient:
    """
    Async facade over the blocking Expo SDK.

    ``publish_multiple`` chunks by Expo's 100-message limit; the call runs
    in a worker thread so the event loop never blocks on it.
    """

    def __init__(
        self,
        host: Optional[str] = None,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "accept": "application/json",
                "accept-encoding": "gzip, deflate",
                "content-type": "application/json",
            }
        )
        self.expo = ExpoPushClient(host=host, session=self.session, timeout=timeout)

    async def close(self) -> None:
        self.session.close()

    async def send(self, messages: list[PushMessage]) -> list[str]:
        """
        Deliver *messages*.

        Returns the tokens Expo reported as ``DeviceNotRegistered`` so the
        caller can forget them.  Server and transport errors propagate.
        """
        tickets = await asyncio.to_thread(self.expo.publish_multiple, messages)
        stale: list[str] = []
        for ticket in tickets:
            try:
                ticket.validate_response()
            except DeviceNotRegisteredError:
                stale.append(ticket.push_message.to)
            except PushTicketError:
                logger.warning("Push to %s rejected: %s", ticket.push_message.to, ticket.message)
        if stale:
            logger.info("Push: %d device(s) no longer registered", len(stale))
        return stale
