"""
Background Notification Worker
==============================

Commands never push notifications themselves.  They return
``NotificationJob`` values, the route schedules them as a background task
(which runs only after the request's unit of work has committed), and the
task drops them on this worker's bounded queue.

Delivery semantics
------------------
* At most once: a full queue drops the job with a warning.
* A failing job is logged and skipped; it never reaches the command that
  produced it.
* Driver jobs with ``persist`` set are written to the driver's in-app
  notification history (own session) before the push is attempted.
* Tokens Expo reports as ``DeviceNotRegistered`` are deleted.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Iterable, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from petrotech.domain.entities import NotificationJob
from petrotech.infrastructure.models import DriverNotificationModel
from petrotech.infrastructure.push import PushClient, PushMessage
from petrotech.infrastructure.repositories import (
    DriverNotificationRepository,
    PushTokenRepository,
)

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        push: PushClient,
        maxsize: int = 1000,
    ):
        self.session_factory = session_factory
        self.push = push
        self.queue: asyncio.Queue[NotificationJob] = asyncio.Queue(maxsize=maxsize)
        self._task: Optional[asyncio.Task] = None

    # ── Public API ────────────────────────────────────────────────────

    async def start(self) -> None:
        self._task = asyncio.create_task(self._loop())
        logger.info("Notification worker started (queue size=%d)", self.queue.maxsize)

    async def stop(self) -> None:
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Notification worker stopped (%d job(s) dropped)", self.queue.qsize())

    async def enqueue(self, jobs: Iterable[NotificationJob]) -> int:
        """Queue *jobs* without waiting.  Returns how many were accepted."""
        accepted = 0
        for job in jobs:
            try:
                self.queue.put_nowait(job)
                accepted += 1
            except asyncio.QueueFull:
                logger.warning(
                    "Notification queue full; dropping %r for %s",
                    job.title,
                    f"driver {job.driver_id}" if job.driver_id else f"user {job.user_id}",
                )
        return accepted

    # ── Internals ─────────────────────────────────────────────────────

    async def _loop(self) -> None:
        while True:
            job = await self.queue.get()
            try:
                await self.deliver(job)
            except Exception:
                logger.exception("Notification %r failed", job.title)
            finally:
                self.queue.task_done()

    async def deliver(self, job: NotificationJob) -> None:
        async with self.session_factory() as session:
            tokens_repo = PushTokenRepository(session)

            if job.driver_id is not None and job.persist:
                await DriverNotificationRepository(session).create(
                    DriverNotificationModel(
                        driver_id=job.driver_id,
                        type=job.type,
                        title=job.title,
                        body=job.body,
                        data=json.dumps(job.data) if job.data else None,
                    )
                )
                await session.commit()

            if job.driver_id is not None:
                tokens = await tokens_repo.tokens_for(driver_id=job.driver_id)
            else:
                tokens = await tokens_repo.tokens_for(user_id=job.user_id)
            if not tokens:
                logger.debug("No push tokens for %r", job.title)
                return

            stale = await self.push.send(
                [
                    PushMessage(
                        to=token,
                        title=job.title,
                        body=job.body,
                        data=job.data,
                        sound="default",
                        priority="high",
                    )
                    for token in tokens
                ]
            )
            if stale:
                await tokens_repo.delete_tokens(stale)
                await session.commit()
