"""
In-process change feed for the evaluation and unlock-request tables.

Publishers emit a ChangeEvent after every committed change. Subscribers are
scoped to one project (or the "all" sentinel) and receive events
asynchronously on the running event loop, so delivery order relative to the
publisher's own code path is not guaranteed. Events only say "something
changed"; subscribers re-fetch instead of trusting the payload.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from uuid import uuid4

from kpigate.config import settings

logger = logging.getLogger(__name__)

RECORDS_TABLE = "evaluation_records"
REQUESTS_TABLE = "unlock_requests"

ChangeCallback = Callable[["ChangeEvent"], Awaitable[None]]


@dataclass(frozen=True)
class ChangeEvent:
    table: str
    change_kind: str  # insert|update|delete
    project_id: str | None = None


class Subscription:
    """Handle returned by NotificationChannel.subscribe()."""

    def __init__(self, channel: NotificationChannel, project_scope: str, callback: ChangeCallback) -> None:
        self.subscription_id = str(uuid4())
        self.project_scope = project_scope
        self._channel = channel
        self._callback = callback

    def matches(self, event: ChangeEvent) -> bool:
        if self.project_scope == settings.all_projects_scope:
            return True
        # Events without a project are broadcast.
        return event.project_id is None or event.project_id == self.project_scope

    async def deliver(self, event: ChangeEvent) -> None:
        try:
            await self._callback(event)
        except Exception:  # noqa: BLE001
            logger.exception(
                "Subscriber %s failed handling %s/%s",
                self.subscription_id,
                event.table,
                event.change_kind,
            )

    def close(self) -> None:
        self._channel.unsubscribe(self)


class NotificationChannel:
    """Fan-out of change events to project-scoped subscribers."""

    def __init__(self) -> None:
        self._subscriptions: dict[str, Subscription] = {}
        self._tasks: set[asyncio.Task] = set()

    def subscribe(self, project_scope: str, callback: ChangeCallback) -> Subscription:
        sub = Subscription(self, project_scope, callback)
        self._subscriptions[sub.subscription_id] = sub
        logger.debug("Subscribed %s to project %s", sub.subscription_id, project_scope)
        return sub

    def unsubscribe(self, subscription: Subscription) -> None:
        self._subscriptions.pop(subscription.subscription_id, None)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def publish(self, event: ChangeEvent) -> int:
        """
        Schedule delivery of ``event`` to every matching subscriber.

        Returns the number of deliveries scheduled. Must be called from
        inside a running event loop.
        """
        loop = asyncio.get_running_loop()
        scheduled = 0
        for sub in list(self._subscriptions.values()):
            if not sub.matches(event):
                continue
            task = loop.create_task(sub.deliver(event))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
            scheduled += 1
        return scheduled

    async def wait_idle(self) -> None:
        """Wait until every scheduled delivery has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def close(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        self._subscriptions.clear()
