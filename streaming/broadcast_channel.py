"""
Broadcast Channel Module

In-process publish/subscribe used to wake connected live clients (browser
dashboards) when a fire alarm is raised.

- No history: a new subscriber only sees events published after it joined
- No durability or replay
- Best effort: a subscriber whose queue is full or closed misses the event,
  the others still receive it

The subscriber map is owned by the event loop; publish() iterates over a
snapshot, so subscribe/unsubscribe during a publish is safe.
"""

import asyncio
import itertools
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Optional

from config import BROADCAST_QUEUE_SIZE
from models.entities import utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FireAlarmEvent:
    """The only event emitted on the broadcast channel"""
    occurred_at: datetime = field(default_factory=utcnow)
    triggered: bool = True
    event: str = "fire-alarm"

    def to_dict(self) -> Dict:
        timestamp = self.occurred_at.isoformat()
        return {
            'event': self.event,
            'triggered': self.triggered,
            'alertTime': timestamp,
            'occurredAt': timestamp,
        }


class Subscription:
    """
    Handle returned by BroadcastChannel.subscribe().

    Events are read with `await subscription.get()`.
    """

    def __init__(self, subscriber_id: int, max_pending: int):
        self.id = subscriber_id
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=max_pending)
        self.closed = False
        self.dropped = 0

    def deliver(self, event) -> bool:
        if self.closed:
            return False
        try:
            self.queue.put_nowait(event)
        except asyncio.QueueFull:
            self.dropped += 1
            return False
        return True

    async def get(self, timeout: Optional[float] = None):
        if timeout is None:
            return await self.queue.get()
        return await asyncio.wait_for(self.queue.get(), timeout)


class BroadcastChannel:
    """Fan-out of events to all currently registered subscribers."""

    def __init__(self, max_pending: Optional[int] = None):
        self.max_pending = BROADCAST_QUEUE_SIZE if max_pending is None else max_pending
        self._subscribers: Dict[int, Subscription] = {}
        self._ids = itertools.count(1)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> Subscription:
        subscription = Subscription(next(self._ids), self.max_pending)
        self._subscribers[subscription.id] = subscription
        logger.info(f"🔔 Live client subscribed (#{subscription.id}), total: {self.subscriber_count}")
        return subscription

    def unsubscribe(self, subscription: Subscription):
        """Remove a subscriber. Safe to call more than once."""
        subscription.closed = True
        if self._subscribers.pop(subscription.id, None) is not None:
            logger.info(f"🔕 Live client unsubscribed (#{subscription.id}), total: {self.subscriber_count}")

    def publish(self, event) -> int:
        """
        Deliver an event to every current subscriber.

        Returns:
            int: Number of subscribers that accepted the event
        """
        delivered = 0
        for subscription in list(self._subscribers.values()):
            if subscription.deliver(event):
                delivered += 1
            else:
                logger.warning(f"⚠️ Live client #{subscription.id} missed an event (queue full or closed)")
        return delivered
