from __future__ import annotations

"""
File: flightsim/feed.py
Purpose: Fan-out of status updates to independent observers.
Key responsibilities:
- Give each observer its own bounded cursor over the update sequence.
- Never block the publisher: "latest" observers keep only the newest update,
  "buffer" observers are disconnected with FeedBackpressure when they overflow.
- End every observer's iteration when the feed closes.
"""

import asyncio
import logging
from typing import Literal
import uuid

from flightsim.errors import FeedBackpressure
from flightsim.schemas import StatusUpdate

logger = logging.getLogger("flightsim.feed")

FeedPolicy = Literal["latest", "buffer"]
_CLOSED = object()


class Subscription:
    """One observer's cursor. Async-iterate it to receive updates in order."""
    def __init__(self, policy: FeedPolicy, buffer_size: int) -> None:
        if policy not in ("latest", "buffer"):
            raise ValueError(f"invalid feed policy: {policy}")
        self.id = uuid.uuid4().hex
        self.policy = policy
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=1 if policy == "latest" else max(1, buffer_size))
        self.dropped = 0
        self.closed = False
        self.error: FeedBackpressure | None = None

    def offer(self, update: StatusUpdate) -> None:
        """Enqueue without waiting. Raises FeedBackpressure for a full buffer."""
        if self.closed:
            return
        try:
            self.queue.put_nowait(update)
        except asyncio.QueueFull:
            if self.policy == "buffer":
                raise FeedBackpressure(f"subscriber {self.id} is {self.queue.maxsize} updates behind") from None
            self.queue.get_nowait()
            self.queue.put_nowait(update)
            self.dropped += 1

    def close(self, error: FeedBackpressure | None = None) -> None:
        if self.closed:
            return
        self.closed = True
        self.error = error
        if error is not None:
            while not self.queue.empty():
                self.queue.get_nowait()
        try:
            self.queue.put_nowait(_CLOSED)
        except asyncio.QueueFull:
            # Consumer is not waiting; it drains the queue and sees `closed`.
            pass

    def __aiter__(self) -> Subscription:
        return self

    async def __anext__(self) -> StatusUpdate:
        if self.closed and self.queue.empty():
            self._finish()
        item = await self.queue.get()
        if item is _CLOSED:
            self._finish()
        return item

    def _finish(self) -> None:
        if self.error is not None:
            raise self.error
        raise StopAsyncIteration


class SnapshotFeed:
    """Publishes each update to every current subscriber."""
    def __init__(self, policy: FeedPolicy = "latest", buffer_size: int = 64) -> None:
        self.policy = policy
        self.buffer_size = buffer_size
        self.subscribers: dict[str, Subscription] = {}
        self.latest: StatusUpdate | None = None
        self.closed = False

    def subscribe(self, policy: FeedPolicy | None = None) -> Subscription:
        sub = Subscription(policy or self.policy, self.buffer_size)
        if self.closed:
            sub.close()
            return sub
        self.subscribers[sub.id] = sub
        logger.info("feed subscriber added id=%s policy=%s", sub.id, sub.policy)
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        if self.subscribers.pop(sub.id, None) is not None:
            sub.close()
            logger.info("feed subscriber removed id=%s dropped=%s", sub.id, sub.dropped)

    def publish(self, update: StatusUpdate) -> None:
        """Offer the update to all subscribers; slow ones never stall the caller."""
        if self.closed:
            return
        self.latest = update
        stale: list[Subscription] = []
        for sub in self.subscribers.values():
            try:
                sub.offer(update)
            except FeedBackpressure as exc:
                logger.warning("feed subscriber disconnected id=%s err=%s", sub.id, exc)
                sub.close(error=exc)
                stale.append(sub)
        for sub in stale:
            self.subscribers.pop(sub.id, None)

    def close(self) -> None:
        """Stop the feed; observers finish after draining what they hold."""
        if self.closed:
            return
        self.closed = True
        for sub in self.subscribers.values():
            sub.close()
        self.subscribers.clear()
        logger.info("feed closed")
