from __future__ import annotations

"""
File: flightsim/mq.py
Purpose: RabbitMQ bridge for order intake and status update fan-out.
Key responsibilities:
- Declare exchange and the order.submitted queue.
- Feed order.submitted messages into the runner inbox.
- Relay feed updates to the status.update routing key.
"""

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable

import aio_pika
from aio_pika import ExchangeType
from pydantic import ValidationError as SchemaError

from flightsim.errors import FeedBackpressure, ValidationError
from flightsim.feed import SnapshotFeed, Subscription
from flightsim.schemas import OrderSubmission
from flightsim.sim.runner import SimulationRunner

logger = logging.getLogger("flightsim.mq")

ORDER_ROUTING_KEY = "order.submitted"
STATUS_ROUTING_KEY = "status.update"


async def connect(rabbit_url: str) -> aio_pika.RobustConnection:
    """Connect to RabbitMQ with robust reconnect behavior."""
    return await aio_pika.connect_robust(rabbit_url)


async def setup_topology(channel: aio_pika.abc.AbstractRobustChannel, exchange_name: str):
    """Declare exchange/queue and bind routing keys."""
    exchange = await channel.declare_exchange(exchange_name, ExchangeType.TOPIC, durable=True)
    queue_orders = await channel.declare_queue("flightsim.order_submitted", durable=True)
    await queue_orders.bind(exchange, routing_key=ORDER_ROUTING_KEY)
    return exchange, queue_orders


async def publish_event(exchange: aio_pika.abc.AbstractExchange, routing_key: str, payload: dict[str, Any]) -> None:
    """Publish a JSON message to the configured exchange."""
    body = json.dumps(payload, separators=(",", ":"), sort_keys=True).encode("utf-8")
    msg = aio_pika.Message(body=body, content_type="application/json")
    await exchange.publish(msg, routing_key=routing_key)


def order_handler(runner: SimulationRunner) -> Callable[[aio_pika.abc.AbstractIncomingMessage], Awaitable[None]]:
    """Build the consumer callback that submits orders to `runner`."""
    async def _on_order(message: aio_pika.abc.AbstractIncomingMessage) -> None:
        try:
            submission = OrderSubmission.model_validate_json(message.body)
            order = runner.submit(submission.to_order())
            logger.info("order queued placed_at=%s destination=%s", order.placed_at, order.destination)
        except (SchemaError, ValidationError) as exc:
            logger.warning("dropping invalid order message err=%s", exc)
        except Exception as exc:  # noqa: BLE001
            logger.exception("order handler error: %s", exc)
        finally:
            await message.ack()

    return _on_order


async def relay_updates(subscription: Subscription, exchange: aio_pika.abc.AbstractExchange) -> None:
    """Publish every update the subscription yields until the feed closes."""
    try:
        async for update in subscription:
            await publish_event(exchange, STATUS_ROUTING_KEY, update.model_dump(mode="json"))
    except FeedBackpressure as exc:
        logger.warning("status relay fell behind and stopped err=%s", exc)


async def start_bridge(
    rabbit_url: str,
    exchange_name: str,
    runner: SimulationRunner,
    feed: SnapshotFeed,
) -> tuple[aio_pika.RobustConnection, asyncio.Task]:
    """Connect, start consuming orders, and start relaying updates."""
    connection = await connect(rabbit_url)
    channel = await connection.channel()
    await channel.set_qos(prefetch_count=100)
    exchange, queue_orders = await setup_topology(channel, exchange_name)
    await queue_orders.consume(order_handler(runner))
    relay = asyncio.create_task(relay_updates(feed.subscribe("latest"), exchange))
    logger.info("mq bridge started exchange=%s", exchange_name)
    return connection, relay
