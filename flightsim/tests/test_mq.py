import asyncio
import json

from flightsim.feed import SnapshotFeed
from flightsim.mq import STATUS_ROUTING_KEY, order_handler, relay_updates
from flightsim.schemas import StatusUpdate
from flightsim.sim.entities import Priority
from flightsim.sim.runner import SimulationRunner
from flightsim.sim.scheduler import NaiveScheduler


class _FakeMessage:
    def __init__(self, body: bytes) -> None:
        self.body = body
        self.acked = False

    async def ack(self) -> None:
        self.acked = True


class _FakeExchange:
    def __init__(self) -> None:
        self.published: list[tuple[str, dict]] = []

    async def publish(self, message, routing_key: str) -> None:
        self.published.append((routing_key, json.loads(message.body)))


def _runner() -> SimulationRunner:
    return SimulationRunner(scheduler=NaiveScheduler(dispatch_delay=5), speed=10, leg_distance=20)


def test_order_messages_reach_runner_inbox():
    runner = _runner()
    handler = order_handler(runner)
    good = _FakeMessage(b'{"placed_at": 0, "destination": "A", "priority": "Emergency"}')
    bad = _FakeMessage(b'{"placed_at": "soon"}')

    asyncio.run(handler(good))
    asyncio.run(handler(bad))

    assert good.acked and bad.acked
    snapshot = runner.tick()
    assert [o.priority for o in snapshot.flights[0].orders] == [Priority.EMERGENCY]


def test_relay_publishes_status_updates_until_feed_closes():
    async def scenario():
        feed = SnapshotFeed(policy="buffer", buffer_size=8)
        exchange = _FakeExchange()
        relay = asyncio.create_task(relay_updates(feed.subscribe(), exchange))
        feed.publish(StatusUpdate(time=1, flights=[], speed=10))
        feed.publish(StatusUpdate(time=2, flights=[], speed=10))
        feed.close()
        await asyncio.wait_for(relay, timeout=1.0)
        return exchange.published

    published = asyncio.run(scenario())
    assert [key for key, _ in published] == [STATUS_ROUTING_KEY, STATUS_ROUTING_KEY]
    assert [payload["time"] for _, payload in published] == [1, 2]
