import asyncio
import json

import httpx

from flightsim.client import fetch_snapshot, submit_order
from flightsim.sim.entities import Priority


def _mock_client(seen: list[httpx.Request]) -> httpx.AsyncClient:
    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if request.url.path == "/api/orders":
            body = json.loads(request.content)
            return httpx.Response(
                202,
                json={"time": body["placed_at"], "destination": body["destination"], "priority": body["priority"]},
            )
        return httpx.Response(200, json={"time": 3, "speed": 30, "flights": [{"launch_time": 5, "orders": []}]})

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def test_submit_order_posts_submission():
    seen: list[httpx.Request] = []

    async def scenario():
        async with _mock_client(seen) as client:
            return await submit_order("http://sim", 12, "A", Priority.EMERGENCY, client=client)

    record = asyncio.run(scenario())
    assert record.priority == Priority.EMERGENCY
    assert record.time == 12
    assert json.loads(seen[0].content) == {"placed_at": 12, "destination": "A", "priority": 0}


def test_fetch_snapshot_parses_update():
    async def scenario():
        async with _mock_client([]) as client:
            return await fetch_snapshot("http://sim", client=client)

    update = asyncio.run(scenario())
    assert update.time == 3
    assert update.flights[0].launch_time == 5
