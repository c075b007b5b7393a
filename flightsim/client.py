from __future__ import annotations

"""
File: flightsim/client.py
Purpose: HTTP client for the simulation service.
Key responsibilities:
- Submit orders via POST /api/orders.
- Read the latest StatusUpdate via GET /api/snapshot.
"""

from typing import Any

import httpx

from flightsim.schemas import Order, OrderSubmission, StatusUpdate
from flightsim.sim.entities import Priority


async def _request(method: str, url: str, client: httpx.AsyncClient | None, **kwargs: Any) -> Any:
    if client is None:
        async with httpx.AsyncClient(timeout=10.0) as owned:
            resp = await owned.request(method, url, **kwargs)
    else:
        resp = await client.request(method, url, **kwargs)
    resp.raise_for_status()
    return resp.json()


async def submit_order(
    base_url: str,
    placed_at: int,
    destination: str,
    priority: Priority = Priority.RESUPPLY,
    client: httpx.AsyncClient | None = None,
) -> Order:
    """Queue an order on the service and return the accepted record."""
    payload = OrderSubmission(placed_at=placed_at, destination=destination, priority=priority)
    data = await _request("POST", f"{base_url}/api/orders", client, json=payload.model_dump(mode="json"))
    return Order.model_validate(data)


async def fetch_snapshot(base_url: str, client: httpx.AsyncClient | None = None) -> StatusUpdate:
    """Return the service's latest status update."""
    data = await _request("GET", f"{base_url}/api/snapshot", client)
    return StatusUpdate.model_validate(data)
