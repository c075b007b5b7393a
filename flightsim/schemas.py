from __future__ import annotations

"""
File: flightsim/schemas.py
Purpose: Pydantic models for the monitor feed and order submission contracts.
Key responsibilities:
- StatusUpdate/Flight/Order wire records with 64/32-bit field bounds.
- Convert simulation snapshots to wire records.
Key entrypoints:
- status_update_from_snapshot(), encode_status_update()
"""

import json

from pydantic import BaseModel, Field, field_validator

from flightsim.sim.entities import Order as SimOrder
from flightsim.sim.entities import Priority, Snapshot

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1
INT32_MIN = -(2**31)
INT32_MAX = 2**31 - 1


class Order(BaseModel):
    """Order record: `time` is the placement time, priority 0=Emergency, 1=Resupply."""
    time: int = Field(ge=INT64_MIN, le=INT64_MAX)
    destination: str
    priority: Priority


class Flight(BaseModel):
    """Flight record as carried by a status update."""
    launch_time: int = Field(ge=INT64_MIN, le=INT64_MAX)
    orders: list[Order] = Field(default_factory=list)


class StatusUpdate(BaseModel):
    """One snapshot of the fleet."""
    time: int = Field(ge=INT64_MIN, le=INT64_MAX)
    flights: list[Flight] = Field(default_factory=list)
    speed: int = Field(ge=INT32_MIN, le=INT32_MAX)


class OrderSubmission(BaseModel):
    """Request body for POST /api/orders."""
    placed_at: int = Field(ge=0, le=INT64_MAX)
    destination: str = Field(min_length=1)
    priority: Priority = Priority.RESUPPLY

    @field_validator("priority", mode="before")
    @classmethod
    def _parse_priority(cls, value: object) -> object:
        if isinstance(value, str):
            return Priority.parse(int(value) if value.isdigit() else value)
        return value

    def to_order(self) -> SimOrder:
        return SimOrder(placed_at=self.placed_at, destination=self.destination, priority=self.priority)


def order_record(order: SimOrder) -> Order:
    return Order(time=order.placed_at, destination=order.destination, priority=order.priority)


def status_update_from_snapshot(snapshot: Snapshot) -> StatusUpdate:
    """Map a simulation snapshot onto the wire record."""
    return StatusUpdate(
        time=snapshot.time,
        flights=[
            Flight(launch_time=flight.launch_time, orders=[order_record(o) for o in flight.orders])
            for flight in snapshot.flights
        ],
        speed=snapshot.speed,
    )


def encode_status_update(update: StatusUpdate) -> str:
    """Compact, key-sorted JSON so equal updates encode to equal bytes."""
    return json.dumps(update.model_dump(mode="json"), separators=(",", ":"), sort_keys=True)
