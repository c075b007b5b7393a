from __future__ import annotations

"""
File: flightsim/sim/entities.py
Purpose: Core dataclasses and type aliases for the dispatch simulation.
"""

from dataclasses import dataclass, field
from enum import IntEnum
from math import hypot
from typing import Literal, Sequence

from flightsim.errors import ValidationError


FlightStatus = Literal["scheduled", "in_flight", "retired"]


class Priority(IntEnum):
    """Order priority. Lower value ranks first and matches the wire enum."""
    EMERGENCY = 0
    RESUPPLY = 1

    @classmethod
    def parse(cls, raw: str | int | Priority) -> Priority:
        """Accept wire ints or the names used in order files."""
        if isinstance(raw, int):
            try:
                return cls(raw)
            except ValueError as exc:
                raise ValidationError(f"invalid priority: {raw}") from exc
        name = str(raw).strip().upper()
        if name not in cls.__members__:
            raise ValidationError(f"invalid priority: {raw!r}")
        return cls[name]


@dataclass(frozen=True)
class Destination:
    """Named drop-off point, offset in meters from the origin."""
    name: str
    north_m: int
    east_m: int

    def distance_to(self, other: Destination) -> float:
        return hypot(self.north_m - other.north_m, self.east_m - other.east_m)


ORIGIN = Destination(name="ORIGIN", north_m=0, east_m=0)


def route_length(
    orders: Sequence[Order],
    leg_distance: int,
    destinations: dict[str, Destination] | None = None,
) -> float:
    """Length of a round trip serving `orders` in load order.

    Without a destination table every order costs one `leg_distance`.
    With one, the route is origin -> each stop -> origin.
    """
    if destinations is None:
        return float(len(orders) * leg_distance)
    traveled = 0.0
    prev = ORIGIN
    for order in orders:
        stop = destinations[order.destination]
        traveled += stop.distance_to(prev)
        prev = stop
    return traveled + ORIGIN.distance_to(prev)


@dataclass(frozen=True)
class Order:
    """A delivery request. order_id is the arrival sequence, -1 until accepted."""
    placed_at: int
    destination: str
    priority: Priority
    order_id: int = -1

    def sort_key(self) -> tuple[int, int, int]:
        return (int(self.priority), self.placed_at, self.order_id)


@dataclass(eq=False)
class Flight:
    """A dispatched carrier. Compared by identity; flight_id is set on entering the fleet."""
    launch_time: int
    orders: list[Order] = field(default_factory=list)
    flight_id: int | None = None

    def launched(self, now: int) -> bool:
        return now >= self.launch_time

    def progress(self, now: int, speed: int) -> int:
        """Distance covered since launch."""
        return max(0, now - self.launch_time) * speed

    def route_length(self, leg_distance: int, destinations: dict[str, Destination] | None = None) -> float:
        """Total made-up route length for the loaded orders."""
        return route_length(self.orders, leg_distance, destinations)

    def status(
        self,
        now: int,
        speed: int,
        leg_distance: int,
        destinations: dict[str, Destination] | None = None,
    ) -> FlightStatus:
        if not self.launched(now):
            return "scheduled"
        if self.progress(now, speed) >= self.route_length(leg_distance, destinations):
            return "retired"
        return "in_flight"

    def view(self) -> FlightView:
        return FlightView(flight_id=self.flight_id, launch_time=self.launch_time, orders=tuple(self.orders))


@dataclass(frozen=True)
class FlightView:
    """Immutable copy of a flight as it looked when a snapshot was taken."""
    flight_id: int | None
    launch_time: int
    orders: tuple[Order, ...]


@dataclass(frozen=True)
class Snapshot:
    """Fleet state emitted once per tick."""
    time: int
    flights: tuple[FlightView, ...]
    speed: int


@dataclass
class FleetState:
    """Container for all mutable simulation state. Only the runner writes to it."""
    current_time: int = 0
    tick: int = 0
    active_flights: list[Flight] = field(default_factory=list)
    pending_orders: list[Order] = field(default_factory=list)
    retired_flights: list[Flight] = field(default_factory=list)
    next_order_id: int = 0
    next_flight_id: int = 0
    delivered_orders: int = 0
    halted: bool = False
