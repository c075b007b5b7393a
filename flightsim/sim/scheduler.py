from __future__ import annotations

"""
File: flightsim/sim/scheduler.py
Purpose: Order-to-flight assignment policies.
Key responsibilities:
- Define the Scheduler capability interface used by the runner.
- Naive policy: priority/time ordering, pack onto the open flight, else open one.
- Reject malformed input with ValidationError.
Key entrypoints:
- NaiveScheduler.schedule()
"""

from dataclasses import dataclass, field
from typing import Protocol, Sequence

from flightsim.errors import ValidationError
from flightsim.sim.entities import Destination, Flight, Order, Priority, route_length


@dataclass(frozen=True)
class Placement:
    """Load `order` onto `flight` (an active flight or one from new_flights)."""
    order: Order
    flight: Flight


@dataclass
class ScheduleResult:
    """Proposed changes; the runner applies them."""
    placements: list[Placement] = field(default_factory=list)
    new_flights: list[Flight] = field(default_factory=list)


class Scheduler(Protocol):
    """Function object proposing placements for pending orders."""

    def schedule(self, pending_orders: Sequence[Order], active_flights: Sequence[Flight], now: int) -> ScheduleResult:
        """Return placements and newly opened flights without touching the inputs."""


def ordered_pending(pending_orders: Sequence[Order]) -> list[Order]:
    """Emergency first, then earliest placed_at, then arrival sequence."""
    return sorted(pending_orders, key=lambda o: o.sort_key())


def validate_inputs(pending_orders: Sequence[Order], active_flights: Sequence[Flight], now: int) -> None:
    """Raise ValidationError for input no scheduler should act on."""
    if now < 0:
        raise ValidationError(f"negative simulation time: {now}")
    seen_orders: set[int] = set()
    for order in pending_orders:
        if order.placed_at < 0:
            raise ValidationError(f"order {order.order_id} has negative placed_at={order.placed_at}")
        if order.order_id in seen_orders:
            raise ValidationError(f"duplicate pending order_id={order.order_id}")
        seen_orders.add(order.order_id)

    seen_ids: set[int] = set()
    seen_flights: set[int] = set()
    for flight in active_flights:
        if id(flight) in seen_flights:
            raise ValidationError(f"flight {flight.flight_id} listed twice")
        seen_flights.add(id(flight))
        if flight.flight_id is None:
            raise ValidationError("active flight without flight_id")
        if flight.flight_id in seen_ids:
            raise ValidationError(f"duplicate flight_id={flight.flight_id}")
        seen_ids.add(flight.flight_id)


class NaiveScheduler:
    """Pack orders onto the most recently opened flight that has not launched yet.

    When no such flight can take the order, open a new flight departing
    `dispatch_delay` after `now`. A new flight is only opened when none is
    open, so in practice every order joins the single open flight. Orders
    pending at the same tick therefore share one flight, loaded Emergency
    first.

    Capacity limits are off by default (0). With `fleet_size` set, at most
    that many flights are active at once and `emergency_reserve` of those
    slots are held back for Emergency orders. Once an order cannot be placed,
    it and every lower-ranked order stay pending until a later tick.

    With `max_route_m` set, an order only joins an open flight while the
    flight's round trip (see `route_length`) stays within that range;
    otherwise it goes on a new flight. An order that is out of range even
    alone is left pending without holding back the rest of the queue.
    """

    def __init__(
        self,
        dispatch_delay: int,
        max_orders_per_flight: int = 0,
        fleet_size: int = 0,
        emergency_reserve: int = 0,
        max_route_m: int = 0,
        leg_distance: int = 0,
        destinations: dict[str, Destination] | None = None,
    ) -> None:
        if dispatch_delay < 0:
            raise ValueError("dispatch_delay must be >= 0")
        if fleet_size and emergency_reserve >= fleet_size:
            raise ValueError("emergency_reserve must be smaller than fleet_size")
        if max_route_m < 0:
            raise ValueError("max_route_m must be >= 0")
        self.dispatch_delay = dispatch_delay
        self.max_orders_per_flight = max_orders_per_flight
        self.fleet_size = fleet_size
        self.emergency_reserve = emergency_reserve
        self.max_route_m = max_route_m
        self.leg_distance = leg_distance
        self.destinations = destinations

    def schedule(self, pending_orders: Sequence[Order], active_flights: Sequence[Flight], now: int) -> ScheduleResult:
        validate_inputs(pending_orders, active_flights, now)
        if self.max_route_m and self.destinations is not None:
            for order in pending_orders:
                if order.destination not in self.destinations:
                    raise ValidationError(f"order {order.order_id} has unknown destination {order.destination!r}")
        result = ScheduleResult()
        if not pending_orders:
            return result

        queue = ordered_pending(pending_orders)
        emergency_waiting = any(o.priority == Priority.EMERGENCY for o in queue)
        open_flights = [f for f in active_flights if not f.launched(now)]
        load = {id(f): list(f.orders) for f in active_flights}
        flight_count = len(active_flights)

        for order in queue:
            target = self._open_flight_with_room(open_flights, load, order)
            if target is None:
                if not self._within_range([order]):
                    continue
                if not self._may_open_flight(order, flight_count, emergency_waiting):
                    break
                target = Flight(launch_time=now + self.dispatch_delay)
                result.new_flights.append(target)
                open_flights.append(target)
                load[id(target)] = []
                flight_count += 1
            result.placements.append(Placement(order=order, flight=target))
            load[id(target)].append(order)

        return result

    def _open_flight_with_room(
        self, open_flights: list[Flight], load: dict[int, list[Order]], order: Order
    ) -> Flight | None:
        """Newest open flight that can take `order` under the capacity and range limits."""
        for flight in reversed(open_flights):
            carried = load[id(flight)]
            if self.max_orders_per_flight and len(carried) >= self.max_orders_per_flight:
                continue
            if self._within_range(carried + [order]):
                return flight
        return None

    def _within_range(self, orders: list[Order]) -> bool:
        if not self.max_route_m:
            return True
        return route_length(orders, self.leg_distance, self.destinations) <= self.max_route_m

    def _may_open_flight(self, order: Order, flight_count: int, emergency_waiting: bool) -> bool:
        """Fleet-size gate; the last `emergency_reserve` slots only open while an Emergency waits."""
        if not self.fleet_size:
            return True
        free = self.fleet_size - flight_count
        if order.priority == Priority.EMERGENCY or emergency_waiting:
            return free > 0
        return free > self.emergency_reserve
