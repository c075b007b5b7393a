from __future__ import annotations

"""
File: flightsim/sim/runner.py
Purpose: Deterministic time-stepped driver for the dispatch simulation.
Key responsibilities:
- Ingest submitted and scripted orders at tick boundaries.
- Ask the scheduler for placements and apply them to fleet state.
- Retire flights that completed their route and emit snapshots.
- Halt on broken invariants instead of repairing state.
Key entrypoints:
- SimulationRunner.tick()
- SimulationRunner.snapshots()
"""

import asyncio
import logging
from typing import Iterable, Iterator

from flightsim.errors import SchedulingInvariantViolation, ValidationError
from flightsim.sim.entities import Destination, FleetState, Flight, Order, Priority, Snapshot, route_length
from flightsim.sim.scheduler import Scheduler, ScheduleResult

logger = logging.getLogger("flightsim.runner")


class SimulationRunner:
    """Owns the fleet state and advances it one tick at a time."""
    def __init__(
        self,
        scheduler: Scheduler,
        speed: int,
        leg_distance: int,
        tick_step: int = 1,
        destinations: dict[str, Destination] | None = None,
        arrivals: Iterable[Order] = (),
        state: FleetState | None = None,
        max_route_m: int = 0,
    ) -> None:
        if tick_step <= 0:
            raise ValueError("tick_step must be > 0")
        if speed <= 0:
            raise ValueError("speed must be > 0")
        self.scheduler = scheduler
        self.speed = speed
        self.leg_distance = leg_distance
        self.tick_step = tick_step
        self.destinations = destinations
        self.max_route_m = max_route_m
        self.state = state if state is not None else FleetState()

        self.inbox: asyncio.Queue[Order] = asyncio.Queue()
        # not yet due; kept sorted by placed_at, stable for arrival order
        self._upcoming: list[Order] = []
        self._hold(arrivals)

        self.rejected: list[tuple[Order, str]] = []
        self.skipped_ticks: list[tuple[int, str]] = []
        self._violation: SchedulingInvariantViolation | None = None

    def validate_order(self, order: Order) -> Order:
        """Return a normalized copy of `order` or raise ValidationError."""
        if isinstance(order.placed_at, bool) or not isinstance(order.placed_at, int):
            raise ValidationError(f"placed_at must be an integer, got {order.placed_at!r}")
        if order.placed_at < 0:
            raise ValidationError(f"negative placed_at={order.placed_at}")
        if not isinstance(order.destination, str) or not order.destination:
            raise ValidationError("destination must be a non-empty string")
        if self.destinations is not None and order.destination not in self.destinations:
            raise ValidationError(f"unknown destination {order.destination!r}")
        if self.max_route_m and route_length([order], self.leg_distance, self.destinations) > self.max_route_m:
            raise ValidationError(f"destination {order.destination!r} is out of range max_route_m={self.max_route_m}")
        return Order(placed_at=order.placed_at, destination=order.destination, priority=Priority.parse(order.priority))

    def submit(self, order: Order) -> Order:
        """Queue an external order; it enters state at the first tick boundary at or after placed_at."""
        normalized = self.validate_order(order)
        self.inbox.put_nowait(normalized)
        return normalized

    def tick(self) -> Snapshot:
        """Advance by one step and return the resulting snapshot."""
        if self._violation is not None:
            raise self._violation
        state = self.state
        try:
            self._ingest()
            self._dispatch()
            state.current_time += self.tick_step
            state.tick += 1
            self._retire()
            self._check_invariants()
        except SchedulingInvariantViolation as exc:
            state.halted = True
            self._violation = exc
            logger.error("simulation halted tick=%s time=%s err=%s", state.tick, state.current_time, exc)
            raise
        return self.snapshot()

    def snapshots(self, max_ticks: int | None = None) -> Iterator[Snapshot]:
        """Lazily tick and yield each snapshot."""
        produced = 0
        while max_ticks is None or produced < max_ticks:
            yield self.tick()
            produced += 1

    def snapshot(self) -> Snapshot:
        return Snapshot(
            time=self.state.current_time,
            flights=tuple(flight.view() for flight in self.state.active_flights),
            speed=self.speed,
        )

    @property
    def upcoming_orders(self) -> int:
        """Queued submissions and scripted arrivals not yet moved into pending."""
        return len(self._upcoming) + self.inbox.qsize()

    def _hold(self, orders: Iterable[Order]) -> None:
        self._upcoming.extend(orders)
        self._upcoming.sort(key=lambda o: o.placed_at)

    def _ingest(self) -> None:
        """Move orders that are due (placed_at <= now) into pending, in placement then arrival order."""
        now = self.state.current_time
        submitted: list[Order] = []
        while not self.inbox.empty():
            submitted.append(self.inbox.get_nowait())
        if submitted:
            self._hold(submitted)
        incoming = [o for o in self._upcoming if o.placed_at <= now]
        self._upcoming = [o for o in self._upcoming if o.placed_at > now]

        for raw in incoming:
            try:
                order = self.validate_order(raw)
            except ValidationError as exc:
                self.rejected.append((raw, str(exc)))
                logger.warning("order rejected time=%s destination=%r err=%s", now, raw.destination, exc)
                continue
            stamped = Order(
                placed_at=order.placed_at,
                destination=order.destination,
                priority=order.priority,
                order_id=self.state.next_order_id,
            )
            self.state.next_order_id += 1
            self.state.pending_orders.append(stamped)

    def _dispatch(self) -> None:
        state = self.state
        if not state.pending_orders:
            return
        try:
            result = self.scheduler.schedule(tuple(state.pending_orders), tuple(state.active_flights), state.current_time)
        except ValidationError as exc:
            self.skipped_ticks.append((state.tick, str(exc)))
            logger.warning("scheduling skipped tick=%s time=%s err=%s", state.tick, state.current_time, exc)
            return
        self._apply(result)

    def _apply(self, result: ScheduleResult) -> None:
        """Check the whole proposal first, then mutate state."""
        state = self.state
        now = state.current_time
        pending = {order.order_id: order for order in state.pending_orders}
        active = {id(flight) for flight in state.active_flights}
        proposed = {id(flight) for flight in result.new_flights}
        loaded: dict[int, int] = {}

        for flight in result.new_flights:
            if id(flight) in active or flight.orders or flight.flight_id is not None:
                raise SchedulingInvariantViolation("proposed flight is not a fresh empty flight")

        placed: set[int] = set()
        for placement in result.placements:
            order_id = placement.order.order_id
            if order_id in placed:
                raise SchedulingInvariantViolation(f"order {order_id} placed twice in one tick")
            if pending.get(order_id) != placement.order:
                raise SchedulingInvariantViolation(f"order {order_id} is not pending")
            flight_key = id(placement.flight)
            if flight_key not in active and flight_key not in proposed:
                raise SchedulingInvariantViolation(f"order {order_id} targets an unknown flight")
            if flight_key in active and placement.flight.launched(now):
                raise SchedulingInvariantViolation(
                    f"order {order_id} targets flight {placement.flight.flight_id} that already launched"
                )
            placed.add(order_id)
            loaded[flight_key] = loaded.get(flight_key, 0) + 1

        for flight in result.new_flights:
            if not loaded.get(id(flight)):
                raise SchedulingInvariantViolation("proposed flight carries no orders")

        for flight in result.new_flights:
            flight.flight_id = state.next_flight_id
            state.next_flight_id += 1
            state.active_flights.append(flight)
            logger.info("flight opened flight_id=%s launch_time=%s", flight.flight_id, flight.launch_time)
        for placement in result.placements:
            placement.flight.orders.append(placement.order)
        state.pending_orders = [order for order in state.pending_orders if order.order_id not in placed]

    def _retire(self) -> None:
        state = self.state
        still_active: list[Flight] = []
        for flight in state.active_flights:
            status = flight.status(state.current_time, self.speed, self.leg_distance, self.destinations)
            if status == "retired":
                state.retired_flights.append(flight)
                state.delivered_orders += len(flight.orders)
                logger.info("flight retired flight_id=%s time=%s orders=%s", flight.flight_id, state.current_time, len(flight.orders))
            else:
                still_active.append(flight)
        state.active_flights = still_active

    def _check_invariants(self) -> None:
        """Every accepted order is pending, on one active flight, or delivered."""
        state = self.state
        seen: set[int] = set()
        flight_ids: set[int | None] = set()
        for order in state.pending_orders:
            if order.order_id in seen:
                raise SchedulingInvariantViolation(f"order {order.order_id} pending twice")
            seen.add(order.order_id)
        for flight in state.active_flights:
            if not flight.orders:
                raise SchedulingInvariantViolation(f"flight {flight.flight_id} has no orders")
            if flight.flight_id in flight_ids:
                raise SchedulingInvariantViolation(f"flight {flight.flight_id} active twice")
            flight_ids.add(flight.flight_id)
            for order in flight.orders:
                if order.order_id in seen:
                    raise SchedulingInvariantViolation(f"order {order.order_id} held in two places")
                seen.add(order.order_id)
        if len(seen) + state.delivered_orders != state.next_order_id:
            raise SchedulingInvariantViolation(
                f"accepted={state.next_order_id} but tracked={len(seen) + state.delivered_orders}"
            )
