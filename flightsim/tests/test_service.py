import asyncio
import logging

from flightsim.feed import SnapshotFeed
from flightsim.service import SimulationService, build_runner
from flightsim.settings import Settings
from flightsim.sim.entities import Order, Priority
from flightsim.sim.runner import SimulationRunner
from flightsim.sim.scheduler import NaiveScheduler, Placement, ScheduleResult


class _LaunchedTargetScheduler:
    """Places every order on the first active flight, launched or not."""
    def __init__(self) -> None:
        self.inner = NaiveScheduler(dispatch_delay=0)

    def schedule(self, pending_orders, active_flights, now):
        if active_flights:
            return ScheduleResult(placements=[Placement(order=o, flight=active_flights[0]) for o in pending_orders])
        return self.inner.schedule(pending_orders, active_flights, now)


class _BrokenScheduler:
    """Fails the way a route lookup against a stale table would."""
    def schedule(self, pending_orders, active_flights, now):
        raise KeyError("boom")


def _collect(service: SimulationService) -> list[int]:
    async def scenario():
        sub = service.feed.subscribe("buffer")
        await service.run()
        return [update.time async for update in sub]

    return asyncio.run(scenario())


def test_run_publishes_one_update_per_tick_then_closes_feed():
    runner = SimulationRunner(scheduler=NaiveScheduler(dispatch_delay=5), speed=10, leg_distance=20)
    service = SimulationService(runner, SnapshotFeed(buffer_size=16), tick_hz=1000.0, max_ticks=4)

    assert _collect(service) == [1, 2, 3, 4]
    assert service.feed.closed
    assert service.latest.time == 4


def test_halt_stops_the_feed_without_raising():
    arrivals = [Order(placed_at=2, destination="B", priority=Priority.RESUPPLY)]
    runner = SimulationRunner(scheduler=_LaunchedTargetScheduler(), speed=1, leg_distance=100, arrivals=arrivals)
    runner.submit(Order(placed_at=0, destination="A", priority=Priority.RESUPPLY))
    service = SimulationService(runner, SnapshotFeed(buffer_size=16), tick_hz=1000.0, max_ticks=10)

    assert _collect(service) == [1, 2]
    assert runner.state.halted
    assert service.feed.closed


def test_unexpected_scheduler_error_is_logged_and_halts(caplog):
    runner = SimulationRunner(scheduler=_BrokenScheduler(), speed=10, leg_distance=20)
    runner.submit(Order(placed_at=0, destination="A", priority=Priority.RESUPPLY))
    service = SimulationService(runner, SnapshotFeed(buffer_size=16), tick_hz=1000.0, max_ticks=10)

    with caplog.at_level(logging.ERROR, logger="flightsim.service"):
        assert _collect(service) == []

    assert runner.state.halted
    assert service.feed.closed
    assert any("simulation failed" in r.getMessage() and "boom" in r.getMessage() for r in caplog.records)


def test_bounded_run_reports_unfulfilled_orders(caplog):
    scheduler = NaiveScheduler(dispatch_delay=5, max_orders_per_flight=1, fleet_size=1)
    runner = SimulationRunner(scheduler=scheduler, speed=10, leg_distance=20)
    for destination in ("A", "B", "C"):
        runner.submit(Order(placed_at=0, destination=destination, priority=Priority.RESUPPLY))
    runner.submit(Order(placed_at=100, destination="D", priority=Priority.RESUPPLY))
    service = SimulationService(runner, SnapshotFeed(buffer_size=16), tick_hz=1000.0, max_ticks=2)

    with caplog.at_level(logging.INFO, logger="flightsim.service"):
        _collect(service)

    finished = [r.getMessage() for r in caplog.records if r.getMessage().startswith("simulation finished")]
    assert finished == ["simulation finished time=2 pending_orders=2 upcoming_orders=1"]


def test_build_runner_reads_scripted_files(tmp_path):
    destinations = tmp_path / "destinations.csv"
    destinations.write_text("A, 0, 300\n", encoding="utf-8")
    orders = tmp_path / "orders.csv"
    orders.write_text("0, A, Emergency\n", encoding="utf-8")
    cfg = Settings(destinations_csv=str(destinations), orders_csv=str(orders), dispatch_delay=2, fleet_speed=30)

    runner = build_runner(cfg)
    snapshot = runner.tick()

    assert runner.destinations["A"].east_m == 300
    assert snapshot.flights[0].launch_time == 2
    assert snapshot.speed == 30


def test_build_runner_applies_range_limit(tmp_path):
    destinations = tmp_path / "destinations.csv"
    destinations.write_text("A, 0, 300\nB, 0, -300\n", encoding="utf-8")
    cfg = Settings(destinations_csv=str(destinations), orders_csv="", dispatch_delay=2, max_route_m=1000)

    runner = build_runner(cfg)
    runner.submit(Order(placed_at=0, destination="A", priority=Priority.RESUPPLY))
    runner.submit(Order(placed_at=0, destination="B", priority=Priority.RESUPPLY))
    snapshot = runner.tick()

    assert runner.scheduler.max_route_m == 1000
    assert [[o.destination for o in f.orders] for f in snapshot.flights] == [["A"], ["B"]]
