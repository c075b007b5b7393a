from __future__ import annotations

"""
File: flightsim/service.py
Purpose: Paced async driver connecting the runner to the monitor feed.
Key responsibilities:
- Build the runner from settings (scheduler, scripted data files).
- Tick at SIM_TICK_HZ and publish one StatusUpdate per tick.
- Close the feed when the simulation stops or halts.
Key entrypoints:
- build_runner(), SimulationService.run()
"""

import asyncio
import logging

from flightsim.errors import SchedulingInvariantViolation
from flightsim.feed import SnapshotFeed
from flightsim.schemas import StatusUpdate, status_update_from_snapshot
from flightsim.settings import Settings
from flightsim.sim.data_loader import load_destinations_csv, load_orders_csv
from flightsim.sim.runner import SimulationRunner
from flightsim.sim.scheduler import NaiveScheduler

logger = logging.getLogger("flightsim.service")


def build_runner(cfg: Settings) -> SimulationRunner:
    """Create a runner with the naive scheduler and optional scripted data."""
    destinations = load_destinations_csv(cfg.destinations_csv) if cfg.destinations_csv else None
    arrivals = load_orders_csv(cfg.orders_csv) if cfg.orders_csv else []
    scheduler = NaiveScheduler(
        dispatch_delay=cfg.dispatch_delay,
        max_orders_per_flight=cfg.max_orders_per_flight,
        fleet_size=cfg.fleet_size,
        emergency_reserve=cfg.emergency_reserve,
        max_route_m=cfg.max_route_m,
        leg_distance=cfg.leg_distance,
        destinations=destinations,
    )
    return SimulationRunner(
        scheduler=scheduler,
        speed=cfg.fleet_speed,
        leg_distance=cfg.leg_distance,
        tick_step=cfg.tick_step,
        destinations=destinations,
        arrivals=arrivals,
        max_route_m=cfg.max_route_m,
    )


class SimulationService:
    """Single writer loop: one tick completes before the next begins."""
    def __init__(self, runner: SimulationRunner, feed: SnapshotFeed, tick_hz: float, max_ticks: int = 0) -> None:
        if tick_hz <= 0:
            raise ValueError("tick_hz must be > 0")
        self.runner = runner
        self.feed = feed
        self.tick_hz = tick_hz
        self.max_ticks = max_ticks
        self.latest: StatusUpdate | None = None

    def step(self) -> StatusUpdate:
        """Run one tick and publish its update."""
        update = status_update_from_snapshot(self.runner.tick())
        self.latest = update
        self.feed.publish(update)
        return update

    async def run(self) -> None:
        """Tick until max_ticks (0 = forever), a halt, or cancellation."""
        logger.info(
            "simulation started tick_hz=%s max_ticks=%s speed=%s",
            self.tick_hz,
            self.max_ticks,
            self.runner.speed,
        )
        try:
            while not self.max_ticks or self.runner.state.tick < self.max_ticks:
                self.step()
                await asyncio.sleep(1.0 / self.tick_hz)
            logger.info(
                "simulation finished time=%s pending_orders=%s upcoming_orders=%s",
                self.runner.state.current_time,
                len(self.runner.state.pending_orders),
                self.runner.upcoming_orders,
            )
        except SchedulingInvariantViolation as exc:
            logger.exception("simulation halted err=%s", exc)
        except Exception as exc:  # noqa: BLE001
            self.runner.state.halted = True
            logger.exception("simulation failed tick=%s err=%s", self.runner.state.tick, exc)
        finally:
            self.feed.close()
