from __future__ import annotations

"""
File: flightsim/main.py
Purpose: HTTP/WebSocket front end for the dispatch simulation.
Key responsibilities:
- Start the simulation loop (and optional MQ bridge) on startup.
- Accept order submissions.
- Stream one StatusUpdate per tick to monitor clients.
Key entrypoints:
- create_app()
- /api/* endpoints, /ws/monitor
Config/env vars:
- DISPATCH_DELAY, TICK_STEP, FLEET_SPEED, LEG_DISTANCE
- MAX_ORDERS_PER_FLIGHT, FLEET_SIZE, EMERGENCY_RESERVE
- SIM_TICK_HZ, MAX_TICKS, FEED_POLICY, FEED_BUFFER
- ORDERS_CSV, DESTINATIONS_CSV, SERVICE_HOST, SERVICE_PORT
- MQ_ENABLED, RABBITMQ_*
"""

import asyncio
from contextlib import asynccontextmanager
import logging
from typing import Any

from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse

from flightsim.errors import FeedBackpressure, ValidationError
from flightsim.feed import SnapshotFeed
from flightsim.mq import start_bridge
from flightsim.schemas import OrderSubmission, encode_status_update, order_record, status_update_from_snapshot
from flightsim.service import SimulationService, build_runner
from flightsim.settings import Settings, rabbit_url, settings
from flightsim.sim.metrics import compute_metrics

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s flightsim %(message)s")
logger = logging.getLogger("flightsim")


def create_app(cfg: Settings = settings) -> FastAPI:
    """Build the application around a fresh runner and feed."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        runner = build_runner(cfg)
        feed = SnapshotFeed(policy=cfg.feed_policy, buffer_size=cfg.feed_buffer)
        service = SimulationService(runner, feed, tick_hz=cfg.sim_tick_hz, max_ticks=cfg.max_ticks)
        app.state.service = service

        tasks = [asyncio.create_task(service.run())]
        connection = None
        if cfg.mq_enabled:
            connection, relay = await start_bridge(rabbit_url(cfg), cfg.exchange_name, runner, feed)
            tasks.append(relay)
        try:
            yield
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            feed.close()
            if connection is not None:
                await connection.close()

    app = FastAPI(title="flightsim", version="1.0.0", lifespan=lifespan)

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Liveness/readiness endpoint."""
        return {"status": "ok"}

    @app.get("/api/config")
    async def config() -> dict[str, Any]:
        """Return the scheduling constants in effect."""
        return {
            "dispatch_delay": cfg.dispatch_delay,
            "tick_step": cfg.tick_step,
            "fleet_speed": cfg.fleet_speed,
            "leg_distance": cfg.leg_distance,
            "max_orders_per_flight": cfg.max_orders_per_flight,
            "fleet_size": cfg.fleet_size,
            "emergency_reserve": cfg.emergency_reserve,
            "max_route_m": cfg.max_route_m,
            "sim_tick_hz": cfg.sim_tick_hz,
            "feed_policy": cfg.feed_policy,
        }

    @app.get("/api/snapshot")
    async def snapshot(request: Request) -> dict[str, Any]:
        """Latest published update, or the initial state before the first tick."""
        service: SimulationService = request.app.state.service
        update = service.latest or status_update_from_snapshot(service.runner.snapshot())
        return update.model_dump(mode="json")

    @app.get("/api/metrics")
    async def metrics(request: Request) -> dict[str, Any]:
        service: SimulationService = request.app.state.service
        return compute_metrics(service.runner.state)

    @app.post("/api/orders", status_code=202)
    async def submit_order(payload: OrderSubmission, request: Request) -> Any:
        """Queue an order for the next tick boundary."""
        service: SimulationService = request.app.state.service
        try:
            order = service.runner.submit(payload.to_order())
        except ValidationError as exc:
            return JSONResponse(status_code=422, content={"detail": str(exc)})
        logger.info("order queued placed_at=%s destination=%s priority=%s", order.placed_at, order.destination, order.priority.name)
        return order_record(order).model_dump(mode="json")

    @app.websocket("/ws/monitor")
    async def monitor(websocket: WebSocket) -> None:
        """Push one StatusUpdate per tick until the feed closes."""
        service: SimulationService = websocket.app.state.service
        await websocket.accept()
        subscription = service.feed.subscribe()
        try:
            async for update in subscription:
                await websocket.send_text(encode_status_update(update))
            await websocket.close()
        except FeedBackpressure:
            await websocket.close(code=1013)
        except WebSocketDisconnect:
            pass
        except Exception as exc:  # noqa: BLE001
            logger.warning("monitor client dropped id=%s err=%s", subscription.id, exc)
        finally:
            service.feed.unsubscribe(subscription)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.service_host, port=settings.service_port)
