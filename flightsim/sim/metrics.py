from __future__ import annotations

"""
File: flightsim/sim/metrics.py
Purpose: Compute aggregate run metrics from fleet state.
Key responsibilities:
- Order/flight counts and average wait between placement and launch.
"""

from flightsim.sim.entities import FleetState


def compute_metrics(state: FleetState) -> dict[str, float | int]:
    """Compute run-level metrics used by the API."""
    flights = state.active_flights + state.retired_flights
    waits = [float(f.launch_time - o.placed_at) for f in flights for o in f.orders]
    avg_dispatch_wait = sum(waits) / len(waits) if waits else 0.0

    return {
        "current_time": state.current_time,
        "pending_orders": len(state.pending_orders),
        "active_flights": len(state.active_flights),
        "retired_flights": len(state.retired_flights),
        "delivered_orders": state.delivered_orders,
        "loaded_orders": len(waits),
        "avg_dispatch_wait": round(avg_dispatch_wait, 6),
    }
