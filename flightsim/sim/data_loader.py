from __future__ import annotations

"""
File: flightsim/sim/data_loader.py
Purpose: Load scripted destinations and orders from comma-separated files.
Key responsibilities:
- destinations: `name, north_m, east_m` per line.
- orders: `time, destination, priority` per line.
"""

from pathlib import Path
from typing import Iterable

from flightsim.errors import ValidationError
from flightsim.sim.entities import Destination, Order, Priority


def _rows(lines: Iterable[str], width: int, kind: str) -> Iterable[tuple[int, list[str]]]:
    for lineno, line in enumerate(lines, start=1):
        if not line.strip():
            continue
        values = [value.strip() for value in line.split(",")]
        if len(values) != width:
            raise ValidationError(f"{kind} line {lineno}: expected {width} fields, got {len(values)}")
        yield lineno, values


def parse_destinations(lines: Iterable[str]) -> dict[str, Destination]:
    """Parse destination rows into a name-keyed table."""
    destinations: dict[str, Destination] = {}
    for lineno, (name, north, east) in _rows(lines, 3, "destinations"):
        try:
            destinations[name] = Destination(name=name, north_m=int(north), east_m=int(east))
        except ValueError as exc:
            raise ValidationError(f"destinations line {lineno}: {exc}") from exc
    return destinations


def parse_orders(lines: Iterable[str]) -> list[Order]:
    """Parse order rows, sorted by placement time (stable for equal times)."""
    orders: list[Order] = []
    for lineno, (placed_at, destination, priority) in _rows(lines, 3, "orders"):
        try:
            order = Order(placed_at=int(placed_at), destination=destination, priority=Priority.parse(priority))
        except ValueError as exc:
            raise ValidationError(f"orders line {lineno}: {exc}") from exc
        if order.placed_at < 0:
            raise ValidationError(f"orders line {lineno}: negative time {order.placed_at}")
        orders.append(order)
    orders.sort(key=lambda o: o.placed_at)
    return orders


def load_destinations_csv(path: str | Path) -> dict[str, Destination]:
    with open(path, encoding="utf-8") as fh:
        return parse_destinations(fh)


def load_orders_csv(path: str | Path) -> list[Order]:
    with open(path, encoding="utf-8") as fh:
        return parse_orders(fh)
