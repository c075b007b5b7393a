"""
File: flightsim/errors.py
Purpose: Exception taxonomy for the dispatch simulation.
Key responsibilities:
- ValidationError: malformed order/flight input, rejected locally.
- SchedulingInvariantViolation: broken fleet invariant, halts the simulation.
- FeedBackpressure: slow observer condition, handled by the feed only.
"""


class ValidationError(ValueError):
    """Malformed order or flight input."""


class SchedulingInvariantViolation(RuntimeError):
    """Fleet state can no longer be trusted (e.g. an order held twice)."""


class FeedBackpressure(RuntimeError):
    """A feed subscriber fell too far behind and was disconnected."""
