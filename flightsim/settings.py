"""
File: flightsim/settings.py
Purpose: Environment-backed configuration for the dispatch simulation service.
Key responsibilities:
- Parse scheduling constants (dispatch delay, capacity, range, speed, leg distance).
- Parse pacing, feed, HTTP and RabbitMQ settings.
"""

from dataclasses import dataclass
import os


def _int_env(name: str, default: int = 0) -> int:
    """Parse an integer env var with a fallback."""
    raw = os.getenv(name, "")
    if raw == "":
        return default
    return int(raw)


def _bool_env(name: str, default: bool = False) -> bool:
    raw = os.getenv(name, "")
    if raw == "":
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    """Simulation configuration parsed from environment."""
    dispatch_delay: int = _int_env("DISPATCH_DELAY", 5)
    tick_step: int = _int_env("TICK_STEP", 1)
    fleet_speed: int = _int_env("FLEET_SPEED", 30)
    leg_distance: int = _int_env("LEG_DISTANCE", 600)
    max_orders_per_flight: int = _int_env("MAX_ORDERS_PER_FLIGHT", 0)
    fleet_size: int = _int_env("FLEET_SIZE", 0)
    emergency_reserve: int = _int_env("EMERGENCY_RESERVE", 0)
    max_route_m: int = _int_env("MAX_ROUTE_M", 0)
    sim_tick_hz: float = float(os.getenv("SIM_TICK_HZ", "5"))
    max_ticks: int = _int_env("MAX_TICKS", 0)
    feed_policy: str = os.getenv("FEED_POLICY", "latest")
    feed_buffer: int = _int_env("FEED_BUFFER", 64)
    orders_csv: str = os.getenv("ORDERS_CSV", "")
    destinations_csv: str = os.getenv("DESTINATIONS_CSV", "")
    service_host: str = os.getenv("SERVICE_HOST", "0.0.0.0")
    service_port: int = _int_env("SERVICE_PORT", 8000)
    mq_enabled: bool = _bool_env("MQ_ENABLED", False)
    rabbit_host: str = os.getenv("RABBITMQ_HOST", "rabbitmq")
    rabbit_port: int = int(os.getenv("RABBITMQ_PORT", "5672"))
    rabbit_user: str = os.getenv("RABBITMQ_USER", "flightsim")
    rabbit_pass: str = os.getenv("RABBITMQ_PASS", "flightsim")
    exchange_name: str = "flightsim.events"


settings = Settings()


def rabbit_url(cfg: Settings = settings) -> str:
    return f"amqp://{cfg.rabbit_user}:{cfg.rabbit_pass}@{cfg.rabbit_host}:{cfg.rabbit_port}/"
