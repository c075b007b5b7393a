import pytest

from flightsim.errors import ValidationError
from flightsim.sim.data_loader import load_orders_csv, parse_destinations, parse_orders
from flightsim.sim.entities import Priority


def test_parse_orders_sorted_by_time():
    orders = parse_orders(["120, Bravo, Resupply", "", "60, Alpha, Emergency"])
    assert [(o.placed_at, o.destination, o.priority) for o in orders] == [
        (60, "Alpha", Priority.EMERGENCY),
        (120, "Bravo", Priority.RESUPPLY),
    ]


def test_parse_destinations():
    destinations = parse_destinations(["Alpha, 300, -400"])
    assert destinations["Alpha"].north_m == 300
    assert destinations["Alpha"].east_m == -400


def test_bad_priority_reports_line():
    with pytest.raises(ValidationError, match="line 2"):
        parse_orders(["1, A, Resupply", "2, B, Soon"])


def test_wrong_field_count():
    with pytest.raises(ValidationError):
        parse_destinations(["Alpha, 1"])


def test_load_orders_csv(tmp_path):
    path = tmp_path / "orders.csv"
    path.write_text("10, Alpha, Emergency\n5, Bravo, Resupply\n", encoding="utf-8")
    assert [o.placed_at for o in load_orders_csv(path)] == [5, 10]
