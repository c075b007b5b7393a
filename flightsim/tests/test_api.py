from fastapi.testclient import TestClient

from flightsim.main import create_app
from flightsim.settings import Settings


def _client(**overrides) -> TestClient:
    params = {"sim_tick_hz": 200.0, "max_ticks": 0, "mq_enabled": False, "orders_csv": "", "destinations_csv": ""}
    params.update(overrides)
    cfg = Settings(**params)
    return TestClient(create_app(cfg))


def test_health_and_config():
    with _client(dispatch_delay=7) as client:
        assert client.get("/health").json() == {"status": "ok"}
        assert client.get("/api/config").json()["dispatch_delay"] == 7


def test_submit_order_accepted():
    with _client() as client:
        resp = client.post("/api/orders", json={"placed_at": 0, "destination": "A", "priority": "Emergency"})
        assert resp.status_code == 202
        assert resp.json() == {"time": 0, "destination": "A", "priority": 0}


def test_submit_order_rejected():
    with _client() as client:
        resp = client.post("/api/orders", json={"placed_at": -5, "destination": "A", "priority": 1})
        assert resp.status_code == 422


def test_unknown_destination_rejected_with_table(tmp_path):
    path = tmp_path / "destinations.csv"
    path.write_text("A, 10, 10\n", encoding="utf-8")
    with _client(destinations_csv=str(path)) as client:
        resp = client.post("/api/orders", json={"placed_at": 0, "destination": "Z", "priority": 1})
        assert resp.status_code == 422
        assert "unknown destination" in resp.json()["detail"]


def test_snapshot_and_metrics_shape():
    with _client() as client:
        snapshot = client.get("/api/snapshot").json()
        assert set(snapshot) == {"time", "flights", "speed"}
        assert "pending_orders" in client.get("/api/metrics").json()


def test_monitor_streams_status_updates():
    with _client() as client:
        with client.websocket_connect("/ws/monitor") as ws:
            first = ws.receive_json()
            second = ws.receive_json()
    assert set(first) == {"time", "flights", "speed"}
    assert second["time"] > first["time"]


def test_out_of_range_destination_rejected_with_table(tmp_path):
    path = tmp_path / "destinations.csv"
    path.write_text("Near, 0, 300\nFar, 0, 800\n", encoding="utf-8")
    with _client(destinations_csv=str(path), max_route_m=1000) as client:
        assert client.get("/api/config").json()["max_route_m"] == 1000
        assert client.post("/api/orders", json={"placed_at": 0, "destination": "Near", "priority": 1}).status_code == 202
        resp = client.post("/api/orders", json={"placed_at": 0, "destination": "Far", "priority": 1})
        assert resp.status_code == 422
        assert "out of range" in resp.json()["detail"]
