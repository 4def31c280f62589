# tests/test_fastapi_app.py
from fastapi.testclient import TestClient

from event_gateway.core.config import Settings
from event_gateway.main import create_app


def test_health_endpoint():
    settings = Settings(subscription_expiry_enabled=False, log_json=False)
    app = create_app(settings, broker_properties={})

    with TestClient(app) as client:
        r = client.get("/health")

    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "ok"
    assert body["live_subscriptions"] == 0
    # user deletion consumer
    assert body["consumers"] == 1
