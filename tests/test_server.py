from fastapi.testclient import TestClient

from pixeloffice.adapters.base import IssueSnapshot
from pixeloffice.adapters.static import StaticContentProvider, StaticIssueProvider
from pixeloffice.config import AppConfig, TierConfig, UnitConfig
from pixeloffice.service import DashboardService
from pixeloffice.ui import create_app


def _service() -> DashboardService:
    config = AppConfig(
        units=[UnitConfig(code="Eng", display_name="Engineering"), UnitConfig(code="QA", display_name="QA")],
        tiers=[TierConfig(name="fast", unit_ids=["Eng", "QA"], interval_ms=3_600_000)],
        provider="static",
    )
    issues = StaticIssueProvider({"QA": IssueSnapshot(unit_id="QA", blocked_count=3)})
    return DashboardService(config, StaticContentProvider(), issues)


def test_health_reports_providers() -> None:
    with TestClient(create_app(_service())) as client:
        response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["content"] == {"configured": True}


def test_state_endpoint_returns_refreshed_snapshot() -> None:
    with TestClient(create_app(_service())) as client:
        body = client.get("/state").json()

    assert body["type"] == "update"
    states = {d["space"]: d["state"] for d in body["departments"]}
    assert states == {"Eng": "idle", "QA": "blocked"}


def test_websocket_first_message_is_full_state() -> None:
    service = _service()
    with TestClient(create_app(service)) as client:
        with client.websocket_connect("/ws") as websocket:
            message = websocket.receive_json()

    assert message["type"] == "update"
    assert len(message["departments"]) == 2
    qa = next(d for d in message["departments"] if d["space"] == "QA")
    assert qa["characterCount"] == 4
    assert qa["metadata"]["source"] == "issues"
    assert qa["metadata"]["displayName"] == "QA"
