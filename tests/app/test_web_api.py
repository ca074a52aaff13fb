from __future__ import annotations

from collections.abc import Callable
from typing import Any

import orjson
from fastapi.testclient import TestClient

from app.config import AppSettings
from app.web_main import DRAWIO_MEDIA_TYPE, create_app
from domain.models import LandingZonePreset
from tests.helpers.workload_fixtures import load_workload_payload


def _client(app_settings: AppSettings) -> TestClient:
    return TestClient(create_app(app_settings))


def _scenario_payload(**extra: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "workloads": load_workload_payload("three_tier.json"),
        "preset": {"includeAppGateway": True},
    }
    payload.update(extra)
    return payload


def test_health(app_settings: AppSettings) -> None:
    response = _client(app_settings).get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_drawio_endpoint_returns_document(app_settings: AppSettings) -> None:
    response = _client(app_settings).post("/api/diagram/drawio", json=_scenario_payload())

    assert response.status_code == 200
    assert response.headers["content-type"].startswith(DRAWIO_MEDIA_TYPE)
    assert response.headers["X-Diagram-Connectors"] == "8"
    assert int(response.headers["X-Diagram-Shapes"]) > 0
    assert "X-Classification-Mismatch" not in response.headers
    assert response.text.startswith("<mxfile")
    assert 'id="legend"' in response.text


def test_drawio_endpoint_honours_legend_flag(
    app_settings_factory: Callable[..., AppSettings],
) -> None:
    client = _client(app_settings_factory(show_legend=True))

    response = client.post("/api/diagram/drawio", json=_scenario_payload(showLegend=False))

    assert response.status_code == 200
    assert 'id="legend"' not in response.text


def test_graph_endpoint(app_settings: AppSettings) -> None:
    response = _client(app_settings).post("/api/diagram/graph", json=_scenario_payload())

    assert response.status_code == 200
    payload = orjson.loads(response.content)
    assert payload["meta"]["edge_count"] == 8
    assert payload["meta"]["classification_mismatches"] == {}
    node_ids = {node["id"] for node in payload["nodes"]}
    assert {"vnet-hub", "vnet-spoke-prod", "svc-app-gateway"} <= node_ids


def test_settings_preset_is_the_default(
    app_settings_factory: Callable[..., AppSettings],
) -> None:
    settings = app_settings_factory(preset=LandingZonePreset(include_bastion=True))
    response = _client(settings).post(
        "/api/diagram/graph",
        json={"workloads": load_workload_payload("three_tier.json")},
    )

    kinds = {edge["kind"] for edge in response.json()["edges"]}
    assert "bastion" in kinds


def test_invalid_preset_is_rejected(app_settings: AppSettings) -> None:
    response = _client(app_settings).post(
        "/api/diagram/drawio",
        json=_scenario_payload(preset={"hubAddressSpace": "not-a-network"}),
    )

    assert response.status_code == 422
    detail = response.json()["detail"]
    assert detail["error"] == "ConfigurationError"
    assert "Invalid landing zone preset" in detail["message"]


def test_overlapping_address_spaces_are_rejected(app_settings: AppSettings) -> None:
    response = _client(app_settings).post(
        "/api/diagram/graph",
        json=_scenario_payload(preset={"prodSpokeAddressSpace": "10.0.0.0/16"}),
    )

    assert response.status_code == 422
    assert response.json()["detail"]["error"] == "ConfigurationError"


def test_invalid_record_is_rejected(app_settings: AppSettings) -> None:
    response = _client(app_settings).post(
        "/api/diagram/drawio", json={"workloads": [{"cores": 2}]}
    )

    assert response.status_code == 422
