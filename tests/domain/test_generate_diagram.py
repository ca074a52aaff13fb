from __future__ import annotations

import xml.etree.ElementTree as ET

import pytest

from adapters.layout.containment import ContainmentLayoutEngine
from domain.errors import ConfigurationError, MissingBoundsError, StructuralError
from domain.models import ContainmentModel, LandingZonePreset
from domain.services.classify_workloads import DEFAULT_TIER_RULES, TierRuleSet
from domain.services.generate_diagram import (
    DiagramGenerator,
    parse_preset,
    parse_records,
)
from tests.helpers.workload_fixtures import load_workload_payload, scenario_records

SCENARIO_PRESET = LandingZonePreset(include_non_prod_environment=False, include_app_gateway=True)

SCENARIO_NODE_IDS = [
    "mg-tenant-root",
    "mg-platform",
    "mg-landing-zones",
    "sub-platform-connectivity",
    "sub-platform-management",
    "sub-platform-data",
    "sub-landingzone-prod",
    "vnet-hub",
    "subnet-hub-gateway",
    "subnet-hub-appgw",
    "vnet-spoke-prod",
    "subnet-prod-web",
    "subnet-prod-app",
    "subnet-prod-db",
    "tier-prod-management",
    "tier-prod-web",
    "tier-prod-app",
    "tier-prod-data",
    "svc-app-gateway",
    "svc-dns-resolver",
    "svc-policy",
    "svc-defender",
    "paas-sql",
    "paas-storage",
]
SCENARIO_EDGE_IDS = [
    "edge-peering-vnet-hub-vnet-spoke-prod",
    "edge-ingress-svc-app-gateway-tier-prod-web",
    "edge-east-west-tier-prod-web-tier-prod-app",
    "edge-east-west-tier-prod-app-tier-prod-data",
    "edge-governance-svc-policy-sub-landingzone-prod",
    "edge-security-svc-defender-sub-landingzone-prod",
    "edge-private-endpoint-paas-sql-vnet-spoke-prod",
    "edge-private-endpoint-paas-storage-vnet-spoke-prod",
]


class _CyclingLayout:
    def layout(self, model: ContainmentModel) -> ContainmentModel:
        first, second = model.nodes[0], model.nodes[1]
        first.parent_id = second.id
        second.parent_id = first.id
        return model


class _NoopLayout:
    def layout(self, model: ContainmentModel) -> ContainmentModel:
        return model


def test_three_record_scenario(generator: DiagramGenerator) -> None:
    result = generator.generate(scenario_records(), SCENARIO_PRESET)
    model = result.model

    assert [node.id for node in model.nodes] == SCENARIO_NODE_IDS
    assert len(model.nodes) == 24
    assert [edge.id for edge in model.edges] == SCENARIO_EDGE_IDS

    landing_zones = [
        node
        for node in model.nodes
        if node.entity_type == "subscription" and node.role == "landingzone"
    ]
    assert [node.id for node in landing_zones] == ["sub-landingzone-prod"]
    spoke = model.node("vnet-spoke-prod")
    assert spoke.children == ["subnet-prod-web", "subnet-prod-app", "subnet-prod-db"]
    assert model.get("vnet-spoke-nonprod") is None

    assert model.node("tier-prod-web").vm_count == 0
    assert model.node("tier-prod-app").vm_count == 1
    assert model.node("tier-prod-app").parent_id == "subnet-prod-app"
    assert model.node("tier-prod-data").vm_count == 1
    assert model.node("tier-prod-data").parent_id == "subnet-prod-db"
    assert model.node("tier-prod-management").vm_count == 1

    assert result.document.connector_count == 8
    assert result.document.shape_count == len(model.nodes)
    assert result.mismatches == {}
    assert result.excluded_records == 0


def test_every_node_is_emitted_once(generator: DiagramGenerator) -> None:
    result = generator.generate(scenario_records(), SCENARIO_PRESET)
    root = ET.fromstring(result.document.xml)
    vertex_ids = [
        cell.get("id")
        for cell in root.iter("mxCell")
        if cell.get("vertex") == "1"
        and not (cell.get("id") or "").startswith("legend")
        and not (cell.get("id") or "").endswith("-icon")
    ]

    assert sorted(vertex_ids) == sorted(node.id for node in result.model.nodes)


def test_generation_is_idempotent(full_preset: LandingZonePreset) -> None:
    payload = load_workload_payload("mixed_estate.json")
    records = parse_records(payload["workloads"])

    first = DiagramGenerator(ContainmentLayoutEngine()).generate(records, full_preset)
    second = DiagramGenerator(ContainmentLayoutEngine()).generate(records, full_preset)

    assert first.document.to_text() == second.document.to_text()
    assert [edge.id for edge in first.model.edges] == [edge.id for edge in second.model.edges]


def test_mismatch_is_reported_not_raised() -> None:
    overlapping = TierRuleSet(rules=DEFAULT_TIER_RULES.rules, first_match=False)
    generator = DiagramGenerator(ContainmentLayoutEngine(), rules=overlapping)

    result = generator.generate(scenario_records(), SCENARIO_PRESET)

    assert "prod" in result.mismatches
    assert result.mismatches["prod"].expected == 3
    assert result.mismatches["prod"].counted > 3
    assert result.document.shape_count > 0


def test_excluded_nonprod_records_are_counted(generator: DiagramGenerator) -> None:
    records = parse_records(load_workload_payload("mixed_estate.json")["workloads"])

    result = generator.generate(records, LandingZonePreset())

    assert result.excluded_records > 0
    assert all(node.environment != "nonprod" for node in result.model.nodes)


def test_structural_errors_abort_generation() -> None:
    generator = DiagramGenerator(_CyclingLayout())

    with pytest.raises(StructuralError):
        generator.generate(scenario_records(), SCENARIO_PRESET)


def test_unlaid_model_cannot_be_serialized() -> None:
    generator = DiagramGenerator(_NoopLayout())

    with pytest.raises(MissingBoundsError):
        generator.generate(scenario_records(), SCENARIO_PRESET)


def test_graph_view(generator: DiagramGenerator) -> None:
    view = generator.graph(scenario_records(), SCENARIO_PRESET)

    assert view["meta"]["edge_count"] == 8
    assert view["meta"]["node_count"] == len(view["nodes"])
    nodes = {node["id"]: node for node in view["nodes"]}
    assert nodes["vnet-spoke-prod"]["addressSpace"] == SCENARIO_PRESET.prod_spoke_address_space
    assert nodes["tier-prod-app"]["vmCount"] == 1
    assert nodes["tier-prod-app"]["parentId"] == "subnet-prod-app"
    kinds = {edge["kind"] for edge in view["edges"]}
    assert "bastion" not in kinds


def test_parse_preset_rejects_invalid_payload() -> None:
    with pytest.raises(ConfigurationError, match="Invalid landing zone preset"):
        parse_preset({"hubAddressSpace": "not-a-network"})


def test_parse_records_reports_index() -> None:
    with pytest.raises(ConfigurationError, match="#1"):
        parse_records([{"name": "ok", "cores": 2}, {"cores": 4}])
