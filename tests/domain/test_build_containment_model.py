from __future__ import annotations

import logging

import pytest

from domain.errors import ConfigurationError
from domain.models import TIER_WEB, LandingZonePreset
from domain.services.build_containment_model import (
    ContainmentModelBuilder,
    build_containment_model,
    carve_subnet,
)
from domain.services.generate_diagram import parse_preset
from domain.topology import (
    HUB_VNET,
    SCOPE_PER_ENVIRONMENT,
    SPOKE_VNET,
    TEMPLATES,
    SubnetTemplate,
    SubscriptionTemplate,
    TopologyTemplate,
    VnetTemplate,
    get_template,
)
from tests.helpers.workload_fixtures import record, scenario_records, sized_records


def _ids(model) -> list[str]:
    return [node.id for node in model.nodes]


def test_caf_build_creates_hierarchy_in_construction_order() -> None:
    model = build_containment_model(scenario_records(), LandingZonePreset())

    assert _ids(model)[:7] == [
        "mg-tenant-root",
        "mg-platform",
        "mg-landing-zones",
        "sub-platform-connectivity",
        "sub-platform-management",
        "sub-platform-data",
        "sub-landingzone-prod",
    ]
    assert model.node("mg-platform").parent_id == "mg-tenant-root"
    assert model.node("sub-landingzone-prod").parent_id == "mg-landing-zones"
    assert model.node("vnet-spoke-prod").parent_id == "sub-landingzone-prod"
    assert model.node("subnet-prod-web").parent_id == "vnet-spoke-prod"
    assert model.node("tier-prod-data").parent_id == "subnet-prod-db"
    assert model.node("tier-prod-management").parent_id == "sub-platform-management"


def test_children_lists_agree_with_parent_pointers() -> None:
    model = build_containment_model(sized_records(12), LandingZonePreset(include_bastion=True))

    for node in model.nodes:
        assert [child.id for child in model.children_of(node.id)] == node.children
        for child_id in node.children:
            assert model.node(child_id).parent_id == node.id


def test_empty_tiers_still_get_placeholders() -> None:
    model = build_containment_model([], LandingZonePreset())

    for tier in ("web", "app", "data", "management"):
        node = model.node(f"tier-prod-{tier}")
        assert node.vm_count == 0
        assert node.dominant_sku is None
        assert node.label.endswith("Tier (0)")


def test_tier_nodes_carry_counts_and_dominant_sku() -> None:
    model = build_containment_model(scenario_records(), LandingZonePreset())

    data = model.node("tier-prod-data")
    assert data.vm_count == 1
    assert data.dominant_sku == "Standard_E16s_v5"
    assert data.label == "Data Tier (1) • Standard_E16s_v5"
    assert model.node("tier-prod-app").vm_count == 1
    assert model.node("tier-prod-web").vm_count == 0
    assert model.node("tier-prod-management").vm_count == 1


def test_feature_flags_gate_optional_nodes() -> None:
    bare = build_containment_model([], LandingZonePreset())
    assert "svc-firewall" not in bare
    assert "subnet-hub-firewall" not in bare
    assert "svc-bastion" not in bare
    assert "svc-app-gateway" not in bare
    assert "paas-key-vault" not in bare
    assert "svc-observability" not in bare
    assert "subnet-hub-gateway" in bare
    assert "paas-sql" in bare
    assert "svc-policy" in bare

    full = build_containment_model(
        [],
        LandingZonePreset(
            include_firewall=True,
            include_bastion=True,
            include_app_gateway=True,
            include_key_vault=True,
            include_observability=True,
        ),
    )
    assert full.node("svc-firewall").parent_id == "subnet-hub-firewall"
    assert full.node("svc-bastion").parent_id == "subnet-hub-bastion"
    assert full.node("svc-app-gateway").parent_id == "subnet-hub-appgw"
    assert full.node("paas-key-vault").parent_id == "sub-platform-data"
    assert full.node("svc-monitor").parent_id == "svc-observability"
    assert full.node("svc-log-analytics").parent_id == "svc-observability"


def test_non_prod_environment_adds_second_landing_zone(full_preset: LandingZonePreset) -> None:
    records = [record("web-p", cores=2), record("web-d", cores=2, environment="dev")]
    model = build_containment_model(records, full_preset)

    assert model.entity_count("vnet") == 3
    assert model.node("sub-landingzone-nonprod").label == "LandingZone-NonProd"
    assert model.node("vnet-spoke-nonprod").address_space == "10.2.0.0/16"
    assert model.node("subnet-nonprod-app").address_space == "10.2.2.0/24"
    assert model.node("tier-nonprod-web").vm_count == 1
    assert model.node("tier-prod-web").vm_count == 1
    assert model.node("tier-nonprod-management").parent_id == "sub-platform-management"


def test_non_prod_records_are_left_out_when_environment_disabled(
    caplog: pytest.LogCaptureFixture,
) -> None:
    records = [record("web-p", cores=2), record("web-d", cores=2, environment="test")]

    with caplog.at_level(logging.INFO):
        result = ContainmentModelBuilder(LandingZonePreset()).build(records)

    assert result.excluded_records == 1
    assert "sub-landingzone-nonprod" not in result.model
    assert result.model.node("tier-prod-web").vm_count == 1
    assert "Leaving out 1" in caplog.text


def test_hub_spoke_template_has_no_management_groups() -> None:
    model = build_containment_model([], LandingZonePreset(topology="hub-spoke"))

    assert model.entity_count("managementGroup") == 0
    assert [node.id for node in model.roots()] == [
        "sub-platform-connectivity",
        "sub-platform-management",
        "sub-platform-data",
        "sub-landingzone-prod",
    ]


def test_subnet_address_spaces_are_carved_from_vnet_space() -> None:
    model = build_containment_model(
        [], LandingZonePreset(include_firewall=True, include_bastion=True, include_app_gateway=True)
    )

    assert model.node("vnet-hub").label == "Hub VNet (10.0.0.0/16)"
    assert model.node("subnet-hub-gateway").address_space == "10.0.0.0/27"
    assert model.node("subnet-hub-firewall").address_space == "10.0.1.0/26"
    assert model.node("subnet-hub-bastion").address_space == "10.0.2.0/26"
    assert model.node("subnet-hub-appgw").address_space == "10.0.3.0/24"
    assert model.node("subnet-prod-web").address_space == "10.1.1.0/24"
    assert model.node("subnet-prod-db").label == "DB Subnet (10.1.3.0/24)"


def test_identical_inputs_produce_identical_ids() -> None:
    preset = LandingZonePreset(include_non_prod_environment=True, include_bastion=True)
    first = build_containment_model(sized_records(20), preset)
    second = build_containment_model(sized_records(20), preset)

    assert _ids(first) == _ids(second)
    assert [node.label for node in first.nodes] == [node.label for node in second.nodes]
    assert first.edges == []


def test_carve_subnet_rejects_spaces_that_are_too_small() -> None:
    with pytest.raises(ConfigurationError, match="too small"):
        carve_subnet("10.1.0.0/25", SPOKE_VNET.subnets[0])
    with pytest.raises(ConfigurationError, match="block"):
        carve_subnet("10.0.0.0/23", HUB_VNET.subnets[3])


def test_small_spoke_space_fails_the_build() -> None:
    with pytest.raises(ConfigurationError):
        build_containment_model([], LandingZonePreset(prod_spoke_address_space="10.1.0.0/23"))


@pytest.mark.parametrize(
    "payload",
    [
        {"hubAddressSpace": "10.0.0.0/33"},
        {"hub_address_space": "not-a-network"},
        {"prod_spoke_address_space": "10.1.0.1/16"},
        {"hub_address_space": "10.0.0.0/8"},
        {"includeNonProd": True, "nonProdSpokeAddressSpace": "10.1.128.0/17"},
    ],
)
def test_invalid_presets_raise_configuration_error(payload: dict[str, object]) -> None:
    with pytest.raises(ConfigurationError):
        parse_preset(payload)


def test_non_prod_space_overlap_ignored_when_environment_disabled() -> None:
    preset = parse_preset({"nonProdSpokeAddressSpace": "10.1.0.0/16"})
    assert preset.environments() == ("prod",)


def test_unknown_topology_is_a_configuration_error() -> None:
    with pytest.raises(ConfigurationError, match="Unknown topology"):
        get_template("mesh")
    with pytest.raises(ConfigurationError):
        ContainmentModelBuilder(LandingZonePreset(topology="mesh"))


def test_preset_aliases_map_to_flags() -> None:
    preset = parse_preset({"showNonProd": True, "includeAppGateway": True, "unknownFlag": 1})
    assert preset.include_non_prod_environment is True
    assert preset.include_app_gateway is True
    assert preset.include_firewall is False


def test_template_placing_a_tier_twice_is_a_configuration_error(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    twin_web = TopologyTemplate(
        name="twin-web",
        management_groups=(),
        subscriptions=(
            SubscriptionTemplate(
                role="landingzone",
                label="LandingZone",
                layer="Compute",
                scope=SCOPE_PER_ENVIRONMENT,
                vnet=VnetTemplate(
                    role="spoke",
                    label="Spoke VNet",
                    subnets=(
                        SubnetTemplate(
                            role="web-a", label="Web A", block_index=1, tiers=(TIER_WEB,)
                        ),
                        SubnetTemplate(
                            role="web-b", label="Web B", block_index=2, tiers=(TIER_WEB,)
                        ),
                    ),
                ),
            ),
        ),
    )
    monkeypatch.setitem(TEMPLATES, twin_web.name, twin_web)

    with pytest.raises(ConfigurationError, match="Duplicate node id") as exc_info:
        build_containment_model(scenario_records(), LandingZonePreset(topology="twin-web"))

    assert exc_info.value.node_ids == ("tier-prod-web",)
