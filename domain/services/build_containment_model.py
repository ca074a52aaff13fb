from __future__ import annotations

import ipaddress
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from domain.errors import ClassificationMismatch, ConfigurationError
from domain.models import (
    ENV_NON_PROD,
    ContainmentModel,
    LandingZonePreset,
    Node,
    WorkloadRecord,
)
from domain.services.classify_workloads import (
    DEFAULT_TIER_RULES,
    TierAggregation,
    TierRuleSet,
    aggregate,
    partition_by_environment,
    tier_label,
)
from domain.topology import (
    SCOPE_PER_ENVIRONMENT,
    ServiceTemplate,
    SubnetTemplate,
    SubscriptionTemplate,
    TopologyTemplate,
    VnetTemplate,
    get_template,
)

logger = logging.getLogger(__name__)

_ENV_TITLES = {"prod": "Prod", "nonprod": "NonProd"}


@dataclass(frozen=True)
class BuildResult:
    model: ContainmentModel
    aggregations: dict[str, TierAggregation] = field(default_factory=dict)
    excluded_records: int = 0

    @property
    def mismatches(self) -> dict[str, ClassificationMismatch]:
        return {
            environment: aggregation.mismatch
            for environment, aggregation in self.aggregations.items()
            if aggregation.mismatch is not None
        }


class ContainmentModelBuilder:
    def __init__(
        self,
        preset: LandingZonePreset | None = None,
        rules: TierRuleSet = DEFAULT_TIER_RULES,
    ) -> None:
        self.preset = preset or LandingZonePreset()
        self.template: TopologyTemplate = get_template(self.preset.topology)
        self.rules = rules

    def build(self, records: Sequence[WorkloadRecord]) -> BuildResult:
        model = ContainmentModel()
        environments = self.preset.environments()
        partitions = partition_by_environment(records)
        excluded = sum(
            len(env_records)
            for environment, env_records in partitions.items()
            if environment not in environments
        )
        if excluded:
            logger.info(
                "Leaving out %d %s workload record(s); environment not enabled in preset.",
                excluded,
                ENV_NON_PROD,
            )
        aggregations = {
            environment: aggregate(partitions.get(environment, []), self.rules)
            for environment in environments
        }

        self._build_management_groups(model)
        subscription_ids = self._build_subscriptions(model, environments)
        self._build_networking(model, subscription_ids)
        self._build_tiers(model, subscription_ids, aggregations)
        self._build_platform_services(model, subscription_ids)

        logger.debug(
            "Built containment model: template=%s nodes=%d environments=%s",
            self.template.name,
            len(model.nodes),
            ",".join(environments),
        )
        return BuildResult(model=model, aggregations=aggregations, excluded_records=excluded)

    def _build_management_groups(self, model: ContainmentModel) -> None:
        for group in self.template.management_groups:
            model.add_node(
                Node(
                    id=f"mg-{group.role}",
                    entity_type="managementGroup",
                    layer="Management",
                    label=group.label,
                    parent_id=f"mg-{group.parent}" if group.parent else None,
                    role=group.role,
                )
            )

    def _build_subscriptions(
        self, model: ContainmentModel, environments: Sequence[str]
    ) -> list[tuple[SubscriptionTemplate, str, str | None]]:
        declared_groups = {group.role for group in self.template.management_groups}
        created: list[tuple[SubscriptionTemplate, str, str | None]] = []
        for blueprint in self.template.subscriptions:
            parent_id = (
                f"mg-{blueprint.management_group}"
                if blueprint.management_group in declared_groups
                else None
            )
            scoped_envs: Sequence[str | None] = (
                environments if blueprint.scope == SCOPE_PER_ENVIRONMENT else (None,)
            )
            for environment in scoped_envs:
                if environment is None:
                    node_id = f"sub-{blueprint.role}"
                    label = blueprint.label
                else:
                    node_id = f"sub-{blueprint.role}-{environment}"
                    label = f"{blueprint.label}-{_ENV_TITLES.get(environment, environment)}"
                model.add_node(
                    Node(
                        id=node_id,
                        entity_type="subscription",
                        layer=blueprint.layer,
                        label=label,
                        parent_id=parent_id,
                        role=blueprint.role,
                        environment=environment,
                    )
                )
                created.append((blueprint, node_id, environment))
        return created

    def _build_networking(
        self,
        model: ContainmentModel,
        subscriptions: Sequence[tuple[SubscriptionTemplate, str, str | None]],
    ) -> None:
        for blueprint, subscription_id, environment in subscriptions:
            if blueprint.vnet is None:
                continue
            self._build_vnet(model, blueprint.vnet, subscription_id, environment)

    def _build_vnet(
        self,
        model: ContainmentModel,
        blueprint: VnetTemplate,
        subscription_id: str,
        environment: str | None,
    ) -> None:
        address_space = self._vnet_address_space(blueprint, environment)
        vnet_id = (
            f"vnet-{blueprint.role}"
            if environment is None
            else f"vnet-{blueprint.role}-{environment}"
        )
        model.add_node(
            Node(
                id=vnet_id,
                entity_type="vnet",
                layer="Networking",
                label=f"{blueprint.label} ({address_space})",
                parent_id=subscription_id,
                role=blueprint.role,
                environment=environment,
                address_space=address_space,
            )
        )
        for subnet in blueprint.subnets:
            if not self.preset.feature_enabled(subnet.feature):
                continue
            subnet_space = carve_subnet(address_space, subnet)
            subnet_id = (
                f"subnet-{blueprint.role}-{subnet.role}"
                if environment is None
                else f"subnet-{environment}-{subnet.role}"
            )
            model.add_node(
                Node(
                    id=subnet_id,
                    entity_type="subnet",
                    layer="Networking",
                    label=f"{subnet.label} ({subnet_space})",
                    parent_id=vnet_id,
                    role=subnet.role,
                    environment=environment,
                    address_space=subnet_space,
                )
            )

    def _vnet_address_space(self, blueprint: VnetTemplate, environment: str | None) -> str:
        if environment is None:
            return self.preset.hub_address_space
        return self.preset.spoke_address_space(environment)

    def _build_tiers(
        self,
        model: ContainmentModel,
        subscriptions: Sequence[tuple[SubscriptionTemplate, str, str | None]],
        aggregations: dict[str, TierAggregation],
    ) -> None:
        for blueprint, subscription_id, environment in subscriptions:
            placements: list[tuple[str, str]] = []
            if blueprint.vnet is not None:
                for subnet in blueprint.vnet.subnets:
                    if not subnet.tiers or not self.preset.feature_enabled(subnet.feature):
                        continue
                    subnet_id = (
                        f"subnet-{blueprint.vnet.role}-{subnet.role}"
                        if environment is None
                        else f"subnet-{environment}-{subnet.role}"
                    )
                    placements.extend((tier, subnet_id) for tier in subnet.tiers)
            placements.extend((tier, subscription_id) for tier in blueprint.tiers)

            tier_envs = [environment] if environment is not None else list(aggregations)
            for tier_env in tier_envs:
                aggregation = aggregations.get(tier_env)
                if aggregation is None:
                    continue
                for tier, parent_id in placements:
                    self._add_tier_node(model, tier, tier_env, parent_id, aggregation)

    def _add_tier_node(
        self,
        model: ContainmentModel,
        tier: str,
        environment: str,
        parent_id: str,
        aggregation: TierAggregation,
    ) -> None:
        group = aggregation.group(tier)
        vm_count = group.vm_count if group else 0
        sku = group.dominant_sku if group else None
        model.add_node(
            Node(
                id=f"tier-{environment}-{tier}",
                entity_type="tier",
                layer="Compute",
                label=tier_label(tier, vm_count, sku),
                parent_id=parent_id,
                role=tier,
                environment=environment,
                tier=tier,
                service_kind="vm",
                vm_count=vm_count,
                dominant_sku=sku,
            )
        )

    def _build_platform_services(
        self,
        model: ContainmentModel,
        subscriptions: Sequence[tuple[SubscriptionTemplate, str, str | None]],
    ) -> None:
        for blueprint, subscription_id, environment in subscriptions:
            if blueprint.vnet is not None:
                for subnet in blueprint.vnet.subnets:
                    if not subnet.services or not self.preset.feature_enabled(subnet.feature):
                        continue
                    subnet_id = (
                        f"subnet-{blueprint.vnet.role}-{subnet.role}"
                        if environment is None
                        else f"subnet-{environment}-{subnet.role}"
                    )
                    for service in subnet.services:
                        self._add_service(model, service, subnet_id, environment)
            for service in blueprint.services:
                self._add_service(model, service, subscription_id, environment)

    def _add_service(
        self,
        model: ContainmentModel,
        blueprint: ServiceTemplate,
        parent_id: str,
        environment: str | None,
    ) -> None:
        if not self.preset.feature_enabled(blueprint.feature):
            return
        prefix = "paas" if blueprint.entity_type == "paas" else "svc"
        node_id = (
            f"{prefix}-{blueprint.role}"
            if environment is None
            else f"{prefix}-{environment}-{blueprint.role}"
        )
        model.add_node(
            Node(
                id=node_id,
                entity_type=blueprint.entity_type,
                layer=blueprint.layer,
                label=blueprint.label,
                parent_id=parent_id,
                role=blueprint.role,
                environment=environment,
                service_kind=blueprint.service_kind,
            )
        )
        for child in blueprint.children:
            self._add_service(model, child, node_id, environment)


def carve_subnet(address_space: str, subnet: SubnetTemplate) -> str:
    network = ipaddress.IPv4Network(address_space)
    if network.prefixlen > 24:
        msg = f"Address space {address_space} is too small to carve /24 subnet blocks"
        raise ConfigurationError(msg)
    block_count = 2 ** (24 - network.prefixlen)
    if subnet.block_index >= block_count:
        msg = (
            f"Address space {address_space} has {block_count} /24 block(s); "
            f"{subnet.label} needs block #{subnet.block_index}"
        )
        raise ConfigurationError(msg)
    block = ipaddress.IPv4Network(
        (int(network.network_address) + subnet.block_index * 256, 24)
    )
    if subnet.prefix_length == 24:
        return str(block)
    return str(next(block.subnets(new_prefix=subnet.prefix_length)))


def build_containment_model(
    records: Sequence[WorkloadRecord],
    preset: LandingZonePreset | None = None,
) -> ContainmentModel:
    return ContainmentModelBuilder(preset).build(records).model
