from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Iterator, Sequence
from dataclasses import dataclass

from domain.errors import ConfigurationError
from domain.models import (
    TIER_APP,
    TIER_DATA,
    TIER_WEB,
    ContainmentModel,
    Edge,
    LandingZonePreset,
    Node,
)
from domain.topology import (
    ROLE_APP_GATEWAY,
    ROLE_BASTION,
    ROLE_DEFENDER,
    ROLE_FIREWALL,
    ROLE_HUB,
    ROLE_LANDING_ZONE,
    ROLE_OBSERVABILITY,
    ROLE_POLICY,
    ROLE_SPOKE,
)

logger = logging.getLogger(__name__)

EDGE_PEERING = "peering"
EDGE_INGRESS = "ingress"
EDGE_EAST_WEST = "east-west"
EDGE_GOVERNANCE = "governance"
EDGE_SECURITY = "security"
EDGE_MANAGEMENT = "management"
EDGE_BASTION = "bastion"
EDGE_EGRESS = "egress"
EDGE_PRIVATE_ENDPOINT = "private-endpoint"

EDGE_KINDS = (
    EDGE_PEERING,
    EDGE_INGRESS,
    EDGE_EAST_WEST,
    EDGE_GOVERNANCE,
    EDGE_SECURITY,
    EDGE_MANAGEMENT,
    EDGE_BASTION,
    EDGE_EGRESS,
    EDGE_PRIVATE_ENDPOINT,
)

DASHED_KINDS = {EDGE_GOVERNANCE, EDGE_SECURITY, EDGE_MANAGEMENT, EDGE_BASTION}

WORKLOAD_TIER_CHAIN = (TIER_WEB, TIER_APP, TIER_DATA)
BUNDLE_MARK = "×"

_Target = tuple[str, str, str, str | None]


@dataclass(frozen=True)
class EdgeCandidate:
    source_id: str
    target_id: str
    kind: str
    label: str
    target_class: str
    bundle_target_id: str | None = None

    @property
    def bundle_key(self) -> tuple[str, str, str]:
        return (self.source_id, self.target_class, self.kind)


@dataclass(frozen=True)
class ConnectionRule:
    kind: str
    label: str
    collect: Callable[[ContainmentModel, LandingZonePreset], Iterable[_Target]]

    def candidates(
        self, model: ContainmentModel, preset: LandingZonePreset
    ) -> list[EdgeCandidate]:
        return [
            EdgeCandidate(
                source_id=source_id,
                target_id=target_id,
                kind=self.kind,
                label=self.label,
                target_class=target_class,
                bundle_target_id=bundle_target_id,
            )
            for source_id, target_id, target_class, bundle_target_id in self.collect(model, preset)
        ]


def _find(
    model: ContainmentModel,
    entity_type: str,
    role: str,
    environment: str | None = None,
) -> Node | None:
    return model.find_by_role(role, environment, entity_type=entity_type)


def _spoke_vnet(model: ContainmentModel, environment: str) -> Node | None:
    return _find(model, "vnet", ROLE_SPOKE, environment)


def _tier(model: ContainmentModel, environment: str, tier: str) -> Node | None:
    return _find(model, "tier", tier, environment)


def _target_class(node: Node) -> str:
    return f"{node.entity_type}:{node.environment or 'shared'}"


def _edge_to(
    kind: str,
    source: Node | None,
    target: Node | None,
    bundle_target: Node | None = None,
) -> list[_Target]:
    if source is None or target is None:
        logger.debug(
            "Skipping %s edge %s -> %s: endpoint not in model",
            kind,
            source.id if source else "<missing>",
            target.id if target else "<missing>",
        )
        return []
    bundle_target_id = bundle_target.id if bundle_target else None
    return [(source.id, target.id, _target_class(target), bundle_target_id)]


def _peering(model: ContainmentModel, preset: LandingZonePreset) -> Iterator[_Target]:
    hub = _find(model, "vnet", ROLE_HUB)
    for environment in preset.environments():
        yield from _edge_to(EDGE_PEERING, hub, _spoke_vnet(model, environment))


def _ingress(model: ContainmentModel, preset: LandingZonePreset) -> Iterator[_Target]:
    gateway = _find(model, "service", ROLE_APP_GATEWAY)
    for environment in preset.environments():
        yield from _edge_to(EDGE_INGRESS, gateway, _tier(model, environment, TIER_WEB))


def _east_west(model: ContainmentModel, preset: LandingZonePreset) -> Iterator[_Target]:
    for environment in preset.environments():
        for upstream, downstream in zip(WORKLOAD_TIER_CHAIN, WORKLOAD_TIER_CHAIN[1:]):
            yield from _edge_to(
                EDGE_EAST_WEST,
                _tier(model, environment, upstream),
                _tier(model, environment, downstream),
            )


def _landing_zone_subscriptions(
    model: ContainmentModel, preset: LandingZonePreset
) -> list[Node | None]:
    return [
        _find(model, "subscription", ROLE_LANDING_ZONE, environment)
        for environment in preset.environments()
    ]


def _governance(model: ContainmentModel, preset: LandingZonePreset) -> Iterator[_Target]:
    policy = _find(model, "service", ROLE_POLICY)
    for subscription in _landing_zone_subscriptions(model, preset):
        yield from _edge_to(EDGE_GOVERNANCE, policy, subscription)


def _security(model: ContainmentModel, preset: LandingZonePreset) -> Iterator[_Target]:
    defender = _find(model, "service", ROLE_DEFENDER)
    for subscription in _landing_zone_subscriptions(model, preset):
        yield from _edge_to(EDGE_SECURITY, defender, subscription)


def _management(model: ContainmentModel, preset: LandingZonePreset) -> Iterator[_Target]:
    observability = _find(model, "service", ROLE_OBSERVABILITY)
    for environment in preset.environments():
        spoke = _spoke_vnet(model, environment)
        for tier in WORKLOAD_TIER_CHAIN:
            tier_node = _tier(model, environment, tier)
            if tier_node is None or not tier_node.vm_count:
                continue
            yield from _edge_to(EDGE_MANAGEMENT, observability, tier_node, bundle_target=spoke)


def _bastion(model: ContainmentModel, preset: LandingZonePreset) -> Iterator[_Target]:
    bastion = _find(model, "service", ROLE_BASTION)
    for environment in preset.environments():
        spoke = _spoke_vnet(model, environment)
        if spoke is None:
            continue
        for subnet in model.children_of(spoke.id):
            if subnet.entity_type != "subnet":
                continue
            yield from _edge_to(EDGE_BASTION, bastion, subnet, bundle_target=spoke)


def _egress(model: ContainmentModel, preset: LandingZonePreset) -> Iterator[_Target]:
    firewall = _find(model, "service", ROLE_FIREWALL)
    for environment in preset.environments():
        yield from _edge_to(EDGE_EGRESS, _spoke_vnet(model, environment), firewall)


def _private_endpoints(model: ContainmentModel, preset: LandingZonePreset) -> Iterator[_Target]:
    paas_nodes = [node for node in model.nodes if node.entity_type == "paas"]
    for node in paas_nodes:
        for environment in preset.environments():
            yield from _edge_to(EDGE_PRIVATE_ENDPOINT, node, _spoke_vnet(model, environment))


DEFAULT_RULES: tuple[ConnectionRule, ...] = (
    ConnectionRule(EDGE_PEERING, "VNet Peering", _peering),
    ConnectionRule(EDGE_INGRESS, "Ingress", _ingress),
    ConnectionRule(EDGE_EAST_WEST, "East-West", _east_west),
    ConnectionRule(EDGE_GOVERNANCE, "Policy", _governance),
    ConnectionRule(EDGE_SECURITY, "Defender", _security),
    ConnectionRule(EDGE_MANAGEMENT, "Diag/Logs", _management),
    ConnectionRule(EDGE_BASTION, "Bastion", _bastion),
    ConnectionRule(EDGE_EGRESS, "Egress", _egress),
    ConnectionRule(EDGE_PRIVATE_ENDPOINT, "PE", _private_endpoints),
)


def bundle_candidates(
    model: ContainmentModel, candidates: Sequence[EdgeCandidate]
) -> list[Edge]:
    groups: dict[tuple[str, str, str], list[EdgeCandidate]] = {}
    for candidate in candidates:
        groups.setdefault(candidate.bundle_key, []).append(candidate)

    edges: list[Edge] = []
    seen: dict[str, tuple[str, str, str]] = {}
    for key, members in groups.items():
        edge = _group_edge(model, members)
        if edge.id in seen:
            msg = f"Connection groups {seen[edge.id]} and {key} both resolve to edge {edge.id!r}"
            raise ConfigurationError(
                msg, node_ids=(edge.source_id, edge.target_id), edge_ids=(edge.id,)
            )
        seen[edge.id] = key
        edges.append(edge)
    return edges


def _group_edge(model: ContainmentModel, members: Sequence[EdgeCandidate]) -> Edge:
    first = members[0]
    style = "dashed" if first.kind in DASHED_KINDS else "solid"
    if len(members) == 1:
        return Edge(
            id=f"edge-{first.kind}-{first.source_id}-{first.target_id}",
            source_id=first.source_id,
            target_id=first.target_id,
            kind=first.kind,
            style=style,
            label=first.label,
        )
    count = len(members)
    target_id = first.bundle_target_id or _common_parent(model, members) or first.target_id
    return Edge(
        id=f"edge-{first.kind}-{first.source_id}-{target_id}-x{count}",
        source_id=first.source_id,
        target_id=target_id,
        kind=first.kind,
        style=style,
        multiplicity=count,
        label=f"{first.label} {BUNDLE_MARK}{count}".strip(),
    )


def _common_parent(model: ContainmentModel, members: Sequence[EdgeCandidate]) -> str | None:
    parents = {model.node(member.target_id).parent_id for member in members}
    if len(parents) == 1:
        return next(iter(parents))
    return None


def resolve_connections(
    model: ContainmentModel,
    preset: LandingZonePreset | None = None,
    rules: Sequence[ConnectionRule] = DEFAULT_RULES,
) -> list[Edge]:
    preset = preset or LandingZonePreset()
    candidates: list[EdgeCandidate] = []
    for rule in rules:
        candidates.extend(rule.candidates(model, preset))

    edges = bundle_candidates(model, candidates)
    known_ids = {edge.id for edge in model.edges}
    added: list[Edge] = []
    for edge in edges:
        if edge.id in known_ids:
            logger.debug("Edge %s already present; not added again", edge.id)
            continue
        known_ids.add(edge.id)
        model.edges.append(edge)
        added.append(edge)
    logger.debug(
        "Resolved %d connection(s) from %d candidate(s)", len(added), len(candidates)
    )
    return added
