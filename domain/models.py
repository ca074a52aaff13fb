from __future__ import annotations

import ipaddress
from dataclasses import dataclass, field
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from domain.errors import ConfigurationError

EntityType = Literal["managementGroup", "subscription", "vnet", "subnet", "tier", "service", "paas"]
Layer = Literal[
    "Networking",
    "Compute",
    "Data",
    "Security",
    "Identity",
    "Management",
    "Observability",
    "Connectivity",
]
EdgeStyle = Literal["solid", "dashed"]

CONTAINER_ENTITY_TYPES = {"managementGroup", "subscription", "vnet", "subnet"}

ENV_PROD = "prod"
ENV_NON_PROD = "nonprod"
ENVIRONMENTS = (ENV_PROD, ENV_NON_PROD)

TIER_WEB = "web"
TIER_APP = "app"
TIER_DATA = "data"
TIER_MANAGEMENT = "management"
TIERS = (TIER_WEB, TIER_APP, TIER_DATA, TIER_MANAGEMENT)

MIB_PER_GIB = 1024


class WorkloadRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str = Field(..., min_length=1, validation_alias=AliasChoices("name", "vmName", "vm_name"))
    cores: float = 0
    memory_mib: float = Field(
        default=0, validation_alias=AliasChoices("memory_mib", "memoryMiB", "memoryMib")
    )
    recommended_size_label: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "recommended_size_label", "recommendedSizeLabel", "recommendedSize"
        ),
    )
    environment_tag: str | None = Field(
        default=None,
        validation_alias=AliasChoices("environment_tag", "environmentTag", "environment"),
    )

    @model_validator(mode="before")
    @classmethod
    def convert_memory_gb(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        if any(key in data for key in ("memory_mib", "memoryMiB", "memoryMib")):
            return data
        memory_gb = data.get("memoryGB", data.get("memory_gb"))
        if memory_gb is None:
            return data
        converted = dict(data)
        converted["memory_mib"] = float(memory_gb) * MIB_PER_GIB
        return converted

    @field_validator("cores", "memory_mib", mode="before")
    @classmethod
    def coerce_missing_numbers(cls, value: object) -> object:
        if value is None or value == "":
            return 0
        return value

    @field_validator("recommended_size_label", "environment_tag", mode="after")
    @classmethod
    def strip_optional_text(cls, value: str | None) -> str | None:
        if value is None:
            return None
        stripped = value.strip()
        return stripped or None

    @property
    def memory_gib(self) -> float:
        return self.memory_mib / MIB_PER_GIB


class LandingZonePreset(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    topology: str = "caf"
    include_non_prod_environment: bool = Field(
        default=False,
        validation_alias=AliasChoices(
            "include_non_prod_environment",
            "includeNonProdEnvironment",
            "includeNonProd",
            "showNonProd",
        ),
    )
    include_app_gateway: bool = Field(
        default=False, validation_alias=AliasChoices("include_app_gateway", "includeAppGateway")
    )
    include_firewall: bool = Field(
        default=False, validation_alias=AliasChoices("include_firewall", "includeFirewall")
    )
    include_bastion: bool = Field(
        default=False, validation_alias=AliasChoices("include_bastion", "includeBastion")
    )
    include_key_vault: bool = Field(
        default=False, validation_alias=AliasChoices("include_key_vault", "includeKeyVault")
    )
    include_observability: bool = Field(
        default=False,
        validation_alias=AliasChoices("include_observability", "includeObservability"),
    )
    hub_address_space: str = Field(
        default="10.0.0.0/16",
        validation_alias=AliasChoices("hub_address_space", "hubAddressSpace"),
    )
    prod_spoke_address_space: str = Field(
        default="10.1.0.0/16",
        validation_alias=AliasChoices("prod_spoke_address_space", "prodSpokeAddressSpace"),
    )
    non_prod_spoke_address_space: str = Field(
        default="10.2.0.0/16",
        validation_alias=AliasChoices("non_prod_spoke_address_space", "nonProdSpokeAddressSpace"),
    )

    @field_validator(
        "hub_address_space",
        "prod_spoke_address_space",
        "non_prod_spoke_address_space",
        mode="after",
    )
    @classmethod
    def ensure_ipv4_network(cls, value: str) -> str:
        raw = value.strip()
        try:
            network = ipaddress.IPv4Network(raw, strict=True)
        except ValueError as exc:
            msg = f"Malformed address space: {value!r}"
            raise ValueError(msg) from exc
        return str(network)

    @model_validator(mode="after")
    def ensure_disjoint_address_spaces(self) -> LandingZonePreset:
        named = [
            ("hub_address_space", self.hub_address_space),
            ("prod_spoke_address_space", self.prod_spoke_address_space),
        ]
        if self.include_non_prod_environment:
            named.append(("non_prod_spoke_address_space", self.non_prod_spoke_address_space))
        for idx, (left_name, left_value) in enumerate(named):
            left = ipaddress.IPv4Network(left_value)
            for right_name, right_value in named[idx + 1 :]:
                if left.overlaps(ipaddress.IPv4Network(right_value)):
                    msg = (
                        f"Address spaces overlap: {left_name}={left_value} "
                        f"and {right_name}={right_value}"
                    )
                    raise ValueError(msg)
        return self

    def environments(self) -> tuple[str, ...]:
        if self.include_non_prod_environment:
            return ENVIRONMENTS
        return (ENV_PROD,)

    def spoke_address_space(self, environment: str) -> str:
        if environment == ENV_NON_PROD:
            return self.non_prod_spoke_address_space
        return self.prod_spoke_address_space

    def feature_enabled(self, feature: str | None) -> bool:
        if feature is None:
            return True
        return bool(getattr(self, feature))


@dataclass(frozen=True)
class Bounds:
    x: float
    y: float
    w: float
    h: float

    @property
    def right(self) -> float:
        return self.x + self.w

    @property
    def bottom(self) -> float:
        return self.y + self.h

    def translate(self, dx: float, dy: float) -> Bounds:
        return Bounds(self.x + dx, self.y + dy, self.w, self.h)


@dataclass
class Node:
    id: str
    entity_type: str
    layer: str
    label: str
    parent_id: str | None = None
    children: list[str] = field(default_factory=list)
    relative_bounds: Bounds | None = None
    role: str | None = None
    environment: str | None = None
    tier: str | None = None
    service_kind: str | None = None
    address_space: str | None = None
    vm_count: int | None = None
    dominant_sku: str | None = None

    @property
    def is_container(self) -> bool:
        return bool(self.children) or self.entity_type in CONTAINER_ENTITY_TYPES


@dataclass
class Edge:
    id: str
    source_id: str
    target_id: str
    kind: str
    style: str = "solid"
    multiplicity: int = 1
    label: str = ""


@dataclass
class ContainmentModel:
    nodes: list[Node] = field(default_factory=list)
    edges: list[Edge] = field(default_factory=list)
    _index: dict[str, Node] = field(default_factory=dict, init=False, repr=False)

    def __post_init__(self) -> None:
        for node in self.nodes:
            self._index.setdefault(node.id, node)

    def add_node(self, node: Node) -> Node:
        if node.id in self._index:
            msg = f"Duplicate node id: {node.id}"
            raise ConfigurationError(msg, node_ids=(node.id,))
        self.nodes.append(node)
        self._index[node.id] = node
        if node.parent_id is not None:
            parent = self._index.get(node.parent_id)
            if parent is not None:
                parent.children.append(node.id)
        return node

    def get(self, node_id: str) -> Node | None:
        return self._index.get(node_id)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._index

    def node(self, node_id: str) -> Node:
        node = self._index.get(node_id)
        if node is None:
            raise KeyError(node_id)
        return node

    def roots(self) -> list[Node]:
        return [node for node in self.nodes if node.parent_id is None]

    def children_of(self, node_id: str) -> list[Node]:
        return [node for node in self.nodes if node.parent_id == node_id]

    def ancestors(self, node_id: str) -> list[Node]:
        chain: list[Node] = []
        seen: set[str] = {node_id}
        current = self._index.get(node_id)
        while current is not None and current.parent_id is not None:
            if current.parent_id in seen:
                break
            seen.add(current.parent_id)
            parent = self._index.get(current.parent_id)
            if parent is None:
                break
            chain.append(parent)
            current = parent
        return chain

    def find_by_role(
        self,
        role: str,
        environment: str | None = None,
        entity_type: str | None = None,
    ) -> Node | None:
        for node in self.nodes:
            if node.role != role:
                continue
            if entity_type is not None and node.entity_type != entity_type:
                continue
            if environment is not None and node.environment != environment:
                continue
            return node
        return None

    def entity_count(self, entity_type: str) -> int:
        return sum(1 for node in self.nodes if node.entity_type == entity_type)

    def absolute_bounds(self, node_id: str) -> Bounds | None:
        node = self.node(node_id)
        if node.relative_bounds is None:
            return None
        bounds = node.relative_bounds
        for ancestor in self.ancestors(node_id):
            if ancestor.relative_bounds is None:
                return None
            bounds = bounds.translate(ancestor.relative_bounds.x, ancestor.relative_bounds.y)
        return bounds

    def edge(self, edge_id: str) -> Edge | None:
        for edge in self.edges:
            if edge.id == edge_id:
                return edge
        return None


@dataclass(frozen=True)
class DrawioDocument:
    xml: str
    shape_count: int
    connector_count: int
    icon_count: int = 0
    legend_entries: tuple[str, ...] = ()

    def to_text(self) -> str:
        return self.xml
