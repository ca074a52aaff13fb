from __future__ import annotations

from dataclasses import dataclass

from domain.errors import ConfigurationError
from domain.models import TIER_APP, TIER_DATA, TIER_MANAGEMENT, TIER_WEB

SCOPE_SHARED = "shared"
SCOPE_PER_ENVIRONMENT = "per_environment"

ROLE_HUB = "hub"
ROLE_SPOKE = "spoke"
ROLE_LANDING_ZONE = "landingzone"
ROLE_FIREWALL = "firewall"
ROLE_BASTION = "bastion"
ROLE_APP_GATEWAY = "app-gateway"
ROLE_POLICY = "policy"
ROLE_DEFENDER = "defender"
ROLE_OBSERVABILITY = "observability"


@dataclass(frozen=True)
class ServiceTemplate:
    role: str
    label: str
    service_kind: str
    layer: str
    entity_type: str = "service"
    feature: str | None = None
    children: tuple[ServiceTemplate, ...] = ()


@dataclass(frozen=True)
class SubnetTemplate:
    role: str
    label: str
    block_index: int
    prefix_length: int = 24
    tiers: tuple[str, ...] = ()
    services: tuple[ServiceTemplate, ...] = ()
    feature: str | None = None


@dataclass(frozen=True)
class VnetTemplate:
    role: str
    label: str
    subnets: tuple[SubnetTemplate, ...]


@dataclass(frozen=True)
class SubscriptionTemplate:
    role: str
    label: str
    layer: str
    management_group: str | None = None
    scope: str = SCOPE_SHARED
    vnet: VnetTemplate | None = None
    services: tuple[ServiceTemplate, ...] = ()
    tiers: tuple[str, ...] = ()


@dataclass(frozen=True)
class ManagementGroupTemplate:
    role: str
    label: str
    parent: str | None = None


@dataclass(frozen=True)
class TopologyTemplate:
    name: str
    management_groups: tuple[ManagementGroupTemplate, ...]
    subscriptions: tuple[SubscriptionTemplate, ...]


HUB_VNET = VnetTemplate(
    role=ROLE_HUB,
    label="Hub VNet",
    subnets=(
        SubnetTemplate(role="gateway", label="GatewaySubnet", block_index=0, prefix_length=27),
        SubnetTemplate(
            role="firewall",
            label="AzureFirewallSubnet",
            block_index=1,
            prefix_length=26,
            feature="include_firewall",
            services=(
                ServiceTemplate(
                    role=ROLE_FIREWALL,
                    label="Azure Firewall",
                    service_kind="firewall",
                    layer="Security",
                ),
            ),
        ),
        SubnetTemplate(
            role="bastion",
            label="AzureBastionSubnet",
            block_index=2,
            prefix_length=26,
            feature="include_bastion",
            services=(
                ServiceTemplate(
                    role=ROLE_BASTION,
                    label="Azure Bastion",
                    service_kind="bastion",
                    layer="Security",
                ),
            ),
        ),
        SubnetTemplate(
            role="appgw",
            label="AppGatewaySubnet",
            block_index=3,
            prefix_length=24,
            feature="include_app_gateway",
            services=(
                ServiceTemplate(
                    role=ROLE_APP_GATEWAY,
                    label="Application Gateway",
                    service_kind="appgw",
                    layer="Connectivity",
                ),
            ),
        ),
    ),
)

SPOKE_VNET = VnetTemplate(
    role=ROLE_SPOKE,
    label="Spoke VNet",
    subnets=(
        SubnetTemplate(role="web", label="Web Subnet", block_index=1, tiers=(TIER_WEB,)),
        SubnetTemplate(role="app", label="App Subnet", block_index=2, tiers=(TIER_APP,)),
        SubnetTemplate(role="db", label="DB Subnet", block_index=3, tiers=(TIER_DATA,)),
    ),
)

OBSERVABILITY = ServiceTemplate(
    role=ROLE_OBSERVABILITY,
    label="Observability",
    service_kind="monitor",
    layer="Observability",
    feature="include_observability",
    children=(
        ServiceTemplate(
            role="monitor",
            label="Azure Monitor",
            service_kind="monitor",
            layer="Observability",
        ),
        ServiceTemplate(
            role="log-analytics",
            label="Log Analytics",
            service_kind="loganalytics",
            layer="Observability",
        ),
    ),
)

CONNECTIVITY = SubscriptionTemplate(
    role="platform-connectivity",
    label="Platform-Connectivity",
    layer="Networking",
    management_group="platform",
    vnet=HUB_VNET,
    services=(
        ServiceTemplate(
            role="dns-resolver",
            label="DNS Private Resolver",
            service_kind="dns",
            layer="Networking",
        ),
    ),
)

MANAGEMENT = SubscriptionTemplate(
    role="platform-management",
    label="Platform-Management",
    layer="Management",
    management_group="platform",
    services=(
        ServiceTemplate(
            role=ROLE_POLICY,
            label="Azure Policy",
            service_kind="policy",
            layer="Management",
        ),
        ServiceTemplate(
            role=ROLE_DEFENDER,
            label="Defender for Cloud",
            service_kind="defender",
            layer="Security",
        ),
        OBSERVABILITY,
    ),
    tiers=(TIER_MANAGEMENT,),
)

DATA = SubscriptionTemplate(
    role="platform-data",
    label="Platform-Data",
    layer="Data",
    management_group="platform",
    services=(
        ServiceTemplate(
            role="sql",
            label="Azure SQL Database",
            service_kind="sql",
            layer="Data",
            entity_type="paas",
        ),
        ServiceTemplate(
            role="storage",
            label="Storage Account",
            service_kind="storage",
            layer="Data",
            entity_type="paas",
        ),
        ServiceTemplate(
            role="key-vault",
            label="Key Vault",
            service_kind="keyvault",
            layer="Security",
            entity_type="paas",
            feature="include_key_vault",
        ),
    ),
)

LANDING_ZONE = SubscriptionTemplate(
    role=ROLE_LANDING_ZONE,
    label="LandingZone",
    layer="Compute",
    management_group="landing-zones",
    scope=SCOPE_PER_ENVIRONMENT,
    vnet=SPOKE_VNET,
)

CAF_TEMPLATE = TopologyTemplate(
    name="caf",
    management_groups=(
        ManagementGroupTemplate(role="tenant-root", label="Tenant Root Group"),
        ManagementGroupTemplate(role="platform", label="Platform", parent="tenant-root"),
        ManagementGroupTemplate(role="landing-zones", label="Landing Zones", parent="tenant-root"),
    ),
    subscriptions=(CONNECTIVITY, MANAGEMENT, DATA, LANDING_ZONE),
)

HUB_SPOKE_TEMPLATE = TopologyTemplate(
    name="hub-spoke",
    management_groups=(),
    subscriptions=(CONNECTIVITY, MANAGEMENT, DATA, LANDING_ZONE),
)

TEMPLATES: dict[str, TopologyTemplate] = {
    CAF_TEMPLATE.name: CAF_TEMPLATE,
    HUB_SPOKE_TEMPLATE.name: HUB_SPOKE_TEMPLATE,
}


def get_template(name: str) -> TopologyTemplate:
    template = TEMPLATES.get(str(name or "").strip().lower())
    if template is None:
        known = ", ".join(sorted(TEMPLATES))
        msg = f"Unknown topology template: {name!r} (known: {known})"
        raise ConfigurationError(msg)
    return template
