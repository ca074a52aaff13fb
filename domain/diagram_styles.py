from __future__ import annotations

from domain.models import Edge, Node

_SWIMLANE = (
    "swimlane;startSize=30;horizontal=1;collapsible=0;whiteSpace=wrap;html=1;"
    "fontSize=12;fontStyle=1;"
)
_BOX = "rounded=1;whiteSpace=wrap;html=1;fontSize=10;"
_EDGE = "endArrow=classic;html=1;strokeWidth=2;rounded=0;"

NODE_STYLES: dict[str, str] = {
    "managementGroup": f"{_SWIMLANE}fillColor=#1976d2;strokeColor=#0d47a1;fontColor=#ffffff;",
    "subscription": f"{_SWIMLANE}fillColor=#e3f2fd;strokeColor=#666666;fontColor=#333333;",
    "subscription:landingzone": (
        f"{_SWIMLANE}fillColor=#fff3e0;strokeColor=#f57c00;fontColor=#333333;"
    ),
    "vnet": f"{_SWIMLANE}fillColor=#f3e5f5;strokeColor=#7b1fa2;fontColor=#333333;",
    "subnet": f"{_SWIMLANE}fillColor=#e8f5e8;strokeColor=#388e3c;fontColor=#333333;dashed=1;",
    "tier": f"{_BOX}fillColor=#e1f5fe;strokeColor=#0277bd;fontStyle=1;",
    "paas": f"{_BOX}fillColor=#fff3e0;strokeColor=#f57c00;",
    "Networking": f"{_BOX}fillColor=#e1f5fe;strokeColor=#0277bd;",
    "Connectivity": f"{_BOX}fillColor=#e8f5e9;strokeColor=#4caf50;",
    "Security": f"{_BOX}fillColor=#ffebee;strokeColor=#d32f2f;",
    "Identity": f"{_BOX}fillColor=#fffde7;strokeColor=#fbc02d;",
    "Management": f"{_BOX}fillColor=#eceff1;strokeColor=#607d8b;",
    "Observability": f"{_BOX}fillColor=#ede7f6;strokeColor=#5e35b1;",
    "Data": f"{_BOX}fillColor=#fff3e0;strokeColor=#f57c00;",
    "Compute": f"{_BOX}fillColor=#e1f5fe;strokeColor=#0277bd;",
}
DEFAULT_NODE_STYLE = f"{_BOX}fillColor=#f5f5f5;strokeColor=#666666;"

NODE_CATEGORY_LABELS: dict[str, str] = {
    "managementGroup": "Management Group",
    "subscription": "Platform Subscription",
    "subscription:landingzone": "Landing Zone Subscription",
    "vnet": "Virtual Network",
    "subnet": "Subnet",
    "tier": "Workload Tier",
    "paas": "PaaS Service",
    "Networking": "Networking Service",
    "Connectivity": "Connectivity Service",
    "Security": "Security Service",
    "Identity": "Identity Service",
    "Management": "Management Service",
    "Observability": "Observability",
    "Data": "Data Service",
    "Compute": "Compute Service",
}

EDGE_COLORS: dict[str, str] = {
    "peering": "#1976d2",
    "ingress": "#4caf50",
    "east-west": "#2196f3",
    "governance": "#795548",
    "security": "#d32f2f",
    "management": "#607d8b",
    "bastion": "#9c27b0",
    "egress": "#ff9800",
    "private-endpoint": "#f57c00",
}
DEFAULT_EDGE_COLOR = "#666666"

EDGE_KIND_LABELS: dict[str, str] = {
    "peering": "VNet Peering",
    "ingress": "Ingress",
    "east-west": "East-West Traffic",
    "governance": "Governance (Policy)",
    "security": "Security (Defender)",
    "management": "Diagnostics / Logs",
    "bastion": "Bastion Access",
    "egress": "Egress via Firewall",
    "private-endpoint": "Private Endpoint",
}

ICON_BASE_PATH = "/Azure_Public_Service_Icons/Icons"
ICON_STYLE = (
    "shape=image;imageAspect=0;aspect=fixed;verticalLabelPosition=bottom;verticalAlign=top;"
)
ICON_SIZE = 30
ICON_OFFSET = 5

SERVICE_ICONS: dict[str, str] = {
    "vm": "compute/10021-icon-service-Virtual-Machine.svg",
    "vnet": "networking/10061-icon-service-Virtual-Networks.svg",
    "subnet": "networking/02742-icon-service-Subnet.svg",
    "appgw": "networking/10076-icon-service-Application-Gateways.svg",
    "firewall": "networking/10084-icon-service-Firewalls.svg",
    "bastion": "networking/02422-icon-service-Bastions.svg",
    "dns": "networking/10064-icon-service-DNS-Zones.svg",
    "sql": "databases/10130-icon-service-SQL-Database.svg",
    "storage": "storage/10002-icon-service-Storage-Accounts.svg",
    "keyvault": "security/10245-icon-service-Key-Vaults.svg",
    "defender": "security/10241-icon-service-Microsoft-Defender-for-Cloud.svg",
    "monitor": "monitor/00001-icon-service-Monitor.svg",
    "loganalytics": "monitor/00009-icon-service-Log-Analytics-Workspaces.svg",
    "policy": "management + governance/10001-icon-service-Policy.svg",
}
DEFAULT_ICON = "general/10001-icon-service-Resource-Groups.svg"


def node_category(node: Node) -> str:
    if node.entity_type == "subscription" and node.role == "landingzone":
        return "subscription:landingzone"
    if node.entity_type == "service":
        return node.layer
    return node.entity_type


def node_style(category: str) -> str:
    return NODE_STYLES.get(category, DEFAULT_NODE_STYLE)


def edge_style(kind: str, dashed: bool = False) -> str:
    style = f"{_EDGE}strokeColor={EDGE_COLORS.get(kind, DEFAULT_EDGE_COLOR)};"
    if dashed:
        style += "dashed=1;"
    return style


def style_for_edge(edge: Edge) -> str:
    return edge_style(edge.kind, dashed=edge.style == "dashed")


def category_label(category: str) -> str:
    return NODE_CATEGORY_LABELS.get(category, category)


def edge_kind_label(kind: str) -> str:
    return EDGE_KIND_LABELS.get(kind, kind)


def icon_path(node: Node) -> str | None:
    """Icon image for a leaf resource box; containers and kind-less nodes get none."""
    if node.service_kind is None or node.is_container:
        return None
    return f"{ICON_BASE_PATH}/{SERVICE_ICONS.get(node.service_kind, DEFAULT_ICON)}"


def icon_style(path: str) -> str:
    return f"{ICON_STYLE}image={path};"
