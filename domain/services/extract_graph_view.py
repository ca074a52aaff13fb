from __future__ import annotations

from typing import Any

from domain.models import ContainmentModel, Edge, Node


def extract_graph_view(model: ContainmentModel) -> dict[str, Any]:
    nodes = [_node_payload(node) for node in model.nodes]
    edges = [_edge_payload(edge) for edge in model.edges]
    return {
        "nodes": nodes,
        "edges": edges,
        "meta": {"node_count": len(nodes), "edge_count": len(edges)},
    }


def _node_payload(node: Node) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "id": node.id,
        "label": node.label,
        "entityType": node.entity_type,
        "layer": node.layer,
        "parentId": node.parent_id,
    }
    if node.address_space:
        payload["addressSpace"] = node.address_space
    if node.entity_type == "tier":
        payload["vmCount"] = node.vm_count or 0
        if node.dominant_sku:
            payload["dominantSku"] = node.dominant_sku
    return payload


def _edge_payload(edge: Edge) -> dict[str, Any]:
    return {
        "id": edge.id,
        "source": edge.source_id,
        "target": edge.target_id,
        "kind": edge.kind,
        "style": edge.style,
        "label": edge.label,
        "multiplicity": edge.multiplicity,
    }
