from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from collections.abc import Iterator

from domain.diagram_styles import (
    ICON_OFFSET,
    ICON_SIZE,
    category_label,
    edge_kind_label,
    edge_style,
    icon_path,
    icon_style,
    node_category,
    node_style,
    style_for_edge,
)
from domain.errors import MissingBoundsError
from domain.models import Bounds, ContainmentModel, DrawioDocument, Edge, Node
from domain.services.resolve_connections import DASHED_KINDS

logger = logging.getLogger(__name__)

ELLIPSIS = "…"
DEFAULT_MAX_LABEL_LENGTH = 24

LEGEND_ID = "legend"
LEGEND_WIDTH = 220
LEGEND_ROW_HEIGHT = 25
LEGEND_HEADER = 40
LEGEND_GAP = 40
PAGE_MARGIN = 40


def truncate_label(label: str, max_length: int = DEFAULT_MAX_LABEL_LENGTH) -> str:
    if len(label) <= max_length:
        return label
    return label[:max_length] + ELLIPSIS


def _fmt(value: float) -> str:
    number = float(value)
    if number.is_integer():
        return str(int(number))
    return f"{number:g}"


class DrawioSerializer:
    def __init__(
        self,
        *,
        show_legend: bool = True,
        show_icons: bool = True,
        max_label_length: int = DEFAULT_MAX_LABEL_LENGTH,
        diagram_name: str = "Azure Landing Zone",
        diagram_id: str = "landing-zone",
    ) -> None:
        self.show_legend = show_legend
        self.show_icons = show_icons
        self.max_label_length = max_label_length
        self.diagram_name = diagram_name
        self.diagram_id = diagram_id

    def serialize(self, model: ContainmentModel) -> DrawioDocument:
        self._ensure_bounds(model)
        extent = self._canvas_extent(model)

        mxfile = ET.Element("mxfile", {"host": "app.diagrams.net", "type": "device"})
        diagram = ET.SubElement(
            mxfile, "diagram", {"name": self.diagram_name, "id": self.diagram_id}
        )
        graph_model = ET.SubElement(diagram, "mxGraphModel", self._graph_attributes(extent))
        root = ET.SubElement(graph_model, "root")
        ET.SubElement(root, "mxCell", {"id": "0"})
        ET.SubElement(root, "mxCell", {"id": "1", "parent": "0"})

        node_categories: list[str] = []
        shape_count = 0
        icon_count = 0
        for node in self._ordered_nodes(model):
            category = node_category(node)
            if category not in node_categories:
                node_categories.append(category)
            self._append_node(root, node, category)
            shape_count += 1
            if self.show_icons and self._append_icon(root, node):
                icon_count += 1

        edge_kinds: list[str] = []
        for edge in model.edges:
            if edge.kind not in edge_kinds:
                edge_kinds.append(edge.kind)
            self._append_edge(root, edge)

        legend_entries: tuple[str, ...] = ()
        if self.show_legend and (node_categories or edge_kinds):
            legend_entries = self._append_legend(root, extent, node_categories, edge_kinds)

        xml = ET.tostring(mxfile, encoding="unicode")
        logger.debug(
            "Serialized draw.io document: shapes=%d icons=%d connectors=%d legend=%d",
            shape_count,
            icon_count,
            len(model.edges),
            len(legend_entries),
        )
        return DrawioDocument(
            xml=xml,
            shape_count=shape_count,
            icon_count=icon_count,
            connector_count=len(model.edges),
            legend_entries=legend_entries,
        )

    def _ensure_bounds(self, model: ContainmentModel) -> None:
        missing = [node.id for node in model.nodes if node.relative_bounds is None]
        if missing:
            msg = f"Nodes without bounds (layout skipped?): {', '.join(missing)}"
            raise MissingBoundsError(msg, node_ids=missing)
        for edge in model.edges:
            absent = [
                endpoint
                for endpoint in (edge.source_id, edge.target_id)
                if model.get(endpoint) is None
            ]
            if absent:
                msg = f"Edge {edge.id!r} points at nodes without bounds: {', '.join(absent)}"
                raise MissingBoundsError(msg, node_ids=absent, edge_ids=(edge.id,))

    def _canvas_extent(self, model: ContainmentModel) -> Bounds:
        roots = [node.relative_bounds for node in model.roots() if node.relative_bounds]
        if not roots:
            return Bounds(0, 0, 0, 0)
        left = min(bounds.x for bounds in roots)
        top = min(bounds.y for bounds in roots)
        right = max(bounds.right for bounds in roots)
        bottom = max(bounds.bottom for bounds in roots)
        return Bounds(left, top, right - left, bottom - top)

    def _graph_attributes(self, extent: Bounds) -> dict[str, str]:
        legend_width = LEGEND_WIDTH + LEGEND_GAP if self.show_legend else 0
        return {
            "grid": "1",
            "gridSize": "10",
            "guides": "1",
            "tooltips": "1",
            "connect": "1",
            "arrows": "1",
            "fold": "1",
            "page": "1",
            "pageScale": "1",
            "pageWidth": _fmt(extent.right + legend_width + PAGE_MARGIN),
            "pageHeight": _fmt(extent.bottom + PAGE_MARGIN),
            "math": "0",
            "shadow": "0",
        }

    def _ordered_nodes(self, model: ContainmentModel) -> Iterator[Node]:
        stack = [root.id for root in reversed(model.roots())]
        while stack:
            node = model.node(stack.pop())
            yield node
            stack.extend(reversed(node.children))

    def _append_node(self, root: ET.Element, node: Node, category: str) -> None:
        bounds = node.relative_bounds
        assert bounds is not None
        cell = ET.SubElement(
            root,
            "mxCell",
            {
                "id": node.id,
                "value": truncate_label(node.label, self.max_label_length),
                "style": node_style(category),
                "vertex": "1",
                "parent": node.parent_id or "1",
            },
        )
        if node.label != cell.get("value"):
            cell.set("tooltip", node.label)
        _geometry(cell, bounds)

    def _append_icon(self, root: ET.Element, node: Node) -> bool:
        path = icon_path(node)
        if path is None:
            return False
        cell = ET.SubElement(
            root,
            "mxCell",
            {
                "id": f"{node.id}-icon",
                "value": "",
                "style": icon_style(path),
                "vertex": "1",
                "parent": node.id,
            },
        )
        _geometry(cell, Bounds(ICON_OFFSET, ICON_OFFSET, ICON_SIZE, ICON_SIZE))
        return True

    def _append_edge(self, root: ET.Element, edge: Edge) -> None:
        cell = ET.SubElement(
            root,
            "mxCell",
            {
                "id": edge.id,
                "value": edge.label,
                "style": style_for_edge(edge),
                "edge": "1",
                "parent": "1",
                "source": edge.source_id,
                "target": edge.target_id,
            },
        )
        ET.SubElement(cell, "mxGeometry", {"relative": "1", "as": "geometry"})

    def _append_legend(
        self,
        root: ET.Element,
        extent: Bounds,
        node_categories: list[str],
        edge_kinds: list[str],
    ) -> tuple[str, ...]:
        rows = len(node_categories) + len(edge_kinds)
        legend = ET.SubElement(
            root,
            "mxCell",
            {
                "id": LEGEND_ID,
                "value": "Legend",
                "style": (
                    "swimlane;startSize=30;collapsible=0;html=1;fontStyle=1;fontSize=12;"
                    "fillColor=#f8f9fa;strokeColor=#666666;fontColor=#333333;"
                ),
                "vertex": "1",
                "parent": "1",
            },
        )
        _geometry(
            legend,
            Bounds(
                extent.right + LEGEND_GAP,
                extent.y,
                LEGEND_WIDTH,
                LEGEND_HEADER + rows * LEGEND_ROW_HEIGHT + 10,
            ),
        )

        entries: list[str] = []
        row = 0
        for category in node_categories:
            top = LEGEND_HEADER + row * LEGEND_ROW_HEIGHT
            label = category_label(category)
            swatch = ET.SubElement(
                root,
                "mxCell",
                {
                    "id": f"legend-node-{category.replace(':', '-')}",
                    "value": "",
                    "style": node_style(category),
                    "vertex": "1",
                    "parent": LEGEND_ID,
                },
            )
            _geometry(swatch, Bounds(10, top, 30, 15))
            self._legend_text(root, f"legend-node-{category.replace(':', '-')}-label", label, top)
            entries.append(label)
            row += 1

        for kind in edge_kinds:
            top = LEGEND_HEADER + row * LEGEND_ROW_HEIGHT
            label = edge_kind_label(kind)
            dashed = kind in DASHED_KINDS
            line = ET.SubElement(
                root,
                "mxCell",
                {
                    "id": f"legend-edge-{kind}",
                    "value": "",
                    "style": edge_style(kind, dashed=dashed),
                    "edge": "1",
                    "parent": LEGEND_ID,
                },
            )
            geometry = ET.SubElement(line, "mxGeometry", {"relative": "1", "as": "geometry"})
            mid = top + 7
            ET.SubElement(geometry, "mxPoint", {"x": "10", "y": _fmt(mid), "as": "sourcePoint"})
            ET.SubElement(geometry, "mxPoint", {"x": "40", "y": _fmt(mid), "as": "targetPoint"})
            self._legend_text(root, f"legend-edge-{kind}-label", label, top)
            entries.append(label)
            row += 1
        return tuple(entries)

    def _legend_text(self, root: ET.Element, cell_id: str, text: str, top: float) -> None:
        cell = ET.SubElement(
            root,
            "mxCell",
            {
                "id": cell_id,
                "value": text,
                "style": (
                    "text;html=1;strokeColor=none;fillColor=none;align=left;"
                    "verticalAlign=middle;whiteSpace=wrap;fontSize=10;"
                ),
                "vertex": "1",
                "parent": LEGEND_ID,
            },
        )
        _geometry(cell, Bounds(50, top - 2, LEGEND_WIDTH - 60, 20))


def _geometry(cell: ET.Element, bounds: Bounds) -> ET.Element:
    return ET.SubElement(
        cell,
        "mxGeometry",
        {
            "x": _fmt(bounds.x),
            "y": _fmt(bounds.y),
            "width": _fmt(bounds.w),
            "height": _fmt(bounds.h),
            "as": "geometry",
        },
    )


def serialize(
    model: ContainmentModel,
    *,
    show_legend: bool = True,
    show_icons: bool = True,
    max_label_length: int = DEFAULT_MAX_LABEL_LENGTH,
) -> str:
    serializer = DrawioSerializer(
        show_legend=show_legend, show_icons=show_icons, max_label_length=max_label_length
    )
    return serializer.serialize(model).to_text()
