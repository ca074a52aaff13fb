from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field

from domain.errors import LayoutInvariantError
from domain.models import CONTAINER_ENTITY_TYPES, Bounds, ContainmentModel, Node
from domain.ports.layout import LayoutEngine

logger = logging.getLogger(__name__)

DEFAULT_COLUMNS = {
    "managementGroup": 2,
    "subscription": 2,
    "vnet": 2,
    "subnet": 2,
    "service": 2,
}


@dataclass(frozen=True)
class LayoutConfig:
    padding: float = 20.0
    header_height: float = 30.0
    gap_x: float = 16.0
    gap_y: float = 16.0
    leaf_width: float = 180.0
    leaf_height: float = 90.0
    min_container_width: float = 220.0
    min_container_height: float = 120.0
    canvas_margin: float = 40.0
    root_columns: int = 4
    default_columns: int = 3
    columns: dict[str, int] = field(default_factory=lambda: dict(DEFAULT_COLUMNS))

    def columns_for(self, entity_type: str) -> int:
        return max(1, self.columns.get(entity_type, self.default_columns))


def place_grid_rel(
    col: int,
    row: int,
    cell_w: float,
    cell_h: float,
    gap_x: float,
    gap_y: float,
) -> Bounds:
    return Bounds(
        x=col * (cell_w + gap_x),
        y=row * (cell_h + gap_y),
        w=cell_w,
        h=cell_h,
    )


class ContainmentLayoutEngine(LayoutEngine):
    def __init__(self, config: LayoutConfig | None = None) -> None:
        self.config = config or LayoutConfig()

    def layout(self, model: ContainmentModel) -> ContainmentModel:
        footprints: dict[str, tuple[float, float]] = {}
        for root in model.roots():
            self._measure(model, root, footprints)

        self._place_children(
            model,
            [root.id for root in model.roots()],
            footprints,
            columns=self.config.root_columns,
            origin_x=self.config.canvas_margin,
            origin_y=self.config.canvas_margin,
        )
        for root in model.roots():
            self._place_subtree(model, root, footprints)
        for root in model.roots():
            self._fit_container(model, root)

        check_containment(model, self.config)
        logger.debug("Laid out %d nodes across %d root(s)", len(model.nodes), len(model.roots()))
        return model

    def _measure(
        self,
        model: ContainmentModel,
        node: Node,
        footprints: dict[str, tuple[float, float]],
    ) -> tuple[float, float]:
        children = [model.node(child_id) for child_id in node.children]
        for child in children:
            self._measure(model, child, footprints)
        if not children:
            size = self._empty_size(node)
        else:
            cols = min(self.config.columns_for(node.entity_type), len(children))
            rows = math.ceil(len(children) / cols)
            cell_w = max(footprints[child.id][0] for child in children)
            cell_h = max(footprints[child.id][1] for child in children)
            grid_w = cols * cell_w + (cols - 1) * self.config.gap_x
            grid_h = rows * cell_h + (rows - 1) * self.config.gap_y
            size = (
                max(self.config.min_container_width, grid_w + 2 * self.config.padding),
                max(
                    self.config.min_container_height,
                    grid_h + 2 * self.config.padding + self.config.header_height,
                ),
            )
        footprints[node.id] = size
        return size

    def _empty_size(self, node: Node) -> tuple[float, float]:
        if node.entity_type in CONTAINER_ENTITY_TYPES:
            return (self.config.min_container_width, self.config.min_container_height)
        return (self.config.leaf_width, self.config.leaf_height)

    def _place_subtree(
        self,
        model: ContainmentModel,
        node: Node,
        footprints: dict[str, tuple[float, float]],
    ) -> None:
        if not node.children:
            return
        self._place_children(
            model,
            node.children,
            footprints,
            columns=self.config.columns_for(node.entity_type),
            origin_x=self.config.padding,
            origin_y=self.config.header_height + self.config.padding,
        )
        for child_id in node.children:
            self._place_subtree(model, model.node(child_id), footprints)

    def _place_children(
        self,
        model: ContainmentModel,
        child_ids: list[str],
        footprints: dict[str, tuple[float, float]],
        *,
        columns: int,
        origin_x: float,
        origin_y: float,
    ) -> None:
        if not child_ids:
            return
        cols = max(1, min(columns, len(child_ids)))
        cell_w = max(footprints[child_id][0] for child_id in child_ids)
        cell_h = max(footprints[child_id][1] for child_id in child_ids)
        for idx, child_id in enumerate(child_ids):
            cell = place_grid_rel(
                idx % cols, idx // cols, cell_w, cell_h, self.config.gap_x, self.config.gap_y
            )
            width, height = footprints[child_id]
            model.node(child_id).relative_bounds = Bounds(
                x=origin_x + cell.x,
                y=origin_y + cell.y,
                w=width,
                h=height,
            )

    def _fit_container(self, model: ContainmentModel, node: Node) -> None:
        for child_id in node.children:
            self._fit_container(model, model.node(child_id))
        bounds = node.relative_bounds
        if bounds is None:
            return
        if not node.children:
            width, height = self._empty_size(node)
            node.relative_bounds = Bounds(bounds.x, bounds.y, width, height)
            return
        child_bounds = [model.node(child_id).relative_bounds for child_id in node.children]
        content_right = max(child.right for child in child_bounds if child is not None)
        content_bottom = max(child.bottom for child in child_bounds if child is not None)
        node.relative_bounds = Bounds(
            bounds.x,
            bounds.y,
            max(self.config.min_container_width, content_right + self.config.padding),
            max(self.config.min_container_height, content_bottom + self.config.padding),
        )


def check_containment(model: ContainmentModel, config: LayoutConfig) -> None:
    for node in model.nodes:
        if node.parent_id is None:
            continue
        parent = model.node(node.parent_id)
        child_bounds = node.relative_bounds
        parent_bounds = parent.relative_bounds
        if child_bounds is None or parent_bounds is None:
            msg = f"Node {node.id!r} or its parent {parent.id!r} was not laid out"
            raise LayoutInvariantError(msg, node_ids=(node.id, parent.id))
        inside = (
            child_bounds.x >= config.padding
            and child_bounds.y >= config.header_height + config.padding
            and child_bounds.right <= parent_bounds.w - config.padding
            and child_bounds.bottom <= parent_bounds.h - config.padding
        )
        if not inside:
            msg = (
                f"Node {node.id!r} at ({child_bounds.x}, {child_bounds.y}, "
                f"{child_bounds.w}x{child_bounds.h}) escapes parent {parent.id!r} "
                f"({parent_bounds.w}x{parent_bounds.h}) minus padding {config.padding}"
            )
            raise LayoutInvariantError(msg, node_ids=(node.id, parent.id))
