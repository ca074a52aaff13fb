from __future__ import annotations

import logging
from collections import Counter

from domain.errors import (
    VIOLATION_REFERENCE,
    VIOLATION_STRUCTURAL,
    DanglingReferenceError,
    StructuralError,
    Violation,
)
from domain.models import ContainmentModel, Node

logger = logging.getLogger(__name__)

_IN_PROGRESS = 1
_DONE = 2


def find_violations(model: ContainmentModel) -> list[Violation]:
    index = _index_nodes(model)
    violations: list[Violation] = []
    violations.extend(_duplicate_ids(model))
    violations.extend(_dangling_references(model, index))
    violations.extend(_multiple_parents(model))
    violations.extend(_cycles(model, index))
    violations.extend(_link_disagreements(model, index))
    return violations


def validate(model: ContainmentModel) -> ContainmentModel:
    violations = find_violations(model)
    if not violations:
        logger.debug(
            "Containment model valid: nodes=%d edges=%d", len(model.nodes), len(model.edges)
        )
        return model
    if any(violation.kind == VIOLATION_STRUCTURAL for violation in violations):
        raise StructuralError(violations)
    raise DanglingReferenceError(violations)


def _index_nodes(model: ContainmentModel) -> dict[str, Node]:
    index: dict[str, Node] = {}
    for node in model.nodes:
        index.setdefault(node.id, node)
    return index


def _duplicate_ids(model: ContainmentModel) -> list[Violation]:
    counts = Counter(node.id for node in model.nodes)
    return [
        Violation(
            kind=VIOLATION_STRUCTURAL,
            message=f"Node id {node_id!r} is used by {count} nodes",
            node_ids=(node_id,),
        )
        for node_id, count in counts.items()
        if count > 1
    ]


def _dangling_references(model: ContainmentModel, index: dict[str, Node]) -> list[Violation]:
    violations: list[Violation] = []
    for node in model.nodes:
        if node.parent_id is not None and node.parent_id not in index:
            violations.append(
                Violation(
                    kind=VIOLATION_REFERENCE,
                    message=f"Node {node.id!r} references missing parent {node.parent_id!r}",
                    node_ids=(node.id, node.parent_id),
                )
            )
        for child_id in node.children:
            if child_id not in index:
                violations.append(
                    Violation(
                        kind=VIOLATION_REFERENCE,
                        message=f"Node {node.id!r} lists missing child {child_id!r}",
                        node_ids=(node.id, child_id),
                    )
                )
    for edge in model.edges:
        missing = [
            endpoint for endpoint in (edge.source_id, edge.target_id) if endpoint not in index
        ]
        if missing:
            violations.append(
                Violation(
                    kind=VIOLATION_REFERENCE,
                    message=(
                        f"Edge {edge.id!r} references missing node(s) "
                        f"{', '.join(repr(node_id) for node_id in missing)}"
                    ),
                    node_ids=tuple(missing),
                    edge_ids=(edge.id,),
                )
            )
    return violations


def _multiple_parents(model: ContainmentModel) -> list[Violation]:
    listed_by: dict[str, list[str]] = {}
    for node in model.nodes:
        for child_id in dict.fromkeys(node.children):
            listed_by.setdefault(child_id, []).append(node.id)
    return [
        Violation(
            kind=VIOLATION_STRUCTURAL,
            message=(
                f"Node {child_id!r} is listed as a child by {len(parents)} parents: "
                f"{', '.join(parents)}"
            ),
            node_ids=(child_id, *parents),
        )
        for child_id, parents in listed_by.items()
        if len(parents) > 1
    ]


def _cycles(model: ContainmentModel, index: dict[str, Node]) -> list[Violation]:
    violations: list[Violation] = []
    state: dict[str, int] = {}
    for start in model.nodes:
        if state.get(start.id) == _DONE:
            continue
        stack: list[str] = []
        current: str | None = start.id
        while current is not None:
            marker = state.get(current)
            if marker == _DONE:
                break
            if marker == _IN_PROGRESS:
                chain = stack[stack.index(current) :]
                closing = stack[-1]
                path = " -> ".join([*chain, current])
                violations.append(
                    Violation(
                        kind=VIOLATION_STRUCTURAL,
                        message=(
                            f"Containment cycle closed by {closing!r} -> {current!r}: {path}"
                        ),
                        node_ids=tuple(chain),
                    )
                )
                break
            state[current] = _IN_PROGRESS
            stack.append(current)
            parent = index.get(index[current].parent_id or "")
            current = parent.id if parent is not None else None
        for node_id in stack:
            state[node_id] = _DONE
    return violations


def _link_disagreements(model: ContainmentModel, index: dict[str, Node]) -> list[Violation]:
    violations: list[Violation] = []
    for node in model.nodes:
        seen: set[str] = set()
        for child_id in node.children:
            if child_id in seen:
                violations.append(
                    Violation(
                        kind=VIOLATION_STRUCTURAL,
                        message=f"Node {node.id!r} lists child {child_id!r} more than once",
                        node_ids=(node.id, child_id),
                    )
                )
                continue
            seen.add(child_id)
            child = index.get(child_id)
            if child is not None and child.parent_id != node.id:
                violations.append(
                    Violation(
                        kind=VIOLATION_STRUCTURAL,
                        message=(
                            f"Node {node.id!r} lists child {child_id!r} whose parent is "
                            f"{child.parent_id!r}"
                        ),
                        node_ids=(node.id, child_id),
                    )
                )
        parent = index.get(node.parent_id) if node.parent_id is not None else None
        if parent is not None and node.id not in parent.children:
            violations.append(
                Violation(
                    kind=VIOLATION_STRUCTURAL,
                    message=(
                        f"Node {node.id!r} names parent {parent.id!r} but is missing "
                        f"from its children"
                    ),
                    node_ids=(node.id, parent.id),
                )
            )
    return violations
