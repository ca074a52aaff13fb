from __future__ import annotations

import pytest

from domain.errors import (
    VIOLATION_REFERENCE,
    VIOLATION_STRUCTURAL,
    ConfigurationError,
    ContainmentValidationError,
    DanglingReferenceError,
    StructuralError,
)
from domain.models import ContainmentModel, Edge, LandingZonePreset, Node
from domain.services.build_containment_model import build_containment_model
from domain.services.validate_model import find_violations, validate
from tests.helpers.workload_fixtures import sized_records


def _node(node_id: str, parent_id: str | None = None, children: list[str] | None = None) -> Node:
    return Node(
        id=node_id,
        entity_type="subnet",
        layer="Networking",
        label=node_id,
        parent_id=parent_id,
        children=list(children or []),
    )


def test_built_models_are_valid(full_preset: LandingZonePreset) -> None:
    model = build_containment_model(sized_records(37), full_preset)

    assert find_violations(model) == []
    assert validate(model) is model


def test_two_node_cycle_names_both_nodes() -> None:
    model = ContainmentModel(
        nodes=[_node("A", parent_id="B", children=["B"]), _node("B", parent_id="A", children=["A"])]
    )

    with pytest.raises(StructuralError) as exc_info:
        validate(model)

    error = exc_info.value
    assert {"A", "B"} <= set(error.node_ids)
    cycles = [item for item in error.violations if "cycle" in item.message]
    assert len(cycles) == 1
    assert set(cycles[0].node_ids) == {"A", "B"}
    assert "A -> B -> A" in cycles[0].message


@pytest.mark.parametrize("length", [2, 3, 5, 9])
def test_cycles_of_any_length_report_the_closing_chain(length: int) -> None:
    ids = [f"n{idx}" for idx in range(length)]
    nodes = [
        _node(node_id, parent_id=ids[(idx + 1) % length], children=[ids[idx - 1]])
        for idx, node_id in enumerate(ids)
    ]
    model = ContainmentModel(nodes=[_node("root", children=[]), *nodes])

    violations = find_violations(model)

    cycles = [item for item in violations if "cycle" in item.message]
    assert len(cycles) == 1
    assert set(cycles[0].node_ids) == set(ids)
    assert cycles[0].kind == VIOLATION_STRUCTURAL
    assert all(item.kind == VIOLATION_STRUCTURAL for item in violations)


def test_self_parent_is_a_cycle() -> None:
    model = ContainmentModel(nodes=[_node("loop", parent_id="loop", children=["loop"])])

    with pytest.raises(StructuralError, match="loop"):
        validate(model)


def test_dangling_references_are_collected_together() -> None:
    model = ContainmentModel(
        nodes=[
            _node("vnet", children=["subnet", "ghost-child"]),
            _node("subnet", parent_id="vnet"),
        ],
        edges=[
            Edge(id="edge-a", source_id="subnet", target_id="missing-target", kind="peering"),
            Edge(id="edge-b", source_id="missing-source", target_id="vnet", kind="peering"),
        ],
    )
    model.nodes.append(_node("orphan", parent_id="missing-parent"))

    with pytest.raises(DanglingReferenceError) as exc_info:
        validate(model)

    error = exc_info.value
    assert len(error.violations) == 4
    assert all(item.kind == VIOLATION_REFERENCE for item in error.violations)
    assert {"ghost-child", "missing-target", "missing-source", "missing-parent"} <= set(
        error.node_ids
    )
    assert set(error.edge_ids) == {"edge-a", "edge-b"}
    assert error.to_dict()["error"] == "DanglingReferenceError"


def test_child_listed_by_two_parents_is_structural() -> None:
    model = ContainmentModel(
        nodes=[
            _node("vnet-a", children=["subnet"]),
            _node("vnet-b", children=["subnet"]),
            _node("subnet", parent_id="vnet-a"),
        ]
    )

    with pytest.raises(StructuralError) as exc_info:
        validate(model)

    messages = [item.message for item in exc_info.value.violations]
    assert any("2 parents" in message for message in messages)
    assert any("whose parent is 'vnet-a'" in message for message in messages)
    assert {"subnet", "vnet-a", "vnet-b"} <= set(exc_info.value.node_ids)


def test_one_sided_parent_link_is_structural() -> None:
    model = ContainmentModel(nodes=[_node("vnet"), _node("subnet", parent_id="vnet")])

    with pytest.raises(StructuralError, match="missing from its children"):
        validate(model)


def test_structural_error_wins_when_both_kinds_exist() -> None:
    model = ContainmentModel(
        nodes=[
            _node("A", parent_id="B", children=["B"]),
            _node("B", parent_id="A", children=["A"]),
            _node("C", parent_id="nowhere"),
        ]
    )

    with pytest.raises(StructuralError) as exc_info:
        validate(model)

    kinds = {item.kind for item in exc_info.value.violations}
    assert kinds == {VIOLATION_STRUCTURAL, VIOLATION_REFERENCE}
    assert isinstance(exc_info.value, ContainmentValidationError)


def test_duplicate_node_ids_are_reported() -> None:
    model = ContainmentModel(nodes=[_node("dup"), _node("dup")])

    with pytest.raises(StructuralError, match="used by 2 nodes"):
        validate(model)


def test_add_node_rejects_duplicates_and_links_children() -> None:
    model = ContainmentModel()
    model.add_node(_node("vnet"))
    model.add_node(_node("subnet", parent_id="vnet"))

    assert model.node("vnet").children == ["subnet"]
    with pytest.raises(ConfigurationError, match="Duplicate") as exc_info:
        model.add_node(_node("subnet"))

    assert exc_info.value.node_ids == ("subnet",)
