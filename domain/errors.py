from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

VIOLATION_REFERENCE = "reference"
VIOLATION_STRUCTURAL = "structural"


@dataclass(frozen=True)
class Violation:
    kind: str
    message: str
    node_ids: tuple[str, ...] = ()
    edge_ids: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, object]:
        return {
            "kind": self.kind,
            "message": self.message,
            "node_ids": list(self.node_ids),
            "edge_ids": list(self.edge_ids),
        }


class DiagramError(Exception):
    def __init__(
        self,
        message: str,
        *,
        node_ids: Sequence[str] = (),
        edge_ids: Sequence[str] = (),
    ) -> None:
        super().__init__(message)
        self.message = message
        self.node_ids = tuple(node_ids)
        self.edge_ids = tuple(edge_ids)

    def to_dict(self) -> dict[str, object]:
        return {
            "error": type(self).__name__,
            "message": self.message,
            "node_ids": list(self.node_ids),
            "edge_ids": list(self.edge_ids),
        }


class ConfigurationError(DiagramError):
    pass


class ContainmentValidationError(DiagramError):
    def __init__(self, violations: Sequence[Violation]) -> None:
        self.violations = tuple(violations)
        node_ids: list[str] = []
        edge_ids: list[str] = []
        for violation in self.violations:
            for node_id in violation.node_ids:
                if node_id not in node_ids:
                    node_ids.append(node_id)
            for edge_id in violation.edge_ids:
                if edge_id not in edge_ids:
                    edge_ids.append(edge_id)
        lines = [f"{len(self.violations)} containment violation(s):"]
        lines.extend(f"- [{violation.kind}] {violation.message}" for violation in self.violations)
        super().__init__("\n".join(lines), node_ids=node_ids, edge_ids=edge_ids)

    def to_dict(self) -> dict[str, object]:
        payload = super().to_dict()
        payload["violations"] = [violation.to_dict() for violation in self.violations]
        return payload


class DanglingReferenceError(ContainmentValidationError):
    pass


class StructuralError(ContainmentValidationError):
    pass


class LayoutInvariantError(DiagramError):
    pass


class MissingBoundsError(DiagramError):
    pass


@dataclass(frozen=True)
class ClassificationMismatch:
    expected: int
    counted: int
    tier_counts: dict[str, int] = field(default_factory=dict)
    duplicated: tuple[str, ...] = ()
    missing: tuple[str, ...] = ()

    def describe(self) -> str:
        parts = [f"tier groups hold {self.counted} record(s), input had {self.expected}"]
        if self.duplicated:
            parts.append(f"counted more than once: {', '.join(self.duplicated)}")
        if self.missing:
            parts.append(f"not counted: {', '.join(self.missing)}")
        return "; ".join(parts)
