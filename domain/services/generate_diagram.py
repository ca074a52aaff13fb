from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError

from domain.errors import ClassificationMismatch, ConfigurationError
from domain.models import ContainmentModel, DrawioDocument, LandingZonePreset, WorkloadRecord
from domain.ports.layout import LayoutEngine
from domain.services.build_containment_model import ContainmentModelBuilder
from domain.services.classify_workloads import DEFAULT_TIER_RULES, TierRuleSet
from domain.services.extract_graph_view import extract_graph_view
from domain.services.resolve_connections import resolve_connections
from domain.services.serialize_drawio import DEFAULT_MAX_LABEL_LENGTH, DrawioSerializer
from domain.services.validate_model import validate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PreparedModel:
    model: ContainmentModel
    mismatches: dict[str, ClassificationMismatch] = field(default_factory=dict)
    excluded_records: int = 0


@dataclass(frozen=True)
class DiagramResult:
    document: DrawioDocument
    model: ContainmentModel
    mismatches: dict[str, ClassificationMismatch] = field(default_factory=dict)
    excluded_records: int = 0

    def graph_view(self) -> dict[str, Any]:
        return extract_graph_view(self.model)


def parse_preset(payload: LandingZonePreset | Mapping[str, Any] | None) -> LandingZonePreset:
    if isinstance(payload, LandingZonePreset):
        return payload
    try:
        return LandingZonePreset.model_validate(dict(payload or {}))
    except ValidationError as exc:
        msg = f"Invalid landing zone preset: {_first_error(exc)}"
        raise ConfigurationError(msg) from exc


def parse_records(payload: Iterable[WorkloadRecord | Mapping[str, Any]]) -> list[WorkloadRecord]:
    records: list[WorkloadRecord] = []
    for idx, item in enumerate(payload):
        if isinstance(item, WorkloadRecord):
            records.append(item)
            continue
        try:
            records.append(WorkloadRecord.model_validate(item))
        except ValidationError as exc:
            msg = f"Invalid workload record #{idx}: {_first_error(exc)}"
            raise ConfigurationError(msg) from exc
    return records


def _first_error(exc: ValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return str(exc)
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    message = str(first.get("msg", "invalid value"))
    return f"{location}: {message}" if location else message


class DiagramGenerator:
    def __init__(
        self,
        layout_engine: LayoutEngine,
        *,
        rules: TierRuleSet = DEFAULT_TIER_RULES,
        show_legend: bool = True,
        show_icons: bool = True,
        max_label_length: int = DEFAULT_MAX_LABEL_LENGTH,
    ) -> None:
        self.layout_engine = layout_engine
        self.rules = rules
        self.serializer = DrawioSerializer(
            show_legend=show_legend, show_icons=show_icons, max_label_length=max_label_length
        )

    def prepare(
        self,
        records: Sequence[WorkloadRecord],
        preset: LandingZonePreset | None = None,
    ) -> PreparedModel:
        preset = preset or LandingZonePreset()
        built = ContainmentModelBuilder(preset, self.rules).build(records)
        model = validate(built.model)
        self.layout_engine.layout(model)
        resolve_connections(model, preset)
        validate(model)
        logger.debug(
            "Prepared diagram model: records=%d nodes=%d edges=%d",
            len(records),
            len(model.nodes),
            len(model.edges),
        )
        return PreparedModel(
            model=model,
            mismatches=built.mismatches,
            excluded_records=built.excluded_records,
        )

    def generate(
        self,
        records: Sequence[WorkloadRecord],
        preset: LandingZonePreset | None = None,
    ) -> DiagramResult:
        prepared = self.prepare(records, preset)
        document = self.serializer.serialize(prepared.model)
        return DiagramResult(
            document=document,
            model=prepared.model,
            mismatches=prepared.mismatches,
            excluded_records=prepared.excluded_records,
        )

    def graph(
        self,
        records: Sequence[WorkloadRecord],
        preset: LandingZonePreset | None = None,
    ) -> dict[str, Any]:
        return extract_graph_view(self.prepare(records, preset).model)
