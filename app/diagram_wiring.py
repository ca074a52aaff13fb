from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import AliasChoices

from adapters.layout.containment import ContainmentLayoutEngine
from app.config import AppSettings
from domain.models import LandingZonePreset
from domain.services.generate_diagram import DiagramGenerator, parse_preset


def build_layout_engine(settings: AppSettings) -> ContainmentLayoutEngine:
    return ContainmentLayoutEngine(settings.diagram.layout.to_layout_config())


def build_generator(settings: AppSettings, show_legend: bool | None = None) -> DiagramGenerator:
    diagram = settings.diagram
    return DiagramGenerator(
        build_layout_engine(settings),
        show_legend=diagram.show_legend if show_legend is None else show_legend,
        show_icons=diagram.show_icons,
        max_label_length=diagram.max_label_length,
    )


def resolve_preset(
    settings: AppSettings,
    overrides: LandingZonePreset | Mapping[str, Any] | None = None,
) -> LandingZonePreset:
    base = settings.diagram.preset
    if overrides is None:
        return base
    if isinstance(overrides, LandingZonePreset):
        update = overrides.model_dump(include=overrides.model_fields_set)
    else:
        update = preset_field_values(overrides)
    if not update:
        return base
    return parse_preset({**base.model_dump(), **update})


def preset_field_values(payload: Mapping[str, Any]) -> dict[str, Any]:
    names: dict[str, str] = {}
    for name, info in LandingZonePreset.model_fields.items():
        names[name] = name
        if isinstance(info.validation_alias, AliasChoices):
            for choice in info.validation_alias.choices:
                if isinstance(choice, str):
                    names[choice] = name
    return {names[key]: value for key, value in payload.items() if key in names}
