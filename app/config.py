from __future__ import annotations

import os
from pathlib import Path
from typing import ClassVar

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic_settings.sources import PydanticBaseSettingsSource, YamlConfigSettingsSource

from adapters.layout.containment import DEFAULT_COLUMNS, LayoutConfig
from domain.models import LandingZonePreset

DEFAULT_CONFIG_PATH = Path("config/diagram.yaml")


class LayoutSettings(BaseModel):
    padding: float = Field(default=20.0, ge=0)
    header_height: float = Field(default=30.0, ge=0)
    gap_x: float = Field(default=16.0, ge=0)
    gap_y: float = Field(default=16.0, ge=0)
    leaf_width: float = Field(default=180.0, gt=0)
    leaf_height: float = Field(default=90.0, gt=0)
    min_container_width: float = Field(default=220.0, gt=0)
    min_container_height: float = Field(default=120.0, gt=0)
    canvas_margin: float = Field(default=40.0, ge=0)
    root_columns: int = Field(default=4, ge=1)
    default_columns: int = Field(default=3, ge=1)
    columns: dict[str, int] = Field(default_factory=lambda: dict(DEFAULT_COLUMNS))

    @field_validator("columns", mode="after")
    @classmethod
    def ensure_positive_columns(cls, value: dict[str, int]) -> dict[str, int]:
        for entity_type, count in value.items():
            if count < 1:
                msg = f"layout.columns.{entity_type} must be at least 1"
                raise ValueError(msg)
        return value

    def to_layout_config(self) -> LayoutConfig:
        return LayoutConfig(
            padding=self.padding,
            header_height=self.header_height,
            gap_x=self.gap_x,
            gap_y=self.gap_y,
            leaf_width=self.leaf_width,
            leaf_height=self.leaf_height,
            min_container_width=self.min_container_width,
            min_container_height=self.min_container_height,
            canvas_margin=self.canvas_margin,
            root_columns=self.root_columns,
            default_columns=self.default_columns,
            columns=dict(self.columns),
        )


class DiagramSettings(BaseModel):
    title: str = "Landing Zone Diagrams"
    preset: LandingZonePreset = LandingZonePreset()
    show_legend: bool = True
    show_icons: bool = True
    max_label_length: int = Field(default=24, ge=4)
    input_dir: Path = Path("examples/workloads")
    output_dir: Path = Path("data/diagrams")
    layout: LayoutSettings = LayoutSettings()


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="LZD_", env_nested_delimiter="__")

    diagram: DiagramSettings = DiagramSettings()

    _yaml_path: ClassVar[Path | None] = None

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        sources: list[PydanticBaseSettingsSource] = [
            init_settings,
            env_settings,
            dotenv_settings,
            file_secret_settings,
        ]
        if cls._yaml_path:
            sources.append(YamlConfigSettingsSource(settings_cls, yaml_file=cls._yaml_path))
        return tuple(sources)


def load_settings(config_path: Path | None = None) -> AppSettings:
    env_path = os.getenv("LZD_CONFIG_PATH")
    resolved_path: Path | None = None

    if config_path is not None:
        resolved_path = config_path
    elif env_path:
        resolved_path = Path(env_path)
    elif DEFAULT_CONFIG_PATH.exists():
        resolved_path = DEFAULT_CONFIG_PATH

    previous = AppSettings._yaml_path
    try:
        if resolved_path is not None:
            if not resolved_path.exists():
                msg = f"Config file not found: {resolved_path}"
                raise FileNotFoundError(msg)
            AppSettings._yaml_path = resolved_path
        return AppSettings()
    finally:
        AppSettings._yaml_path = previous
