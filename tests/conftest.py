from __future__ import annotations

import os
from collections.abc import Callable, Generator
from pathlib import Path

import pytest

from adapters.layout.containment import ContainmentLayoutEngine
from app.config import AppSettings, DiagramSettings, LayoutSettings
from domain.models import LandingZonePreset
from domain.services.generate_diagram import DiagramGenerator


def _clear_lzd_env() -> None:
    for key in list(os.environ):
        if key.startswith("LZD_"):
            os.environ.pop(key, None)


_clear_lzd_env()


@pytest.fixture(autouse=True)
def clear_lzd_env() -> Generator[None, None, None]:
    _clear_lzd_env()
    yield
    _clear_lzd_env()


@pytest.fixture
def full_preset() -> LandingZonePreset:
    return LandingZonePreset(
        include_non_prod_environment=True,
        include_app_gateway=True,
        include_firewall=True,
        include_bastion=True,
        include_key_vault=True,
        include_observability=True,
    )


@pytest.fixture
def generator() -> DiagramGenerator:
    return DiagramGenerator(ContainmentLayoutEngine())


@pytest.fixture
def diagram_settings(tmp_path: Path) -> DiagramSettings:
    return DiagramSettings(
        title="Test Diagrams",
        preset=LandingZonePreset(),
        show_legend=True,
        show_icons=True,
        max_label_length=24,
        input_dir=tmp_path / "workloads",
        output_dir=tmp_path / "diagrams",
        layout=LayoutSettings(),
    )


@pytest.fixture
def diagram_settings_factory(
    diagram_settings: DiagramSettings,
) -> Callable[..., DiagramSettings]:
    def _factory(**overrides: object) -> DiagramSettings:
        return diagram_settings.model_copy(update=overrides)

    return _factory


@pytest.fixture
def app_settings(diagram_settings: DiagramSettings) -> AppSettings:
    return AppSettings(diagram=diagram_settings)


@pytest.fixture
def app_settings_factory(
    diagram_settings_factory: Callable[..., DiagramSettings],
) -> Callable[..., AppSettings]:
    def _factory(**overrides: object) -> AppSettings:
        return AppSettings(diagram=diagram_settings_factory(**overrides))

    return _factory
