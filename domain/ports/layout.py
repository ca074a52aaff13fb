from __future__ import annotations

from typing import Protocol

from domain.models import ContainmentModel


class LayoutEngine(Protocol):
    def layout(self, model: ContainmentModel) -> ContainmentModel:
        ...
