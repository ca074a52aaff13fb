from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from typing import Protocol

from domain.models import DrawioDocument, WorkloadRecord


class WorkloadRepository(Protocol):
    def load(self, path: Path) -> Sequence[WorkloadRecord]: ...

    def load_all(self, directory: Path) -> Sequence[WorkloadRecord]: ...

    def load_all_with_paths(
        self, directory: Path
    ) -> Sequence[tuple[Path, Sequence[WorkloadRecord]]]: ...


class DiagramRepository(Protocol):
    def save(self, document: DrawioDocument, path: Path) -> None: ...
