from __future__ import annotations

from pathlib import Path

from adapters.filesystem.json_utils import write_bytes_atomic
from domain.models import DrawioDocument
from domain.ports.repositories import DiagramRepository

DRAWIO_SUFFIX = ".drawio"


class FileSystemDrawioRepository(DiagramRepository):
    def save(self, document: DrawioDocument, path: Path) -> None:
        if not path.suffix:
            path = path.with_suffix(DRAWIO_SUFFIX)
        write_bytes_atomic(path, document.to_text().encode("utf-8"))
