from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path
from typing import Any

from adapters.filesystem.json_utils import load_json_value
from domain.models import WorkloadRecord
from domain.ports.repositories import WorkloadRepository
from domain.services.generate_diagram import parse_records

_RECORD_KEYS = ("workloads", "records", "vms")


def extract_record_payload(data: Any) -> list[Any]:
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        for key in _RECORD_KEYS:
            value = data.get(key)
            if isinstance(value, list):
                return value
    msg = f"Expected a list of workload records or an object with one of: {', '.join(_RECORD_KEYS)}"
    raise ValueError(msg)


class FileSystemWorkloadRepository(WorkloadRepository):
    def load(self, path: Path) -> list[WorkloadRecord]:
        try:
            payload = extract_record_payload(load_json_value(path))
        except ValueError as exc:
            msg = f"Failed to read workload records from {path}: {exc}"
            raise ValueError(msg) from exc
        return parse_records(payload)

    def load_all(self, directory: Path) -> list[WorkloadRecord]:
        records: list[WorkloadRecord] = []
        for _, loaded in self.load_all_with_paths(directory):
            records.extend(loaded)
        return records

    def load_all_with_paths(self, directory: Path) -> list[tuple[Path, list[WorkloadRecord]]]:
        return [(path, self.load(path)) for path in sorted(self._iter_paths(directory))]

    def _iter_paths(self, directory: Path) -> Iterable[Path]:
        yield from directory.glob("*.json")
