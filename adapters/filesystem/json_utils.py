from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import orjson


def load_json_value(path: Path) -> Any:
    return orjson.loads(path.read_bytes())


def load_json(path: Path) -> dict[str, Any]:
    data = load_json_value(path)
    return data if isinstance(data, dict) else {}


def dump_json_bytes(payload: Any) -> bytes:
    try:
        return orjson.dumps(payload, option=orjson.OPT_INDENT_2)
    except TypeError:
        return json.dumps(payload, ensure_ascii=False, indent=2).encode("utf-8")


def write_bytes_atomic(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(f"{path.suffix}.tmp")
    tmp_path.write_bytes(data)
    tmp_path.replace(path)


def write_json_atomic(path: Path, payload: Any) -> None:
    write_bytes_atomic(path, dump_json_bytes(payload))
