from __future__ import annotations

import json
from dataclasses import dataclass
from functools import lru_cache
from importlib import resources
from pathlib import Path
from typing import Any

import jsonschema

from ..core.errors import DriftError
from ..core.exit_codes import ERR_VALIDATION


def schemas_root() -> Path:
    return Path(str(resources.files(__package__))) / "schemas"


@dataclass(frozen=True)
class CatalogEntry:
    name: str
    version: int
    file: str


def _catalog_path() -> Path:
    return schemas_root() / "catalog.json"


@lru_cache(maxsize=1)
def load_catalog() -> dict[str, CatalogEntry]:
    raw = json.loads(_catalog_path().read_text(encoding="utf-8"))
    entries: dict[str, CatalogEntry] = {}
    for row in raw.get("schemas", []):
        entry = CatalogEntry(name=row["name"], version=int(row["version"]), file=row["file"])
        entries[entry.name] = entry
    return entries


def schema_path(schema_name: str) -> Path:
    entry = load_catalog().get(schema_name)
    if entry is None:
        raise DriftError(f"unknown schema: {schema_name}", ERR_VALIDATION, kind="unknown_schema")
    return schemas_root() / entry.file


@lru_cache(maxsize=None)
def _load_schema(schema_name: str) -> dict[str, Any]:
    return json.loads(schema_path(schema_name).read_text(encoding="utf-8"))


def validate(schema_name: str, payload: Any) -> None:
    schema = _load_schema(schema_name)
    try:
        jsonschema.validate(payload, schema)
    except jsonschema.ValidationError as exc:
        pointer = "/".join(str(p) for p in exc.absolute_path)
        loc = pointer or "<root>"
        raise DriftError(
            f"schema validation failed for {schema_name} at {loc}: {exc.message}",
            ERR_VALIDATION,
            kind="schema_violation",
        ) from exc


def validate_file(schema_name: str, file_path: str | Path) -> None:
    payload = json.loads(Path(file_path).read_text(encoding="utf-8"))
    validate(schema_name, payload)
