"""
Configuration Loader (``congregation_config.loader``).

Responsibility
--------------
Loads the write pipeline YAML file and parses it into the typed
``congregation_config.schema`` dataclasses.  The single public entry point
for runtime config is ``congregation_config.get_active_config()``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Wrong value shapes  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from congregation_config.schema import (
    RecordKindDef,
    SynonymChainDef,
    WritePipelineConfig,
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _names(value: Any, where: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValueError(f"{where} must be a list of strings, got {value!r}")
    return tuple(value)


def parse_synonym_chain(field: str, data: Any) -> SynonymChainDef:
    """
    Parse one synonym chain.

    Accepts the short form (a bare list of fallbacks, terminal ``drop``) or
    the mapping form with ``fallbacks``, ``terminal`` and ``label``.
    """
    if isinstance(data, list):
        return SynonymChainDef(field=field, fallbacks=_names(data, f"synonyms.{field}"))
    if not isinstance(data, dict):
        raise ValueError(f"synonyms.{field} must be a list or a mapping")
    return SynonymChainDef(
        field=field,
        fallbacks=_names(data.get("fallbacks"), f"synonyms.{field}.fallbacks"),
        terminal=str(data.get("terminal", "drop")),
        label=data.get("label"),
    )


def parse_record_kind(kind: str, data: dict[str, Any]) -> RecordKindDef:
    """
    Parse a ``RecordKindDef``.

    Raises:
        KeyError: if ``table`` or ``fields`` is missing.
    """
    synonyms = data.get("synonyms") or {}
    return RecordKindDef(
        kind=kind,
        table=data["table"],
        key_column=data.get("key_column", "id"),
        fields=_names(data["fields"], f"{kind}.fields"),
        required=_names(data.get("required"), f"{kind}.required"),
        keyed_write=str(data.get("keyed_write", "update")),
        merge_target=data.get("merge_target"),
        merge_separator=str(data.get("merge_separator", " | ")),
        synonyms=tuple(
            parse_synonym_chain(field, chain) for field, chain in synonyms.items()
        ),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """Deterministic SHA-256 over the canonical JSON form of ``data``."""
    canonical = json.dumps(data, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def parse_config(data: dict[str, Any]) -> WritePipelineConfig:
    """Parse the root document into a ``WritePipelineConfig``."""
    kinds = data.get("record_kinds") or {}
    return WritePipelineConfig(
        config_id=str(data.get("config_id", "default")),
        version=int(data.get("version", 1)),
        attempt_budget=int(data["attempt_budget"]),
        record_kinds=tuple(
            parse_record_kind(kind, body) for kind, body in kinds.items()
        ),
        checksum=compute_checksum(data),
    )


def load_config(path: Path) -> WritePipelineConfig:
    """Load and parse a write pipeline YAML file."""
    return parse_config(load_yaml_file(path))
