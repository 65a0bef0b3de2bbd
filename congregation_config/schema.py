"""
Write pipeline configuration schema.

Defines the human-authored, reviewable source artifact for the write
pipeline: which record kinds exist, the table and legal fields of each, and
the synonym chains tried when the store rejects a field.  YAML is parsed
into these types by the loader, checked by the validator, and turned into
kernel objects by the bridges.
"""

from __future__ import annotations

from dataclasses import dataclass

# ---------------------------------------------------------------------------
# Synonym chains
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SynonymChainDef:
    """Fallback column names for one field, then a terminal rule."""

    field: str
    fallbacks: tuple[str, ...] = ()
    terminal: str = "drop"  # "merge" or "drop"
    label: str | None = None  # required for "merge"


# ---------------------------------------------------------------------------
# Record kinds
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RecordKindDef:
    """Table, identity and closed field set of one record kind."""

    kind: str
    table: str
    key_column: str
    fields: tuple[str, ...]
    required: tuple[str, ...] = ()
    keyed_write: str = "update"  # "update" or "upsert"
    merge_target: str | None = None
    merge_separator: str = " | "
    synonyms: tuple[SynonymChainDef, ...] = ()


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class WritePipelineConfig:
    """Complete write pipeline configuration."""

    config_id: str
    version: int
    attempt_budget: int
    record_kinds: tuple[RecordKindDef, ...]
    checksum: str = ""

    def record_kind(self, kind: str) -> RecordKindDef:
        for definition in self.record_kinds:
            if definition.kind == kind:
                return definition
        raise KeyError(kind)
