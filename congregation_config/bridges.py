"""
Config -> Kernel Bridges.

Functions that convert a ``WritePipelineConfig`` into kernel objects.  They
live in congregation_config (the producer) because the kernel must NEVER
import congregation_config.

Usage:
    from congregation_config.bridges import build_record_writer

    config = get_active_config()
    writer = build_record_writer(config, store)
"""

from __future__ import annotations

from congregation_config.schema import WritePipelineConfig
from congregation_kernel.db.store import BackingStore
from congregation_kernel.domain.record_kinds import (
    KeyedWriteMode,
    RecordKind,
    RecordKindRegistry,
    RecordKindSchema,
)
from congregation_kernel.domain.synonyms import (
    SynonymChain,
    SynonymResolver,
    TerminalRule,
)
from congregation_kernel.services.record_writer import RecordWriter


def build_record_kind_registry(config: WritePipelineConfig) -> RecordKindRegistry:
    """Build the closed field sets of every configured record kind."""
    registry = RecordKindRegistry()
    for definition in config.record_kinds:
        registry.register(
            RecordKindSchema(
                kind=RecordKind(definition.kind),
                table=definition.table,
                key_column=definition.key_column,
                fields=definition.fields,
                required=definition.required,
                keyed_write=KeyedWriteMode(definition.keyed_write),
                merge_target=definition.merge_target,
                merge_separator=definition.merge_separator,
            )
        )
    return registry


def build_synonym_resolver(config: WritePipelineConfig) -> SynonymResolver:
    """Build the static synonym table of every configured record kind.

    Raises:
        SynonymCycleError: If a chain is cyclic or overlaps another chain.
    """
    resolver = SynonymResolver()
    for definition in config.record_kinds:
        resolver.register(
            RecordKind(definition.kind),
            (
                SynonymChain(
                    field=chain.field,
                    fallbacks=chain.fallbacks,
                    terminal=TerminalRule(chain.terminal),
                    label=chain.label,
                )
                for chain in definition.synonyms
            ),
            merge_target=definition.merge_target,
            separator=definition.merge_separator,
        )
    return resolver


def build_record_writer(
    config: WritePipelineConfig,
    store: BackingStore,
) -> RecordWriter:
    """Wire a RecordWriter for ``store`` from ``config``."""
    return RecordWriter(
        store,
        build_record_kind_registry(config),
        build_synonym_resolver(config),
        attempt_budget=config.attempt_budget,
    )
