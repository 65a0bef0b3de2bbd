"""
Configuration Validator (``congregation_config.validator``).

Responsibility
--------------
Validates a ``WritePipelineConfig`` before it is bridged into the kernel.

Invariants enforced
-------------------
* Every record kind is a known ``RecordKind`` and appears once.
* ``required``, ``merge_target`` and every synonym chain's field are
  declared in the kind's ``fields``.
* Chains are acyclic and disjoint: no name repeats within a chain, no name
  belongs to two chains, no fallback renames onto a declared field or the
  merge target.
* ``merge`` chains carry a label and the kind has a merge target.
* ``attempt_budget`` covers, for every record kind, one rejection per
  name in every field's synonym chain plus the final accepted write, so
  every field can be walked through its chain and dropped without hitting
  the ceiling.

Failure modes
-------------
* Validation errors  -> configuration MUST NOT be used.
* Validation warnings  -> usable, but should be reviewed.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from congregation_config.schema import RecordKindDef, WritePipelineConfig
from congregation_kernel.domain.record_kinds import KeyedWriteMode, RecordKind

_KNOWN_KINDS = frozenset(k.value for k in RecordKind)
_KEYED_WRITES = frozenset(m.value for m in KeyedWriteMode)
_TERMINALS = frozenset({"merge", "drop"})


@dataclass
class ConfigValidationResult:
    """
    Result of configuration validation.

    ``is_valid`` returns ``True`` only when ``errors`` is empty.
    """

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)


def validate_configuration(config: WritePipelineConfig) -> ConfigValidationResult:
    """
    Validate a write pipeline configuration.

    Postconditions:
        - Returns a ``ConfigValidationResult`` with errors and warnings.
    """
    result = ConfigValidationResult()

    _validate_kinds(config, result)
    for definition in config.record_kinds:
        _validate_fields(definition, result)
        _validate_synonyms(definition, result)
    _validate_attempt_budget(config, result)

    return result


def _validate_kinds(config: WritePipelineConfig, result: ConfigValidationResult) -> None:
    seen: set[str] = set()
    for definition in config.record_kinds:
        if definition.kind not in _KNOWN_KINDS:
            result.add_error(f"Unknown record kind '{definition.kind}'")
        if definition.kind in seen:
            result.add_error(f"Record kind '{definition.kind}' declared twice")
        seen.add(definition.kind)
    for missing in sorted(_KNOWN_KINDS - seen):
        result.add_warning(f"Record kind '{missing}' has no configuration")


def _validate_fields(definition: RecordKindDef, result: ConfigValidationResult) -> None:
    kind = definition.kind
    if len(set(definition.fields)) != len(definition.fields):
        result.add_error(f"{kind}: duplicate entries in fields")
    if definition.key_column in definition.fields:
        result.add_warning(
            f"{kind}: key column '{definition.key_column}' is also a payload field"
        )
    for name in definition.required:
        if name not in definition.fields:
            result.add_error(f"{kind}: required field '{name}' is not declared")
    if definition.keyed_write not in _KEYED_WRITES:
        result.add_error(
            f"{kind}: keyed_write must be one of {sorted(_KEYED_WRITES)}, "
            f"got '{definition.keyed_write}'"
        )
    if definition.merge_target is not None and definition.merge_target not in definition.fields:
        result.add_error(
            f"{kind}: merge_target '{definition.merge_target}' is not declared"
        )


def _validate_synonyms(definition: RecordKindDef, result: ConfigValidationResult) -> None:
    kind = definition.kind
    declared = set(definition.fields)
    owner: dict[str, str] = {}

    for chain in definition.synonyms:
        if chain.field not in declared:
            result.add_error(f"{kind}: synonym chain for undeclared field '{chain.field}'")
        if chain.terminal not in _TERMINALS:
            result.add_error(
                f"{kind}.{chain.field}: terminal must be 'merge' or 'drop', "
                f"got '{chain.terminal}'"
            )
        if chain.terminal == "merge":
            if not chain.label:
                result.add_error(f"{kind}.{chain.field}: merge rule needs a label")
            if definition.merge_target is None:
                result.add_error(
                    f"{kind}.{chain.field}: merge rule but no merge_target for the kind"
                )
            if chain.field == definition.merge_target:
                result.add_error(
                    f"{kind}.{chain.field}: the merge target cannot merge into itself"
                )

        for name in (chain.field, *chain.fallbacks):
            if name in owner:
                result.add_error(
                    f"{kind}.{chain.field}: '{name}' already used by chain '{owner[name]}'"
                )
            owner[name] = chain.field
        for name in chain.fallbacks:
            if name in declared:
                result.add_error(
                    f"{kind}.{chain.field}: fallback '{name}' is a declared field"
                )
            if name == definition.merge_target:
                result.add_error(
                    f"{kind}.{chain.field}: fallback '{name}' is the merge target"
                )


def _validate_attempt_budget(
    config: WritePipelineConfig, result: ConfigValidationResult
) -> None:
    if config.attempt_budget < 1:
        result.add_error(f"attempt_budget must be >= 1, got {config.attempt_budget}")
        return
    for definition in config.record_kinds:
        needed = attempts_to_drop_every_field(definition)
        if config.attempt_budget < needed:
            result.add_error(
                f"attempt_budget {config.attempt_budget} cannot walk every field of "
                f"'{definition.kind}' through its synonym chain; use at least {needed}"
            )


def attempts_to_drop_every_field(definition: RecordKindDef) -> int:
    """
    Store calls a save of ``definition`` needs when the table has none of
    its columns: one rejection per name of each field's chain (the field
    itself, then every fallback) and the final accepted write.
    """
    fallbacks = {chain.field: len(chain.fallbacks) for chain in definition.synonyms}
    rejections = sum(1 + fallbacks.get(name, 0) for name in definition.fields)
    return rejections + 1
