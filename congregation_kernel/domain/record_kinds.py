"""
Record kinds -- the closed field sets the console may write.

Responsibility:
    Names the record kinds the write pipeline persists and describes, for
    each one, the store table, the identity column, the legal payload
    fields and how a keyed write is issued.  Payloads are validated here,
    at the boundary, before they enter the write pipeline.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  Instances are built
    from configuration by ``congregation_config.bridges``.

Failure modes:
    - UnknownPayloadFieldError: payload names a field outside ``fields``.
    - MissingRequiredFieldError: a create lacks a ``required`` field.
    - UnknownRecordKindError: lookup of an unregistered kind.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from uuid import UUID

from congregation_kernel.domain.payload import Payload
from congregation_kernel.exceptions import (
    MissingRequiredFieldError,
    UnknownPayloadFieldError,
    UnknownRecordKindError,
)


class RecordKind(str, Enum):
    """Logical record kinds persisted through the write pipeline."""

    LEDGER_ENTRY = "ledger_entry"
    PROFILE = "profile"
    CATEGORY = "category"


class KeyedWriteMode(str, Enum):
    """How a write that carries an identity key is issued."""

    UPDATE = "update"
    UPSERT = "upsert"


@dataclass(frozen=True)
class WriteTarget:
    """
    Which record a save addresses.

    ``key is None`` means a new record (insert); otherwise the write is
    issued by key according to the kind's ``keyed_write`` mode.
    """

    kind: RecordKind
    key: str | int | UUID | None = None

    @property
    def is_create(self) -> bool:
        return self.key is None


@dataclass(frozen=True)
class RecordKindSchema:
    """Static description of one record kind."""

    kind: RecordKind
    table: str
    key_column: str
    fields: tuple[str, ...]
    required: tuple[str, ...] = ()
    keyed_write: KeyedWriteMode = KeyedWriteMode.UPDATE
    merge_target: str | None = None
    merge_separator: str = " | "

    def __post_init__(self) -> None:
        undeclared = [f for f in self.required if f not in self.fields]
        if undeclared:
            raise ValueError(
                f"Required fields not declared for {self.kind.value}: {undeclared}"
            )
        if self.merge_target is not None and self.merge_target not in self.fields:
            raise ValueError(
                f"Merge target '{self.merge_target}' not declared for "
                f"{self.kind.value}"
            )

    def validate_payload(self, payload: Payload, *, is_create: bool) -> None:
        """Reject payloads that stray outside the closed field set.

        Preconditions:
            - ``payload`` was built by the caller from user input.

        Raises:
            UnknownPayloadFieldError: If any field is not declared.
            MissingRequiredFieldError: If ``is_create`` and a required
                field is absent or null.
        """
        unknown = tuple(f for f in payload if f not in self.fields)
        if unknown:
            raise UnknownPayloadFieldError(self.kind.value, unknown)
        if is_create:
            missing = tuple(
                f for f in self.required if payload.get(f) is None
            )
            if missing:
                raise MissingRequiredFieldError(self.kind.value, missing)


class RecordKindRegistry:
    """Lookup of ``RecordKindSchema`` by kind."""

    def __init__(self, schemas: Mapping[RecordKind, RecordKindSchema] | None = None):
        self._schemas: dict[RecordKind, RecordKindSchema] = dict(schemas or {})

    def register(self, schema: RecordKindSchema) -> None:
        self._schemas[schema.kind] = schema

    def get(self, kind: RecordKind) -> RecordKindSchema:
        try:
            return self._schemas[kind]
        except KeyError:
            raise UnknownRecordKindError(str(getattr(kind, "value", kind))) from None

    def kinds(self) -> tuple[RecordKind, ...]:
        return tuple(self._schemas)
