"""
Pure domain layer.

This module contains the payload, record-kind, failure-classification and
synonym logic of the write pipeline with NO dependencies on:
- SQLAlchemy
- HTTP clients
- I/O

All domain objects are immutable and deterministic.
"""

from congregation_kernel.domain.failure_classifier import (
    NOT_CLASSIFIED,
    FailureClassification,
    NotClassified,
    UnknownField,
    classify_failure,
)
from congregation_kernel.domain.payload import Payload
from congregation_kernel.domain.record_kinds import (
    KeyedWriteMode,
    RecordKind,
    RecordKindRegistry,
    RecordKindSchema,
    WriteTarget,
)
from congregation_kernel.domain.synonyms import (
    Drop,
    FieldAction,
    FieldResolver,
    MergeInto,
    RenameTo,
    SynonymChain,
    SynonymResolver,
    TerminalRule,
)

__all__ = [
    # Payload
    "Payload",
    # Record kinds
    "KeyedWriteMode",
    "RecordKind",
    "RecordKindRegistry",
    "RecordKindSchema",
    "WriteTarget",
    # Classification
    "FailureClassification",
    "NOT_CLASSIFIED",
    "NotClassified",
    "UnknownField",
    "classify_failure",
    # Synonyms
    "Drop",
    "FieldAction",
    "FieldResolver",
    "MergeInto",
    "RenameTo",
    "SynonymChain",
    "SynonymResolver",
    "TerminalRule",
]
