"""
RecordSaveService -- common shape of the per-kind save services.

Each console editor (ledger, member, category) owns one subclass.  The
subclass turns its form input into a ``Payload``; this base addresses the
record and hands it to the shared ``RecordWriter``.  Callers own their
in-flight indicator: ``save`` returns the outcome directly.
"""

from __future__ import annotations

from typing import Any, ClassVar

from congregation_kernel.domain.payload import Payload
from congregation_kernel.domain.record_kinds import RecordKind, WriteTarget
from congregation_kernel.logging_config import get_logger
from congregation_kernel.services.record_writer import OutcomeStatus, RecordWriter, WriteOutcome

logger = get_logger("services.save")


class RecordSaveService:
    """Base class for the ledger, member and category save services."""

    kind: ClassVar[RecordKind]

    def __init__(self, writer: RecordWriter):
        self._writer = writer

    def save_payload(self, payload: Payload, key: Any = None) -> WriteOutcome:
        """Save an already-built payload; ``key is None`` creates a record."""
        outcome = self._writer.save(WriteTarget(self.kind, key), payload)
        if outcome.status is OutcomeStatus.PARTIAL_SUCCESS:
            logger.info(
                "save_completed_with_adjustments",
                extra={
                    "record_kind": self.kind.value,
                    "notices": list(outcome.notices()),
                },
            )
        return outcome
