"""Services for the congregation kernel (write side)."""

from congregation_kernel.services.record_writer import (
    AdjustmentAction,
    AttemptState,
    FieldAdjustment,
    OutcomeStatus,
    RecordWriter,
    WriteOutcome,
)

__all__ = [
    "AdjustmentAction",
    "AttemptState",
    "FieldAdjustment",
    "OutcomeStatus",
    "RecordWriter",
    "WriteOutcome",
]
