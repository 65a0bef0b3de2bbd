"""
RecordWriter -- schema-tolerant persistence of one record.

Responsibility:
    Writes a validated payload for a ledger entry, member profile or
    category to the backing store.  When the store rejects the write
    because a payload field has no column, the writer identifies the field
    from the failure message, remaps it through the synonym table (rename,
    merge into the narrative field, or drop) and tries again, until the
    write succeeds, fails for another reason, or the attempt budget runs out.

Architecture position:
    Kernel > Services -- imperative shell.  Called once per save by the
    per-kind services in ``congregation_services``; delegates I/O to a
    ``BackingStore``, classification to ``classify_failure`` and remapping
    to a ``FieldResolver``.

Invariants enforced:
    - One store call per attempt; attempts are strictly sequential.
    - The payload of attempt N+1 is attempt N's payload with exactly one
      field removed, renamed or merged.
    - ``attempt_budget`` is a checked bound: the writer never issues more
      than ``attempt_budget`` store calls for one save.
    - Only an unknown-field rejection is retried.  Transport, authorization
      and every unclassified rejection end the save on first occurrence.
    - A save whose first attempt succeeds is SUCCESS, never PARTIAL_SUCCESS.

Failure modes:
    Callers never see store exceptions; they receive a FATAL outcome whose
    ``cause`` is one of:
    - StoreTransportError / StoreAuthorizationError (verbatim from the store)
    - StoreRejectedError that is not an unknown-field rejection
    - UnresolvableFieldError: the store named a field the payload lacks
    - AttemptBudgetExhaustedError
    PayloadError subclasses are raised (not returned) for payloads that fail
    boundary validation, before any store call.

Non-goals:
    - Does NOT create columns or inspect the store's schema.
    - Does NOT retry transport failures.
    - Does NOT detect concurrent writes to the same record.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum

from congregation_kernel.db.store import BackingStore
from congregation_kernel.domain.failure_classifier import (
    FailureClassification,
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
)
from congregation_kernel.exceptions import (
    AttemptBudgetExhaustedError,
    StoreError,
    StoreRejectedError,
    UnresolvableFieldError,
)
from congregation_kernel.logging_config import LogContext, get_logger

logger = get_logger("services.record_writer")


class OutcomeStatus(str, Enum):
    """Three-way result of a save."""

    SUCCESS = "success"
    PARTIAL_SUCCESS = "partial_success"
    FATAL = "fatal"


class AdjustmentAction(str, Enum):
    """What the writer did to a rejected field."""

    RENAMED = "renamed"
    MERGED = "merged"
    DROPPED = "dropped"


@dataclass(frozen=True)
class FieldAdjustment:
    """One remap applied between two attempts."""

    field: str
    action: AdjustmentAction
    attempt: int
    target: str | None = None
    reason: str | None = None

    def describe(self) -> str:
        if self.action is AdjustmentAction.RENAMED:
            return f"'{self.field}' was saved as '{self.target}'"
        if self.action is AdjustmentAction.MERGED:
            return f"'{self.field}' was appended to '{self.target}'"
        return f"'{self.field}' was not saved"


@dataclass(frozen=True)
class WriteOutcome:
    """
    Result of a RecordWriter.save() call.

    ``final_payload`` is the payload of the last attempt (the one that
    succeeded, or the one that failed for FATAL outcomes).
    """

    status: OutcomeStatus
    kind: RecordKind
    attempts: int
    original_payload: Payload
    final_payload: Payload
    adjustments: tuple[FieldAdjustment, ...] = ()
    cause: Exception | None = None
    rows_written: int = -1

    @classmethod
    def success(
        cls,
        kind: RecordKind,
        payload: Payload,
        attempts: int,
        rows_written: int = -1,
    ) -> WriteOutcome:
        """Create a clean success (payload persisted as given)."""
        return cls(
            status=OutcomeStatus.SUCCESS,
            kind=kind,
            attempts=attempts,
            original_payload=payload,
            final_payload=payload,
            rows_written=rows_written,
        )

    @classmethod
    def partial_success(
        cls,
        kind: RecordKind,
        original: Payload,
        final: Payload,
        adjustments: tuple[FieldAdjustment, ...],
        attempts: int,
        rows_written: int = -1,
    ) -> WriteOutcome:
        """Create a success in which some fields were renamed, merged or dropped."""
        return cls(
            status=OutcomeStatus.PARTIAL_SUCCESS,
            kind=kind,
            attempts=attempts,
            original_payload=original,
            final_payload=final,
            adjustments=adjustments,
            rows_written=rows_written,
        )

    @classmethod
    def fatal(
        cls,
        kind: RecordKind,
        original: Payload,
        final: Payload,
        cause: Exception,
        attempts: int,
        adjustments: tuple[FieldAdjustment, ...] = (),
    ) -> WriteOutcome:
        """Create a terminal failure."""
        return cls(
            status=OutcomeStatus.FATAL,
            kind=kind,
            attempts=attempts,
            original_payload=original,
            final_payload=final,
            adjustments=adjustments,
            cause=cause,
        )

    @property
    def is_success(self) -> bool:
        """True for SUCCESS and PARTIAL_SUCCESS."""
        return self.status is not OutcomeStatus.FATAL

    @property
    def fields_sent(self) -> tuple[str, ...]:
        return tuple(self.final_payload)

    @property
    def altered_fields(self) -> tuple[str, ...]:
        return tuple(a.field for a in self.adjustments)

    @property
    def error_code(self) -> str | None:
        if self.cause is None:
            return None
        return getattr(self.cause, "code", type(self.cause).__name__)

    @property
    def error_message(self) -> str | None:
        return str(self.cause) if self.cause is not None else None

    def notices(self) -> tuple[str, ...]:
        """One human-readable line per adjusted field, for the editor UI."""
        return tuple(a.describe() for a in self.adjustments)


@dataclass
class AttemptState:
    """Working state of one save; discarded once the outcome is built."""

    original: Payload
    current: Payload
    attempts: int = 0
    rejected: set[str] = field(default_factory=set)
    adjustments: list[FieldAdjustment] = field(default_factory=list)


class RecordWriter:
    """
    Writes records through the remap-and-retry loop.

    Contract:
        ``save(target, payload)`` returns a ``WriteOutcome`` and raises only
        ``PayloadError`` (caller bug) or ``UnknownRecordKindError``.

    Guarantees:
        - At most ``attempt_budget`` store calls per save.
        - No state is shared between saves; concurrent saves are independent.
    """

    DEFAULT_ATTEMPT_BUDGET = 48

    def __init__(
        self,
        store: BackingStore,
        registry: RecordKindRegistry,
        resolver: FieldResolver,
        *,
        attempt_budget: int = DEFAULT_ATTEMPT_BUDGET,
        classifier: Callable[[str | None], FailureClassification] = classify_failure,
    ):
        if attempt_budget < 1:
            raise ValueError(f"attempt_budget must be >= 1, got {attempt_budget}")
        self._store = store
        self._registry = registry
        self._resolver = resolver
        self._attempt_budget = attempt_budget
        self._classifier = classifier

    @property
    def attempt_budget(self) -> int:
        return self._attempt_budget

    def save(self, target: WriteTarget, payload: Payload) -> WriteOutcome:
        """Persist ``payload`` for ``target``.

        Preconditions:
            - ``payload`` only names fields declared for ``target.kind``.
            - For creates, every required field is present and non-null.

        Postconditions:
            - SUCCESS: the store accepted ``payload`` unchanged.
            - PARTIAL_SUCCESS: the store accepted ``final_payload``;
              ``adjustments`` lists every field renamed, merged or dropped.
            - FATAL: nothing was persisted by this call; ``cause`` explains.

        Raises:
            UnknownRecordKindError: If ``target.kind`` is not registered.
            PayloadError: If ``payload`` fails boundary validation.
        """
        schema = self._registry.get(target.kind)
        schema.validate_payload(payload, is_create=target.is_create)

        state = AttemptState(original=payload, current=payload)
        record_key = None if target.key is None else str(target.key)

        with LogContext.bind(record_kind=target.kind.value, record_key=record_key):
            while True:
                state.attempts += 1
                logger.debug(
                    "write_attempt_started",
                    extra={
                        "attempt": state.attempts,
                        "fields": list(state.current),
                    },
                )
                try:
                    rows = self._dispatch(schema, target, state.current)
                except StoreRejectedError as exc:
                    outcome = self._handle_rejection(schema, state, exc)
                    if outcome is not None:
                        return outcome
                    continue
                except StoreError as exc:
                    return self._fatal(schema, state, exc)

                return self._succeeded(schema, state, rows)

    # ------------------------------------------------------------------

    def _dispatch(
        self,
        schema: RecordKindSchema,
        target: WriteTarget,
        payload: Payload,
    ) -> int:
        if target.is_create:
            return self._store.insert(schema.table, payload)
        if schema.keyed_write is KeyedWriteMode.UPSERT:
            return self._store.upsert_by_key(
                schema.table, schema.key_column, target.key, payload
            )
        return self._store.update_by_key(
            schema.table, schema.key_column, target.key, payload
        )

    def _handle_rejection(
        self,
        schema: RecordKindSchema,
        state: AttemptState,
        exc: StoreRejectedError,
    ) -> WriteOutcome | None:
        """Return a FATAL outcome, or None after remapping for another attempt."""
        classification = self._classifier(exc.message)
        if not isinstance(classification, UnknownField):
            return self._fatal(schema, state, exc)

        name = classification.name
        logger.info(
            "write_attempt_rejected",
            extra={
                "attempt": state.attempts,
                "field": name,
                "shape": classification.shape,
            },
        )

        if name not in state.current:
            return self._fatal(
                schema,
                state,
                UnresolvableFieldError(schema.kind.value, name, exc.message),
            )

        # INVARIANT: attempt budget is the hard stop
        if state.attempts >= self._attempt_budget:
            logger.error(
                "attempt_budget_exhausted",
                extra={
                    "attempts": state.attempts,
                    "attempt_budget": self._attempt_budget,
                    "field": name,
                },
            )
            return self._fatal(
                schema,
                state,
                AttemptBudgetExhaustedError(
                    schema.kind.value, state.attempts, exc.message
                ),
            )

        action = self._resolver.resolve(
            schema.kind, name, state.current, frozenset(state.rejected)
        )
        state.current, adjustment = self._apply(schema, action, state)
        state.rejected.add(name)
        state.adjustments.append(adjustment)

        logger.info(
            "field_adjusted",
            extra={
                "attempt": state.attempts,
                "field": adjustment.field,
                "action": adjustment.action.value,
                "target": adjustment.target,
                "reason": adjustment.reason,
            },
        )
        return None

    @staticmethod
    def _apply(
        schema: RecordKindSchema,
        action: FieldAction,
        state: AttemptState,
    ) -> tuple[Payload, FieldAdjustment]:
        payload = state.current
        if isinstance(action, RenameTo) and action.new_field not in payload:
            return (
                payload.renamed(action.field, action.new_field),
                FieldAdjustment(
                    field=action.field,
                    action=AdjustmentAction.RENAMED,
                    attempt=state.attempts,
                    target=action.new_field,
                ),
            )
        if isinstance(action, MergeInto) and action.target in payload:
            return (
                payload.merged_into(
                    action.field, action.target, action.label, action.separator
                ),
                FieldAdjustment(
                    field=action.field,
                    action=AdjustmentAction.MERGED,
                    attempt=state.attempts,
                    target=action.target,
                    reason=action.label,
                ),
            )

        reason = action.reason if isinstance(action, Drop) else "target_present"
        return (
            payload.without(action.field),
            FieldAdjustment(
                field=action.field,
                action=AdjustmentAction.DROPPED,
                attempt=state.attempts,
                reason=reason,
            ),
        )

    def _succeeded(
        self,
        schema: RecordKindSchema,
        state: AttemptState,
        rows: int,
    ) -> WriteOutcome:
        if not state.adjustments:
            logger.info(
                "write_succeeded",
                extra={"attempts": state.attempts, "rows_written": rows},
            )
            return WriteOutcome.success(
                schema.kind, state.current, state.attempts, rows
            )

        logger.warning(
            "write_succeeded",
            extra={
                "attempts": state.attempts,
                "rows_written": rows,
                "partial": True,
                "altered_fields": [a.field for a in state.adjustments],
            },
        )
        return WriteOutcome.partial_success(
            schema.kind,
            state.original,
            state.current,
            tuple(state.adjustments),
            state.attempts,
            rows,
        )

    def _fatal(
        self,
        schema: RecordKindSchema,
        state: AttemptState,
        cause: Exception,
    ) -> WriteOutcome:
        logger.error(
            "write_failed",
            extra={
                "attempts": state.attempts,
                "error_code": getattr(cause, "code", type(cause).__name__),
                "error": str(cause),
            },
        )
        return WriteOutcome.fatal(
            schema.kind,
            state.original,
            state.current,
            cause,
            state.attempts,
            tuple(state.adjustments),
        )
