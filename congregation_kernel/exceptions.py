"""
Typed exception hierarchy for the congregation kernel.

Every error carries a class-level ``code`` (machine-readable, stable) and
its context as attributes, so the console can log, serialize or display it
without parsing the message.

    CongregationKernelError (base)
    |
    +-- StoreError                      raised by BackingStore adapters
    |   +-- StoreRejectedError          the store refused the statement
    |   +-- StoreTransportError         connectivity / timeout
    |   +-- StoreAuthorizationError     credentials or row-level policy
    |
    +-- PayloadError                    caller built an illegal payload
    |   +-- UnknownPayloadFieldError
    |   +-- MissingRequiredFieldError
    |   +-- InvalidPayloadValueError
    |
    +-- WritePipelineError              reported as the cause of a FATAL outcome
    |   +-- AttemptBudgetExhaustedError
    |   +-- UnresolvableFieldError
    |
    +-- SchemaError                     static record-kind / synonym tables
        +-- UnknownRecordKindError
        +-- SynonymCycleError

Only ``StoreRejectedError`` can drive a remap-and-retry cycle.  Transport
and authorization failures are terminal on first occurrence; retrying them
belongs to the transport, not to the write pipeline.

Error codes
-----------
STORE_REJECTED, STORE_TRANSPORT, STORE_UNAUTHORIZED,
UNKNOWN_PAYLOAD_FIELD, MISSING_REQUIRED_FIELD, INVALID_PAYLOAD_VALUE,
ATTEMPT_BUDGET_EXHAUSTED, UNRESOLVABLE_FIELD,
UNKNOWN_RECORD_KIND, SYNONYM_CYCLE
"""

from typing import Any


class CongregationKernelError(Exception):
    """
    Base exception for all congregation kernel errors.

    All subclasses must have a ``code`` class attribute.
    """

    code: str = "CONGREGATION_KERNEL_ERROR"


# Store exceptions


class StoreError(CongregationKernelError):
    """Base exception for backing store failures."""

    code: str = "STORE_ERROR"

    def __init__(
        self,
        message: str,
        *,
        table: str | None = None,
        status: int | None = None,
        backend_code: str | None = None,
    ):
        self.message = message
        self.table = table
        self.status = status
        self.backend_code = backend_code
        super().__init__(message)


class StoreRejectedError(StoreError):
    """
    The store received the write and refused it.

    Covers unknown columns as well as constraint and type violations; the
    failure classifier tells them apart from ``message``.
    """

    code: str = "STORE_REJECTED"


class StoreTransportError(StoreError):
    """The write never reached the store, or the reply was lost."""

    code: str = "STORE_TRANSPORT"


class StoreAuthorizationError(StoreError):
    """The store refused the caller's credentials or row-level policy."""

    code: str = "STORE_UNAUTHORIZED"


# Payload exceptions


class PayloadError(CongregationKernelError):
    """Base exception for payloads that fail boundary validation."""

    code: str = "PAYLOAD_ERROR"


class UnknownPayloadFieldError(PayloadError):
    """Payload names fields outside the record kind's closed field set."""

    code: str = "UNKNOWN_PAYLOAD_FIELD"

    def __init__(self, record_kind: str, fields: tuple[str, ...]):
        self.record_kind = record_kind
        self.fields = fields
        super().__init__(
            f"Fields not allowed for {record_kind}: {', '.join(fields)}"
        )


class MissingRequiredFieldError(PayloadError):
    """Payload for a new record lacks a required field."""

    code: str = "MISSING_REQUIRED_FIELD"

    def __init__(self, record_kind: str, fields: tuple[str, ...]):
        self.record_kind = record_kind
        self.fields = fields
        super().__init__(
            f"Required fields missing for {record_kind}: {', '.join(fields)}"
        )


class InvalidPayloadValueError(PayloadError):
    """A payload value is not a serializable scalar, string list, or null."""

    code: str = "INVALID_PAYLOAD_VALUE"

    def __init__(self, field: str, value: Any):
        self.field = field
        self.value_type = type(value).__name__
        super().__init__(
            f"Unsupported value of type {self.value_type} for field '{field}'"
        )


# Write pipeline exceptions


class WritePipelineError(CongregationKernelError):
    """Base exception for terminal write pipeline conditions."""

    code: str = "WRITE_PIPELINE_ERROR"


class AttemptBudgetExhaustedError(WritePipelineError):
    """The remap-and-retry loop used every attempt it was allowed."""

    code: str = "ATTEMPT_BUDGET_EXHAUSTED"

    def __init__(self, record_kind: str, attempts: int, last_message: str):
        self.record_kind = record_kind
        self.attempts = attempts
        self.last_message = last_message
        super().__init__(
            f"Write for {record_kind} gave up after {attempts} attempts: "
            f"{last_message}"
        )


class UnresolvableFieldError(WritePipelineError):
    """
    The store reported an unknown field the payload does not carry.

    Typically the key column itself, which no payload remap can fix.
    """

    code: str = "UNRESOLVABLE_FIELD"

    def __init__(self, record_kind: str, field: str, message: str):
        self.record_kind = record_kind
        self.field = field
        self.store_message = message
        super().__init__(
            f"Store rejected field '{field}' for {record_kind}, "
            f"which the payload does not contain: {message}"
        )


# Schema exceptions


class SchemaError(CongregationKernelError):
    """Base exception for record-kind and synonym table errors."""

    code: str = "SCHEMA_ERROR"


class UnknownRecordKindError(SchemaError):
    """No schema is registered for the requested record kind."""

    code: str = "UNKNOWN_RECORD_KIND"

    def __init__(self, record_kind: str):
        self.record_kind = record_kind
        super().__init__(f"No schema registered for record kind: {record_kind}")


class SynonymCycleError(SchemaError):
    """A synonym chain revisits a field name, or two chains share one."""

    code: str = "SYNONYM_CYCLE"

    def __init__(self, record_kind: str, field: str, detail: str):
        self.record_kind = record_kind
        self.field = field
        self.detail = detail
        super().__init__(
            f"Invalid synonym chain for {record_kind}.{field}: {detail}"
        )
