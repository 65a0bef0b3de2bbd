"""
BackingStore -- the write interface the pipeline consumes.

Responsibility:
    Declares the three write calls the record writer issues against the
    remote relational store.  Implementations translate their native
    failures into the kernel's ``StoreError`` subclasses, always keeping
    the backend's verbatim message.

Contract:
    - Each call performs exactly one write round-trip.
    - Returns the number of rows the store reports as written (``-1``
      when the backend does not say).
    - Raises ``StoreRejectedError`` when the store refused the statement,
      ``StoreTransportError`` when it could not be reached, and
      ``StoreAuthorizationError`` when it refused the credentials.

Non-goals:
    - No retries; retrying transport failures is the transport's concern.
    - No schema introspection; the column set is discovered by rejection.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from congregation_kernel.domain.payload import Payload


@runtime_checkable
class BackingStore(Protocol):
    """Write-side protocol over the hosted relational backend."""

    def insert(self, table: str, payload: Payload) -> int: ...

    def update_by_key(
        self,
        table: str,
        key_column: str,
        key: Any,
        payload: Payload,
    ) -> int: ...

    def upsert_by_key(
        self,
        table: str,
        key_column: str,
        key: Any,
        payload: Payload,
    ) -> int: ...
