"""
PostgrestStore -- BackingStore over the hosted backend's REST endpoint.

Responsibility:
    Sends inserts, key-filtered updates and merge-duplicates upserts to a
    PostgREST-compatible endpoint (``/rest/v1/<table>``) with ``httpx`` and
    maps HTTP failures onto the kernel's StoreError taxonomy.

Architecture position:
    Kernel > DB.  The console's default backing store.

Failure modes:
    - StoreTransportError: connection/timeout errors, 502/503/504.
    - StoreAuthorizationError: 401 and 403.
    - StoreRejectedError: every other 4xx/5xx.  ``message`` is the JSON
      ``message`` field, e.g. ``Could not find the 'notes' column of
      'transactions' in the schema cache``; ``backend_code`` is the JSON
      ``code`` (``PGRST204``, ``42703``, ...).

Non-goals:
    - No retries or backoff.  Timeouts are the httpx client's.
"""

from __future__ import annotations

import json
import time
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

import httpx

from congregation_kernel.domain.payload import Payload
from congregation_kernel.exceptions import (
    StoreAuthorizationError,
    StoreError,
    StoreRejectedError,
    StoreTransportError,
)
from congregation_kernel.logging_config import get_logger

logger = get_logger("db.rest_store")

DEFAULT_TIMEOUT = httpx.Timeout(15.0, connect=5.0)
_TRANSPORT_STATUS_CODES = frozenset({502, 503, 504})
_AUTH_STATUS_CODES = frozenset({401, 403})


def _json_default(obj: Any) -> Any:
    if isinstance(obj, (UUID, Decimal)):
        return str(obj)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def _rowcount(response: httpx.Response) -> int:
    # Content-Range: "0-0/1" or "*/0" when count=exact was requested
    content_range = response.headers.get("content-range", "")
    total = content_range.rpartition("/")[2]
    return int(total) if total.isdigit() else -1


class PostgrestStore:
    """
    BackingStore implementation over PostgREST.

    Contract:
        One HTTP request per call; ``Prefer: return=minimal`` so the store
        never echoes rows back.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        access_token: str | None = None,
        timeout: httpx.Timeout | float = DEFAULT_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._client = httpx.Client(
            base_url=base_url.rstrip("/") + "/rest/v1",
            timeout=timeout,
            transport=transport,
            headers={
                "apikey": api_key,
                "Authorization": f"Bearer {access_token or api_key}",
                "Content-Type": "application/json",
            },
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> PostgrestStore:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def insert(self, table: str, payload: Payload) -> int:
        return self._send(
            "POST",
            table,
            payload.as_dict(),
            prefer="return=minimal,count=exact",
        )

    def update_by_key(
        self,
        table: str,
        key_column: str,
        key: Any,
        payload: Payload,
    ) -> int:
        return self._send(
            "PATCH",
            table,
            payload.as_dict(),
            params={key_column: f"eq.{key}"},
            prefer="return=minimal,count=exact",
        )

    def upsert_by_key(
        self,
        table: str,
        key_column: str,
        key: Any,
        payload: Payload,
    ) -> int:
        body = {key_column: key, **payload.as_dict()}
        return self._send(
            "POST",
            table,
            body,
            params={"on_conflict": key_column},
            prefer="resolution=merge-duplicates,return=minimal,count=exact",
        )

    # ------------------------------------------------------------------

    def _send(
        self,
        method: str,
        table: str,
        body: dict[str, Any],
        *,
        prefer: str,
        params: dict[str, str] | None = None,
    ) -> int:
        start = time.perf_counter()
        try:
            response = self._client.request(
                method,
                f"/{table}",
                params=params,
                content=json.dumps(body, default=_json_default),
                headers={"Prefer": prefer},
            )
        except httpx.RequestError as exc:
            logger.warning(
                "store_request",
                extra={
                    "table": table,
                    "method": method,
                    "outcome": "transport_error",
                    "error": str(exc),
                },
            )
            raise StoreTransportError(str(exc) or type(exc).__name__, table=table) from exc

        latency_ms = round((time.perf_counter() - start) * 1000, 2)
        if response.is_success:
            logger.debug(
                "store_request",
                extra={
                    "table": table,
                    "method": method,
                    "outcome": "success",
                    "status_code": response.status_code,
                    "latency_ms": latency_ms,
                },
            )
            return _rowcount(response)

        error = self._error_for(response, table)
        logger.debug(
            "store_request",
            extra={
                "table": table,
                "method": method,
                "outcome": "error",
                "status_code": response.status_code,
                "backend_code": error.backend_code,
                "latency_ms": latency_ms,
            },
        )
        raise error

    @staticmethod
    def _error_for(response: httpx.Response, table: str) -> StoreError:
        status = response.status_code
        try:
            data = response.json()
        except ValueError:
            data = None

        if isinstance(data, dict):
            message = str(data.get("message") or response.text)
            backend_code = data.get("code")
        else:
            message = response.text or response.reason_phrase
            backend_code = None

        if status in _AUTH_STATUS_CODES:
            error_cls: type[StoreError] = StoreAuthorizationError
        elif status in _TRANSPORT_STATUS_CODES:
            error_cls = StoreTransportError
        else:
            error_cls = StoreRejectedError
        return error_cls(
            message,
            table=table,
            status=status,
            backend_code=str(backend_code) if backend_code is not None else None,
        )
