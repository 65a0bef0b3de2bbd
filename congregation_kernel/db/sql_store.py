"""
SqlStore -- BackingStore over a direct SQL connection.

Responsibility:
    Issues INSERT / UPDATE / upsert statements through SQLAlchemy Core and
    translates DBAPI failures into the kernel's StoreError taxonomy.

Architecture position:
    Kernel > DB.  Used when the console talks to PostgreSQL directly (or to
    SQLite during local development) instead of the hosted REST endpoint.

Invariants enforced:
    - No reflection: statements are built on lightweight ``table()`` /
      ``column()`` constructs from the payload's own field names, so an
      unknown column surfaces as a store rejection, never as a client-side
      error.
    - One transaction per call (``session_scope``); a rejected statement is
      rolled back before the pipeline retries.

Failure modes:
    - StoreRejectedError: the database refused the statement (unknown
      column, constraint or type violation).  ``message`` is the driver's
      own text, e.g. ``column "x" of relation "t" does not exist``.
      An upsert on a dialect other than PostgreSQL or SQLite is also
      refused this way, before any statement is sent.
    - StoreAuthorizationError: SQLSTATE 42501 / 28000 / 28P01.
    - StoreTransportError: connection lost, pool timeout, SQLSTATE class 08.
"""

from __future__ import annotations

import json
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import column, insert, table, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.sql import Executable

from congregation_kernel.db.engine import session_scope
from congregation_kernel.domain.payload import Payload
from congregation_kernel.exceptions import (
    StoreAuthorizationError,
    StoreError,
    StoreRejectedError,
    StoreTransportError,
)
from congregation_kernel.logging_config import get_logger

logger = get_logger("db.sql_store")

_AUTH_SQLSTATES = frozenset({"42501", "28000", "28P01"})


def _bind_value(value: Any, dialect: str) -> Any:
    if isinstance(value, UUID):
        return str(value)
    if dialect == "sqlite":
        if isinstance(value, Decimal):
            return str(value)
        if isinstance(value, (date, datetime)):
            return value.isoformat()
        if isinstance(value, list):
            return json.dumps(value)
    return value


def _translate(exc: DBAPIError, table_name: str, dialect: str) -> StoreError:
    orig = exc.orig
    message = str(orig).strip() if orig is not None else str(exc)
    sqlstate = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)

    if exc.connection_invalidated or isinstance(exc, InterfaceError):
        return StoreTransportError(message, table=table_name, backend_code=sqlstate)
    if sqlstate and sqlstate.startswith("08"):
        return StoreTransportError(message, table=table_name, backend_code=sqlstate)
    if isinstance(exc, OperationalError) and sqlstate is None and dialect != "sqlite":
        return StoreTransportError(message, table=table_name)
    if sqlstate in _AUTH_SQLSTATES:
        return StoreAuthorizationError(message, table=table_name, backend_code=sqlstate)
    return StoreRejectedError(message, table=table_name, backend_code=sqlstate)


class SqlStore:
    """
    BackingStore implementation on SQLAlchemy Core.

    Contract:
        Accepts a session factory; every call opens, commits and closes its
        own session.

    Non-goals:
        - Does NOT create or alter tables.
        - Does NOT retry.
    """

    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory

    def insert(self, table: str, payload: Payload) -> int:
        dialect = self._dialect()
        values = self._values(payload, dialect)
        target = self._table(table, values)
        return self._execute(table, "insert", insert(target).values(values), dialect)

    def update_by_key(
        self,
        table: str,
        key_column: str,
        key: Any,
        payload: Payload,
    ) -> int:
        dialect = self._dialect()
        values = self._values(payload, dialect)
        if not values:
            logger.info(
                "store_request_skipped",
                extra={"table": table, "operation": "update", "reason": "empty_payload"},
            )
            return 0
        target = self._table(table, [*values, key_column])
        stmt = (
            update(target)
            .where(target.c[key_column] == _bind_value(key, dialect))
            .values(values)
        )
        return self._execute(table, "update", stmt, dialect)

    def upsert_by_key(
        self,
        table: str,
        key_column: str,
        key: Any,
        payload: Payload,
    ) -> int:
        dialect = self._dialect()
        values = self._values(payload, dialect)
        values.pop(key_column, None)
        row = {key_column: _bind_value(key, dialect), **values}
        target = self._table(table, row)

        if dialect == "postgresql":
            stmt = postgresql.insert(target).values(row)
        elif dialect == "sqlite":
            stmt = sqlite.insert(target).values(row)
        else:
            raise StoreRejectedError(
                f"upsert is not supported on the {dialect} dialect", table=table
            )

        if values:
            stmt = stmt.on_conflict_do_update(
                index_elements=[key_column],
                set_={name: stmt.excluded[name] for name in values},
            )
        else:
            stmt = stmt.on_conflict_do_nothing(index_elements=[key_column])
        return self._execute(table, "upsert", stmt, dialect)

    # ------------------------------------------------------------------

    def _dialect(self) -> str:
        bind = self._session_factory.kw.get("bind")
        return bind.dialect.name if bind is not None else "postgresql"

    @staticmethod
    def _values(payload: Payload, dialect: str) -> dict[str, Any]:
        return {k: _bind_value(v, dialect) for k, v in payload.as_dict().items()}

    @staticmethod
    def _table(name: str, columns):
        return table(name, *(column(c) for c in columns))

    def _execute(
        self,
        table_name: str,
        operation: str,
        stmt: Executable,
        dialect: str,
    ) -> int:
        logger.debug(
            "store_request",
            extra={"table": table_name, "operation": operation, "dialect": dialect},
        )
        try:
            with session_scope(self._session_factory) as session:
                result = session.execute(stmt)
                return result.rowcount
        except DBAPIError as exc:
            raise _translate(exc, table_name, dialect) from exc
        except PoolTimeoutError as exc:
            raise StoreTransportError(str(exc), table=table_name) from exc
