"""
Pytest fixtures for the congregation kernel test suite.

Provides:
- Structured logging configuration and log capture
- The active write pipeline configuration and the kernel objects built from it
- ``make_store``: an in-memory BackingStore with a fixed column set per
  table that rejects unknown fields with real backend message shapes
- ``make_writer``: a RecordWriter over any store
- ``sqlite_session_factory``: an in-memory SQLite database with the
  console's tables, for store and end-to-end tests
"""

import json
import logging
from collections import defaultdict
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from io import StringIO
from typing import Any

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from congregation_config import get_active_config
from congregation_config.bridges import (
    build_record_kind_registry,
    build_synonym_resolver,
)
from congregation_kernel.domain.payload import Payload
from congregation_kernel.exceptions import StoreRejectedError
from congregation_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from congregation_kernel.services.record_writer import RecordWriter


# Columns a fully migrated store has for each table
LEDGER_COLUMNS = frozenset({
    "id", "description", "amount", "type", "category_id", "date",
    "member_name", "is_paid", "cost_center", "payment_type", "doc_number",
    "competence", "notes", "attachment_urls",
})
PROFILE_COLUMNS = frozenset({
    "id", "name", "email", "role", "phone", "phone2", "address",
    "address_number", "cep", "city", "neighborhood", "state", "country",
    "birth_date", "gender", "marital_status", "education", "spouse_name",
    "conversion_date", "baptism_date", "is_baptized", "doc1", "doc2",
    "categories", "cargos", "notes", "avatar_url", "must_change_password",
})
CATEGORY_COLUMNS = frozenset({"id", "name", "color", "type", "description"})


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """JSON logging at DEBUG for the whole run."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """No record kind or key leaks from one test into the next."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture congregation_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, make_writer):
            ...
            logs = captured_logs()
            assert any(r["message"] == "field_adjusted" for r in logs)
    """
    buffer = StringIO()
    capture = logging.StreamHandler(buffer)
    capture.setFormatter(StructuredFormatter())
    kernel_logger = logging.getLogger("congregation_kernel")
    saved_level = kernel_logger.level
    kernel_logger.setLevel(logging.DEBUG)
    kernel_logger.addHandler(capture)

    yield lambda: [json.loads(line) for line in buffer.getvalue().splitlines() if line]

    kernel_logger.removeHandler(capture)
    kernel_logger.setLevel(saved_level)


# =============================================================================
# In-memory backing store
# =============================================================================


@dataclass(frozen=True)
class StoreCall:
    operation: str
    table: str
    key: Any
    payload: Payload


class ScriptedStore:
    """
    BackingStore double over fixed column sets.

    Every call is recorded.  Queued ``failures`` are raised first, one per
    call; after that a payload naming a column the table lacks is rejected
    with the configured message ``shape``.
    """

    def __init__(
        self,
        columns: Mapping[str, Iterable[str]],
        *,
        shape: str = "postgres",
        failures: Iterable[Exception] = (),
    ):
        self.columns = {table: set(cols) for table, cols in columns.items()}
        self.shape = shape
        self.failures = list(failures)
        self.calls: list[StoreCall] = []
        self.rows: dict[str, list[dict[str, Any]]] = defaultdict(list)

    def insert(self, table: str, payload: Payload) -> int:
        return self._write("insert", table, None, payload)

    def update_by_key(self, table, key_column, key, payload) -> int:
        return self._write("update", table, key, payload)

    def upsert_by_key(self, table, key_column, key, payload) -> int:
        return self._write("upsert", table, key, payload)

    @property
    def attempts(self) -> int:
        return len(self.calls)

    def _write(self, operation, table, key, payload) -> int:
        self.calls.append(StoreCall(operation, table, key, payload))
        if self.failures:
            raise self.failures.pop(0)
        known = self.columns[table]
        for name in payload:
            if name not in known:
                raise StoreRejectedError(self._message(name, table), table=table)
        self.rows[table].append(payload.as_dict())
        return 1

    def _message(self, name: str, table: str) -> str:
        if self.shape == "schema_cache":
            return (
                f"Could not find the '{name}' column of '{table}' "
                "in the schema cache"
            )
        return f'column "{name}" of relation "{table}" does not exist'


@pytest.fixture(scope="session")
def full_columns() -> dict[str, frozenset[str]]:
    """Column sets of a fully migrated store, by table."""
    return {
        "transactions": LEDGER_COLUMNS,
        "profiles": PROFILE_COLUMNS,
        "categories": CATEGORY_COLUMNS,
    }


@pytest.fixture
def make_store():
    """Factory for ScriptedStore; omitted tables get their full column set."""

    def _make(
        *,
        transactions: Iterable[str] = LEDGER_COLUMNS,
        profiles: Iterable[str] = PROFILE_COLUMNS,
        categories: Iterable[str] = CATEGORY_COLUMNS,
        shape: str = "postgres",
        failures: Iterable[Exception] = (),
    ) -> ScriptedStore:
        return ScriptedStore(
            {
                "transactions": transactions,
                "profiles": profiles,
                "categories": categories,
            },
            shape=shape,
            failures=failures,
        )

    return _make


# =============================================================================
# Configuration and writer fixtures
# =============================================================================


@pytest.fixture(scope="session")
def pipeline_config():
    return get_active_config()


@pytest.fixture(scope="session")
def record_kinds(pipeline_config):
    return build_record_kind_registry(pipeline_config)


@pytest.fixture(scope="session")
def synonyms(pipeline_config):
    return build_synonym_resolver(pipeline_config)


@pytest.fixture
def make_writer(record_kinds, synonyms, pipeline_config):
    """Factory for RecordWriter over the active configuration."""

    def _make(store, *, attempt_budget=None, resolver=None) -> RecordWriter:
        return RecordWriter(
            store,
            record_kinds,
            resolver or synonyms,
            attempt_budget=attempt_budget or pipeline_config.attempt_budget,
        )

    return _make


# =============================================================================
# SQLite database
# =============================================================================


@pytest.fixture
def sqlite_session_factory():
    """
    In-memory SQLite database with a partially migrated schema.

    ``transactions`` lacks notes, attachment_urls, cost_center and
    competence; it has ``attachments`` instead of ``attachment_urls``.
    ``profiles`` has ``avatar`` instead of ``avatar_url``.
    """
    engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    with engine.begin() as conn:
        conn.execute(text(
            "CREATE TABLE transactions ("
            " id INTEGER PRIMARY KEY AUTOINCREMENT,"
            " description TEXT NOT NULL,"
            " amount NUMERIC NOT NULL CHECK (amount > 0),"
            " type TEXT NOT NULL,"
            " category_id TEXT,"
            " date TEXT NOT NULL,"
            " member_name TEXT,"
            " is_paid BOOLEAN,"
            " payment_type TEXT,"
            " doc_number TEXT,"
            " attachments TEXT)"
        ))
        conn.execute(text(
            "CREATE TABLE profiles ("
            " id TEXT PRIMARY KEY,"
            " name TEXT NOT NULL,"
            " email TEXT NOT NULL,"
            " role TEXT NOT NULL,"
            " phone TEXT,"
            " birth_date TEXT,"
            " avatar TEXT)"
        ))
        conn.execute(text(
            "CREATE TABLE categories ("
            " id INTEGER PRIMARY KEY AUTOINCREMENT,"
            " name TEXT NOT NULL UNIQUE,"
            " color TEXT,"
            " type TEXT)"
        ))
    yield sessionmaker(bind=engine, expire_on_commit=False)
    engine.dispose()
