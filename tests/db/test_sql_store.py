"""
SqlStore against in-memory SQLite.

Checks that real driver failures arrive as the right StoreError subclass
with the driver's own message, which is what the classifier parses.
"""

from datetime import date
from decimal import Decimal
from types import SimpleNamespace

import pytest
from sqlalchemy import text
from sqlalchemy.orm import sessionmaker

from congregation_kernel.db.sql_store import SqlStore
from congregation_kernel.domain.failure_classifier import (
    NotClassified,
    UnknownField,
    classify_failure,
)
from congregation_kernel.domain.payload import Payload
from congregation_kernel.domain.record_kinds import RecordKind, WriteTarget
from congregation_kernel.exceptions import StoreRejectedError
from congregation_kernel.services.record_writer import OutcomeStatus


@pytest.fixture
def store(sqlite_session_factory):
    return SqlStore(sqlite_session_factory)


def _rows(session_factory, sql):
    with session_factory() as session:
        return session.execute(text(sql)).mappings().all()


class TestInsert:
    def test_inserts_row(self, store, sqlite_session_factory):
        rows = store.insert(
            "transactions",
            Payload({
                "description": "Oferta",
                "amount": Decimal("45.90"),
                "type": "INCOME",
                "date": date(2026, 1, 4),
                "attachments": ["recibo.png"],
            }),
        )
        assert rows == 1
        saved = _rows(sqlite_session_factory, "SELECT * FROM transactions")
        assert len(saved) == 1
        assert saved[0]["description"] == "Oferta"
        assert saved[0]["date"] == "2026-01-04"
        assert saved[0]["attachments"] == '["recibo.png"]'

    def test_unknown_column_is_rejected_with_driver_message(self, store):
        with pytest.raises(StoreRejectedError) as exc_info:
            store.insert(
                "transactions",
                Payload({"description": "x", "amount": 1, "type": "INCOME",
                         "date": "2026-01-01", "notes": "n"}),
            )
        assert exc_info.value.table == "transactions"
        assert classify_failure(exc_info.value.message) == UnknownField("notes", "sqlite")

    def test_constraint_violation_is_not_a_field_error(self, store):
        with pytest.raises(StoreRejectedError) as exc_info:
            store.insert(
                "transactions",
                Payload({"description": "x", "amount": -1, "type": "INCOME",
                         "date": "2026-01-01"}),
            )
        assert not isinstance(classify_failure(exc_info.value.message), UnknownField)

    def test_failed_insert_is_rolled_back(self, store, sqlite_session_factory):
        with pytest.raises(StoreRejectedError):
            store.insert("categories", Payload({"name": "a", "icon": "x"}))
        assert _rows(sqlite_session_factory, "SELECT * FROM categories") == []


class TestUpdate:
    def test_updates_by_key(self, store, sqlite_session_factory):
        store.insert("categories", Payload({"name": "Missões"}))
        rows = store.update_by_key("categories", "id", 1, Payload({"color": "#ff0000"}))
        assert rows == 1
        saved = _rows(sqlite_session_factory, "SELECT color FROM categories WHERE id = 1")
        assert saved[0]["color"] == "#ff0000"

    def test_missing_key_updates_nothing(self, store):
        assert store.update_by_key("categories", "id", 99, Payload({"color": "#000"})) == 0

    def test_unknown_column(self, store):
        store.insert("categories", Payload({"name": "Missões"}))
        with pytest.raises(StoreRejectedError) as exc_info:
            store.update_by_key("categories", "id", 1, Payload({"description": "d"}))
        assert classify_failure(exc_info.value.message) == UnknownField(
            "description", "sqlite"
        )

    def test_empty_payload_is_a_no_op(self, store, captured_logs):
        assert store.update_by_key("categories", "id", 1, Payload({})) == 0
        assert any(r["message"] == "store_request_skipped" for r in captured_logs())


class TestUpsert:
    def test_insert_then_update(self, store, sqlite_session_factory):
        key = "0b0e7c1e-5d8f-4c1a-9a77-52f3b2d7c001"
        store.upsert_by_key(
            "profiles", "id", key,
            Payload({"name": "Ana", "email": "a@x.org", "role": "LEITOR"}),
        )
        store.upsert_by_key(
            "profiles", "id", key,
            Payload({"name": "Ana", "email": "a@x.org", "role": "ADMIN", "phone": "1"}),
        )
        saved = _rows(sqlite_session_factory, "SELECT * FROM profiles")
        assert len(saved) == 1
        assert saved[0]["role"] == "ADMIN"
        assert saved[0]["phone"] == "1"

    def test_unknown_column(self, store):
        with pytest.raises(StoreRejectedError) as exc_info:
            store.upsert_by_key(
                "profiles", "id", "k",
                Payload({"name": "Ana", "email": "a@x.org", "role": "LEITOR",
                         "avatar_url": "https://cdn/a.png"}),
            )
        classification = classify_failure(exc_info.value.message)
        assert classification == UnknownField("avatar_url", "sqlite")


class TestUnsupportedDialect:
    @pytest.fixture
    def mysql_store(self):
        bind = SimpleNamespace(dialect=SimpleNamespace(name="mysql"))
        return SqlStore(sessionmaker(bind=bind))

    def test_upsert_is_refused(self, mysql_store):
        with pytest.raises(StoreRejectedError) as exc_info:
            mysql_store.upsert_by_key(
                "profiles", "id", "u-1",
                Payload({"name": "Ana", "email": "a@x.org", "role": "LEITOR"}),
            )
        assert exc_info.value.table == "profiles"
        assert "mysql" in exc_info.value.message
        assert isinstance(classify_failure(exc_info.value.message), NotClassified)

    def test_member_save_is_fatal_outcome(self, mysql_store, make_writer):
        outcome = make_writer(mysql_store).save(
            WriteTarget(RecordKind.PROFILE, "u-1"),
            Payload({"name": "Ana", "email": "a@x.org", "role": "LEITOR"}),
        )
        assert outcome.status is OutcomeStatus.FATAL
        assert outcome.attempts == 1
        assert outcome.error_code == "STORE_REJECTED"
