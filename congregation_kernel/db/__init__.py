"""Database layer - engine, backing store protocol and store adapters."""

from congregation_kernel.db.engine import (
    get_engine,
    get_session_factory,
    init_engine_from_url,
    session_scope,
)
from congregation_kernel.db.rest_store import PostgrestStore
from congregation_kernel.db.sql_store import SqlStore
from congregation_kernel.db.store import BackingStore

__all__ = [
    "BackingStore",
    "PostgrestStore",
    "SqlStore",
    "get_engine",
    "get_session_factory",
    "init_engine_from_url",
    "session_scope",
]
