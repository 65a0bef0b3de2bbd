"""
Console service wiring.

All construction of the write side happens here: settings select the
backing store, configuration builds the writer, and the three editors'
save services share that writer.
"""

from __future__ import annotations

from dataclasses import dataclass

from congregation_config import get_active_config, load_store_settings
from congregation_config.bridges import build_record_writer
from congregation_config.schema import WritePipelineConfig
from congregation_config.settings import StoreSettings
from congregation_kernel.db.engine import get_session_factory, init_engine_from_url
from congregation_kernel.db.rest_store import PostgrestStore
from congregation_kernel.db.sql_store import SqlStore
from congregation_kernel.db.store import BackingStore
from congregation_kernel.logging_config import configure_logging, get_logger
from congregation_kernel.services.record_writer import RecordWriter
from congregation_services.category_service import CategoryService
from congregation_services.ledger_entry_service import LedgerEntryService
from congregation_services.member_profile_service import MemberProfileService

logger = get_logger("services.factory")


@dataclass(frozen=True)
class ConsoleServices:
    """Everything the console's editors need to persist records."""

    store: BackingStore
    writer: RecordWriter
    ledger: LedgerEntryService
    members: MemberProfileService
    categories: CategoryService


def create_store(settings: StoreSettings) -> BackingStore:
    """SQL store when DATABASE_URL is set, hosted REST store otherwise."""
    if settings.uses_sql:
        init_engine_from_url(settings.database_url)
        return SqlStore(get_session_factory())
    return PostgrestStore(
        settings.supabase_url,
        settings.supabase_anon_key,
        timeout=settings.http_timeout,
    )


def create_console_services(
    *,
    settings: StoreSettings | None = None,
    config: WritePipelineConfig | None = None,
    store: BackingStore | None = None,
) -> ConsoleServices:
    """Build the console's save services.

    Args:
        settings: Store settings; read from the environment when omitted.
        config: Write pipeline configuration; the active one when omitted.
        store: Ready-made store, bypassing ``settings``.
    """
    configure_logging()
    config = config or get_active_config()
    if store is None:
        store = create_store(settings or load_store_settings())
    writer = build_record_writer(config, store)

    logger.info(
        "console_services_created",
        extra={
            "store": type(store).__name__,
            "attempt_budget": writer.attempt_budget,
        },
    )
    return ConsoleServices(
        store=store,
        writer=writer,
        ledger=LedgerEntryService(writer),
        members=MemberProfileService(writer),
        categories=CategoryService(writer),
    )
