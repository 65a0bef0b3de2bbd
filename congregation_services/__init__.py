"""
congregation_services -- the console editors' save entry points.

Responsibility:
    One save service per record kind (ledger entries, member profiles,
    categories), each turning editor input into a validated payload and
    returning the write pipeline's ``WriteOutcome``.

Architecture position:
    Services -- above congregation_kernel and congregation_config.

    Dependency direction (enforced by tests/architecture/test_layer_boundaries.py):
        congregation_services/ -> congregation_config/  (allowed)
        congregation_services/ -> congregation_kernel/  (allowed)
        congregation_kernel/   -> congregation_services/ (FORBIDDEN)
        congregation_kernel/   -> congregation_config/   (FORBIDDEN)
"""

from congregation_services.category_service import CategoryInput, CategoryService
from congregation_services.factory import (
    ConsoleServices,
    create_console_services,
    create_store,
)
from congregation_services.ledger_entry_service import (
    EntryType,
    LedgerEntryInput,
    LedgerEntryService,
)
from congregation_services.member_profile_service import (
    Gender,
    MemberProfileInput,
    MemberProfileService,
    UserRole,
)

__all__ = [
    "CategoryInput",
    "CategoryService",
    "ConsoleServices",
    "EntryType",
    "Gender",
    "LedgerEntryInput",
    "LedgerEntryService",
    "MemberProfileInput",
    "MemberProfileService",
    "UserRole",
    "create_console_services",
    "create_store",
]
