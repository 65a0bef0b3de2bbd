"""Ledger entries (income and expense) from the ledger editor."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from congregation_kernel.domain.payload import Payload
from congregation_kernel.domain.record_kinds import RecordKind
from congregation_kernel.services.record_writer import WriteOutcome
from congregation_services.base import RecordSaveService


class EntryType(str, Enum):
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"


@dataclass(frozen=True)
class LedgerEntryInput:
    """One income or expense line as entered in the ledger editor."""

    description: str
    amount: Decimal
    type: EntryType
    date: date
    category_id: str | UUID | None = None
    member_name: str | None = None
    is_paid: bool | None = None
    cost_center: str | None = None
    payment_type: str | None = None
    doc_number: str | None = None
    competence: str | None = None  # accounting month, "YYYY-MM"
    notes: str | None = None
    attachment_urls: tuple[str, ...] = ()

    def to_payload(self) -> Payload:
        fields: dict[str, Any] = {
            "description": self.description,
            "amount": self.amount,
            "type": self.type.value,
            "date": self.date,
        }
        if self.category_id is not None:
            fields["category_id"] = str(self.category_id)
        # Always sent so an update can clear the member
        fields["member_name"] = self.member_name or None
        optional = {
            "is_paid": self.is_paid,
            "cost_center": self.cost_center,
            "payment_type": self.payment_type,
            "doc_number": self.doc_number,
            "competence": self.competence,
            "notes": self.notes,
        }
        fields.update({k: v for k, v in optional.items() if v is not None})
        if self.attachment_urls:
            fields["attachment_urls"] = list(self.attachment_urls)
        return Payload(fields)


class LedgerEntryService(RecordSaveService):
    """Creates and edits ledger entries."""

    kind = RecordKind.LEDGER_ENTRY

    def save(
        self,
        entry: LedgerEntryInput,
        entry_id: str | UUID | None = None,
    ) -> WriteOutcome:
        return self.save_payload(entry.to_payload(), entry_id)
