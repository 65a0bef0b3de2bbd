"""Ledger categories from the category editor."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any
from uuid import UUID

from congregation_kernel.domain.payload import Payload
from congregation_kernel.domain.record_kinds import RecordKind
from congregation_kernel.services.record_writer import WriteOutcome
from congregation_services.base import RecordSaveService
from congregation_services.ledger_entry_service import EntryType


@dataclass(frozen=True)
class CategoryInput:
    name: str
    color: str | None = None
    type: EntryType | None = None
    description: str | None = None

    def to_payload(self) -> Payload:
        fields: dict[str, Any] = {"name": self.name}
        if self.color is not None:
            fields["color"] = self.color
        if self.type is not None:
            fields["type"] = self.type.value
        if self.description is not None:
            fields["description"] = self.description
        return Payload(fields)


class CategoryService(RecordSaveService):
    kind = RecordKind.CATEGORY

    def save(
        self,
        category: CategoryInput,
        category_id: str | UUID | None = None,
    ) -> WriteOutcome:
        return self.save_payload(category.to_payload(), category_id)
