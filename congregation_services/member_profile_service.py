"""
Member profiles from the member editor.

Profiles are keyed by the auth user id and written as upserts: a member
created through sign-up may not have its profile row yet when the editor
saves, and the upsert covers both cases.
"""

from __future__ import annotations

from dataclasses import dataclass, fields as dataclass_fields
from datetime import date
from enum import Enum
from typing import Any
from uuid import UUID

from congregation_kernel.domain.payload import Payload
from congregation_kernel.domain.record_kinds import RecordKind
from congregation_kernel.services.record_writer import WriteOutcome
from congregation_services.base import RecordSaveService


class UserRole(str, Enum):
    ADMIN = "ADMIN"
    TREASURER = "TESOUREIRO"
    READER = "LEITOR"


class Gender(str, Enum):
    MALE = "M"
    FEMALE = "F"
    OTHER = "OTHER"


# Input attributes that are not payload fields
_CONTROL_ATTRIBUTES = frozenset({"remove_avatar"})


@dataclass(frozen=True)
class MemberProfileInput:
    """Member data as entered in the member editor."""

    name: str
    email: str
    role: UserRole
    phone: str | None = None
    phone2: str | None = None
    address: str | None = None
    address_number: str | None = None
    cep: str | None = None
    city: str | None = None
    neighborhood: str | None = None
    state: str | None = None
    country: str | None = None
    birth_date: date | None = None
    gender: Gender | None = None
    marital_status: str | None = None
    education: str | None = None
    spouse_name: str | None = None
    conversion_date: date | None = None
    baptism_date: date | None = None
    is_baptized: bool | None = None
    doc1: str | None = None
    doc2: str | None = None
    categories: str | None = None
    cargos: str | None = None
    notes: str | None = None
    avatar_url: str | None = None
    must_change_password: bool | None = None
    remove_avatar: bool = False

    def to_payload(self) -> Payload:
        """Build the profile payload; unset optional fields are omitted.

        ``remove_avatar`` sends ``avatar_url = null`` explicitly.
        """
        payload: dict[str, Any] = {}
        for f in dataclass_fields(self):
            if f.name in _CONTROL_ATTRIBUTES:
                continue
            value = getattr(self, f.name)
            if isinstance(value, Enum):
                value = value.value
            if value is not None and value != "":
                payload[f.name] = value
        if self.remove_avatar:
            payload["avatar_url"] = None
        return Payload(payload)


class MemberProfileService(RecordSaveService):
    """Creates and edits member profiles."""

    kind = RecordKind.PROFILE

    def save(
        self,
        profile: MemberProfileInput,
        member_id: str | UUID | None = None,
    ) -> WriteOutcome:
        return self.save_payload(profile.to_payload(), member_id)
