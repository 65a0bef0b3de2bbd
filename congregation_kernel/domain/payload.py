"""
Payload -- immutable ordered field map sent to the backing store.

Responsibility:
    Holds the column -> value pairs of one write attempt and provides the
    three transformations the write pipeline may apply between attempts:
    remove a field, rename a field, or fold a field into another one.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Values are serializable scalars, lists of strings, or None.
    - Every transformation returns a NEW payload with exactly one field
      removed or renamed; the receiver is never mutated.
    - Field order is the caller's insertion order; a renamed field keeps
      its position.

Failure modes:
    - InvalidPayloadValueError on construction with an unsupported value.
    - KeyError when transforming a field that is not present.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from congregation_kernel.exceptions import InvalidPayloadValueError

_SCALAR_TYPES = (str, int, float, bool, Decimal, date, datetime, UUID)


def _check_value(field: str, value: Any) -> Any:
    if value is None or isinstance(value, _SCALAR_TYPES):
        return value
    if isinstance(value, (list, tuple)):
        if all(isinstance(item, str) for item in value):
            return tuple(value)
    raise InvalidPayloadValueError(field, value)


def render_value(value: Any) -> str:
    """Render a payload value as free text for merging into a narrative field."""
    if value is None:
        return ""
    if isinstance(value, tuple):
        return ", ".join(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, bool):
        return "sim" if value else "não"
    return str(value)


class Payload(Mapping[str, Any]):
    """
    Ordered, immutable mapping from field name to value.

    String lists are normalized to tuples so a payload can be compared and
    logged without aliasing the caller's list.
    """

    __slots__ = ("_fields",)

    def __init__(
        self,
        fields: Mapping[str, Any] | Iterable[tuple[str, Any]] = (),
    ):
        items = fields.items() if isinstance(fields, Mapping) else fields
        self._fields: dict[str, Any] = {
            name: _check_value(name, value) for name, value in items
        }

    def __getitem__(self, name: str) -> Any:
        return self._fields[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._fields)

    def __len__(self) -> int:
        return len(self._fields)

    def __repr__(self) -> str:
        return f"Payload({self._fields!r})"

    @property
    def field_names(self) -> frozenset[str]:
        return frozenset(self._fields)

    def without(self, name: str) -> Payload:
        """Return a copy with ``name`` removed."""
        if name not in self._fields:
            raise KeyError(name)
        return Payload((k, v) for k, v in self._fields.items() if k != name)

    def renamed(self, old: str, new: str) -> Payload:
        """Return a copy where ``old`` is renamed to ``new`` in place."""
        if old not in self._fields:
            raise KeyError(old)
        if new in self._fields:
            raise ValueError(f"Field '{new}' is already present")
        return Payload(
            ((new if k == old else k), v) for k, v in self._fields.items()
        )

    def merged_into(
        self,
        name: str,
        target: str,
        label: str,
        separator: str,
    ) -> Payload:
        """
        Fold ``name`` into the free-text field ``target`` and drop ``name``.

        The target becomes ``"<target> | <label>: <value>"`` (with the given
        separator), or just ``"<label>: <value>"`` when the target is empty.
        """
        if name not in self._fields:
            raise KeyError(name)
        if target not in self._fields:
            raise KeyError(target)
        note = f"{label}: {render_value(self._fields[name])}"
        current = render_value(self._fields[target])
        combined = f"{current}{separator}{note}" if current else note
        return Payload(
            (k, (combined if k == target else v))
            for k, v in self._fields.items()
            if k != name
        )

    def as_dict(self) -> dict[str, Any]:
        """Plain dict copy with string lists restored to lists."""
        return {
            k: (list(v) if isinstance(v, tuple) else v)
            for k, v in self._fields.items()
        }
