"""
Synonym resolver -- fallback names for fields the store does not have.

Responsibility:
    For each record kind, holds a static table of synonym chains.  A chain
    lists the fallback column names tried, in order, for one logical field
    and ends in a terminal rule: merge the value into the kind's narrative
    field, or drop it.  Given a rejected field name, the resolver returns
    the action the write pipeline applies before its next attempt.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  Built from
    configuration by ``congregation_config.bridges``.

Invariants enforced:
    - Chains are acyclic and no column name belongs to two chains of the
      same kind (checked at construction, SynonymCycleError).
    - A name already rejected in the current write is never proposed again,
      so the payload of every retry is a strict transform of the previous one.
    - A rename never overwrites a field the caller already set.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol

from congregation_kernel.domain.record_kinds import RecordKind
from congregation_kernel.exceptions import SynonymCycleError


class TerminalRule(str, Enum):
    """What happens once every fallback name of a chain was rejected."""

    MERGE = "merge"
    DROP = "drop"


@dataclass(frozen=True)
class SynonymChain:
    """Ordered fallbacks for one logical field."""

    field: str
    fallbacks: tuple[str, ...] = ()
    terminal: TerminalRule = TerminalRule.DROP
    label: str | None = None

    @property
    def names(self) -> tuple[str, ...]:
        return (self.field, *self.fallbacks)

    def successors(self, name: str) -> tuple[str, ...]:
        names = self.names
        return names[names.index(name) + 1:]


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RenameTo:
    """Move the rejected field's value to ``new_field``."""

    field: str
    new_field: str


@dataclass(frozen=True)
class MergeInto:
    """Append ``"<label>: <value>"`` onto ``target`` and drop the field."""

    field: str
    target: str
    label: str
    separator: str = " | "


@dataclass(frozen=True)
class Drop:
    """Remove the field with no replacement."""

    field: str
    reason: str = "no_synonym"


FieldAction = RenameTo | MergeInto | Drop


class FieldResolver(Protocol):
    """Anything that can turn a rejected field into a ``FieldAction``."""

    def resolve(
        self,
        kind: RecordKind,
        field: str,
        payload: Mapping[str, Any],
        rejected: frozenset[str] = frozenset(),
    ) -> FieldAction: ...


@dataclass(frozen=True)
class _KindTable:
    chains: tuple[SynonymChain, ...]
    by_name: Mapping[str, SynonymChain]
    merge_target: str | None
    separator: str


class SynonymResolver:
    """
    Static synonym table for every record kind.

    Contract:
        ``resolve()`` maps a rejected field to RenameTo / MergeInto / Drop.

    Guarantees:
        - Deterministic: same inputs, same action.
        - Never proposes a name in ``rejected`` or already in the payload.
        - MergeInto is only returned when the kind's merge target is present
          in the payload, was not rejected, and the value is non-empty.
    """

    def __init__(self) -> None:
        self._tables: dict[RecordKind, _KindTable] = {}

    def register(
        self,
        kind: RecordKind,
        chains: Iterable[SynonymChain],
        *,
        merge_target: str | None = None,
        separator: str = " | ",
    ) -> None:
        """Register the chains of one record kind.

        Raises:
            SynonymCycleError: If a chain repeats a name, two chains share a
                name, or a chain's fallbacks include the merge target.
        """
        chains = tuple(chains)
        by_name: dict[str, SynonymChain] = {}
        for chain in chains:
            seen: set[str] = set()
            for name in chain.names:
                if name in seen:
                    raise SynonymCycleError(
                        kind.value, chain.field, f"'{name}' appears twice"
                    )
                seen.add(name)
                if name in by_name:
                    raise SynonymCycleError(
                        kind.value,
                        chain.field,
                        f"'{name}' already belongs to chain "
                        f"'{by_name[name].field}'",
                    )
                by_name[name] = chain
            if merge_target is not None and merge_target in chain.fallbacks:
                raise SynonymCycleError(
                    kind.value,
                    chain.field,
                    f"fallback '{merge_target}' is the merge target",
                )
            if chain.terminal is TerminalRule.MERGE and not chain.label:
                raise SynonymCycleError(
                    kind.value, chain.field, "merge rule without a label"
                )
        self._tables[kind] = _KindTable(
            chains=chains,
            by_name=by_name,
            merge_target=merge_target,
            separator=separator,
        )

    def chain_for(self, kind: RecordKind, name: str) -> SynonymChain | None:
        table = self._tables.get(kind)
        if table is None:
            return None
        return table.by_name.get(name)

    def max_chain_length(self, kind: RecordKind) -> int:
        """Longest number of attempts one field can consume."""
        table = self._tables.get(kind)
        if table is None or not table.chains:
            return 1
        return max(len(c.names) + 1 for c in table.chains)

    def resolve(
        self,
        kind: RecordKind,
        field: str,
        payload: Mapping[str, Any],
        rejected: frozenset[str] = frozenset(),
    ) -> FieldAction:
        table = self._tables.get(kind)
        chain = table.by_name.get(field) if table is not None else None
        if table is None or chain is None:
            return Drop(field)

        for candidate in chain.successors(field):
            if candidate in rejected:
                continue
            if candidate in payload:
                return Drop(field, reason="synonym_present")
            return RenameTo(field, candidate)

        if chain.terminal is TerminalRule.MERGE:
            target = table.merge_target
            value = payload.get(field)
            if (
                target is not None
                and target != field
                and target in payload
                and target not in rejected
                and value not in (None, "", ())
            ):
                return MergeInto(field, target, chain.label or field, table.separator)
            return Drop(field, reason="merge_unavailable")

        return Drop(field, reason="chain_exhausted")
