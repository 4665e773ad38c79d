"""Query model evaluated client-side by the store backends."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, replace
from typing import Any, Literal

from chatsync.store.base import MISSING, DocumentSnapshot, get_field

DOCUMENT_ID = "__name__"
"""Pseudo field that filters on the document id."""

Operator = Literal["==", "!=", "array_contains", "in"]
Direction = Literal["asc", "desc"]

OPERATORS: frozenset[str] = frozenset({"==", "!=", "array_contains", "in"})


@dataclass(frozen=True)
class FieldFilter:
    """A single field predicate."""

    field: str
    op: Operator
    value: Any

    def matches(self, snapshot: DocumentSnapshot) -> bool:
        if self.field == DOCUMENT_ID:
            actual: Any = snapshot.id
        else:
            actual = get_field(snapshot.data, self.field)

        if self.op == "==":
            return actual is not MISSING and actual == self.value
        if self.op == "!=":
            return actual is not MISSING and actual != self.value
        if self.op == "array_contains":
            return isinstance(actual, list) and self.value in actual
        if self.op == "in":
            return actual is not MISSING and actual in self.value
        msg = f"Unsupported operator: {self.op}"
        raise ValueError(msg)


@dataclass(frozen=True)
class Query:
    """Filters and ordering over one collection.

    Builder methods return new queries:

        Query("chats/a_b/messages").where("read", "==", False).order_by("created_at")
    """

    collection: str
    filters: tuple[FieldFilter, ...] = ()
    orders: tuple[tuple[str, Direction], ...] = ()
    limit: int | None = None

    @classmethod
    def document(cls, collection: str, doc_id: str) -> Query:
        """Query matching a single document by id."""
        return cls(collection).where(DOCUMENT_ID, "==", doc_id)

    def where(self, field: str, op: Operator, value: Any) -> Query:
        if op not in OPERATORS:
            msg = f"Unsupported operator: {op}"
            raise ValueError(msg)
        return replace(self, filters=(*self.filters, FieldFilter(field, op, value)))

    def order_by(self, field: str, direction: Direction = "asc") -> Query:
        if direction not in ("asc", "desc"):
            msg = f"Unsupported direction: {direction}"
            raise ValueError(msg)
        return replace(self, orders=(*self.orders, (field, direction)))

    def limit_to(self, count: int) -> Query:
        return replace(self, limit=count)

    def matches(self, snapshot: DocumentSnapshot) -> bool:
        return all(f.matches(snapshot) for f in self.filters)

    def apply(self, snapshots: Iterable[DocumentSnapshot]) -> list[DocumentSnapshot]:
        """Filter, sort and limit snapshots given in creation order.

        Sorting is stable, so documents that tie on every ordering field keep
        their creation order. Missing or null values sort first ascending.
        """
        results = [s for s in snapshots if self.matches(s)]
        for field, direction in reversed(self.orders):
            results.sort(
                key=lambda s, f=field: _sort_key(s, f),
                reverse=direction == "desc",
            )
        if self.limit is not None:
            results = results[: self.limit]
        return results


def _sort_key(snapshot: DocumentSnapshot, field: str) -> tuple[int, Any]:
    value = snapshot.id if field == DOCUMENT_ID else get_field(snapshot.data, field)
    if value is MISSING or value is None:
        return (0, 0)
    return (1, value)
