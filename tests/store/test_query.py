"""Tests for Query evaluation."""

from datetime import datetime, timedelta, timezone

import pytest

from chatsync.store import DOCUMENT_ID, DocumentSnapshot, FieldFilter, Query

BASE = datetime(2024, 1, 1, tzinfo=timezone.utc)


def snap(doc_id: str, **data) -> DocumentSnapshot:
    return DocumentSnapshot(collection="c", id=doc_id, data=data)


class TestFieldFilter:
    def test_equality_on_missing_field_never_matches(self) -> None:
        assert not FieldFilter("read", "==", None).matches(snap("a"))

    def test_not_equal(self) -> None:
        f = FieldFilter("status", "!=", "done")
        assert f.matches(snap("a", status="open"))
        assert not f.matches(snap("b", status="done"))

    def test_in(self) -> None:
        f = FieldFilter("kind", "in", ["a", "b"])
        assert f.matches(snap("x", kind="a"))
        assert not f.matches(snap("y", kind="c"))

    def test_array_contains_requires_list(self) -> None:
        f = FieldFilter("participants", "array_contains", "u1")
        assert f.matches(snap("x", participants=["u1", "u2"]))
        assert not f.matches(snap("y", participants="u1"))

    def test_dotted_path(self) -> None:
        f = FieldFilter("typing.u1", "==", BASE)
        assert f.matches(snap("x", typing={"u1": BASE}))

    def test_document_id(self) -> None:
        f = FieldFilter(DOCUMENT_ID, "==", "x")
        assert f.matches(snap("x"))
        assert not f.matches(snap("y"))


class TestQuery:
    def test_builders_return_new_queries(self) -> None:
        base = Query("msgs")
        filtered = base.where("read", "==", False)
        assert base.filters == ()
        assert len(filtered.filters) == 1

    def test_unsupported_operator_rejected(self) -> None:
        with pytest.raises(ValueError, match="Unsupported operator"):
            Query("msgs").where("n", ">", 1)  # type: ignore[arg-type]

    def test_unsupported_direction_rejected(self) -> None:
        with pytest.raises(ValueError, match="Unsupported direction"):
            Query("msgs").order_by("n", "up")  # type: ignore[arg-type]

    def test_missing_values_sort_first_ascending(self) -> None:
        docs = [snap("a", at=BASE), snap("b"), snap("c", at=BASE - timedelta(1))]
        result = Query("c").order_by("at").apply(docs)
        assert [s.id for s in result] == ["b", "c", "a"]

    def test_missing_values_sort_last_descending(self) -> None:
        docs = [snap("a", at=BASE), snap("b", at=None), snap("c", at=BASE + timedelta(1))]
        result = Query("c").order_by("at", "desc").apply(docs)
        assert [s.id for s in result] == ["c", "a", "b"]

    def test_descending_keeps_creation_order_on_ties(self) -> None:
        docs = [snap("a", n=1), snap("b", n=1), snap("c", n=2)]
        result = Query("c").order_by("n", "desc").apply(docs)
        assert [s.id for s in result] == ["c", "a", "b"]

    def test_secondary_ordering(self) -> None:
        docs = [snap("a", g=1, n=2), snap("b", g=0, n=5), snap("c", g=1, n=1)]
        result = Query("c").order_by("g").order_by("n").apply(docs)
        assert [s.id for s in result] == ["b", "c", "a"]
