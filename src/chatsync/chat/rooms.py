"""Deterministic room identity for two-person chats."""

from __future__ import annotations

from collections.abc import Iterable

DEFAULT_SEPARATOR = "_"
ESCAPE = "\\"


def _escape(user_id: str, separator: str) -> str:
    return user_id.replace(ESCAPE, ESCAPE * 2).replace(separator, ESCAPE + separator)


def room_id(user_a: str, user_b: str, separator: str = DEFAULT_SEPARATOR) -> str:
    """Return the canonical room id for a pair of users.

    The ids are sorted before joining, so ``room_id(a, b) == room_id(b, a)``.
    A separator or backslash inside an id is escaped with a backslash, so
    distinct pairs never produce the same room id. Ids without either
    character join unchanged: ``room_id("u2", "u1") == "u1_u2"``.

    Raises:
        ValueError: If either id is empty, or the separator is not a single
            character other than backslash.
    """
    if len(separator) != 1 or separator == ESCAPE:
        msg = f"Room separator must be a single character other than {ESCAPE!r}"
        raise ValueError(msg)
    if not user_a or not user_b:
        msg = "User ids must be non-empty"
        raise ValueError(msg)
    first, second = sorted((user_a, user_b))
    return f"{_escape(first, separator)}{separator}{_escape(second, separator)}"


def other_participant(participants: Iterable[str], user_id: str) -> str | None:
    """Return the participant that isn't user_id."""
    return next((p for p in participants if p != user_id), None)
