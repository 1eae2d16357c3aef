"""Indexer cursor ordering.

Cursors are opaque pagination tokens; the only question this layer asks is
whether one marks the same or a later page than another.
"""

from __future__ import annotations

from typing import Protocol


class CursorOrdering(Protocol):
    """Order of cursors as issued by the indexer."""

    def is_later(self, candidate: str, current: str) -> bool: ...


class LexicographicCursorOrdering:
    """Cursors that sort as strings in the order the indexer issues them.

    This is an assumption about the token format that nothing here checks.
    Encoded cursors (base64 of a sort key, say) do not sort this way, and
    with them a stored cursor would stop advancing. Syncs driven through
    :class:`~note_vault.engine.client.NoteVaultEngine` use
    :class:`PageSequenceOrdering`, which only falls back to this ordering
    for cursors it has not seen in sequence.
    """

    def is_later(self, candidate: str, current: str) -> bool:
        return candidate > current


class PageSequenceOrdering:
    """Orders cursors by the page sequence a sync actually walked.

    Every page fetched after cursor ``a`` and ending at cursor ``b`` is
    recorded as ``a -> b``. Two cursors on one recorded chain compare by
    their position in it, whatever the tokens look like; any other pair is
    left to *fallback*.
    """

    def __init__(self, fallback: CursorOrdering | None = None) -> None:
        self._fallback = fallback or LexicographicCursorOrdering()
        self._following: dict[str, str] = {}

    def record(self, previous: str | None, following: str) -> None:
        """Note that the page fetched after *previous* ends at *following*."""
        if previous is not None and previous != following:
            self._following[previous] = following

    def is_later(self, candidate: str, current: str) -> bool:
        if candidate == current:
            return False
        if self._reaches(current, candidate):
            return True
        if self._reaches(candidate, current):
            return False
        return self._fallback.is_later(candidate, current)

    def _reaches(self, start: str, target: str) -> bool:
        seen = {start}
        cursor = self._following.get(start)
        while cursor is not None and cursor not in seen:
            if cursor == target:
                return True
            seen.add(cursor)
            cursor = self._following.get(cursor)
        return False


def latest_cursor(
    current: str | None,
    incoming: str | None,
    ordering: CursorOrdering,
) -> str | None:
    """Return the later of two cursors; None never wins over a cursor."""
    if incoming is None:
        return current
    if current is None:
        return incoming
    return incoming if ordering.is_later(incoming, current) else current
