"""Note cache data models — Note, NoteStatus, DiscoveryResult.

Persisted as JSON inside the encrypted store. ``from_dict`` is strict:
anything that does not look like a record written by ``to_dict`` raises
``ValueError`` so the cache can report it as corruption.
"""

from __future__ import annotations

import enum
import json
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any

from note_vault.notes.cursor import latest_cursor

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from note_vault.notes.cursor import CursorOrdering

RECORD_FORMAT = 1


class NoteStatus(enum.StrEnum):
    """Spend status of a discovered note."""

    UNSPENT = "unspent"
    SPENT = "spent"
    PENDING = "pending"


def _require_index(name: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        msg = f"{name} must be a non-negative integer, got {value!r}"
        raise ValueError(msg)
    return value


@dataclass(frozen=True)
class Note:
    """One discovered note.

    Attributes:
        id: Stable identifier, unique within a note chain.
        deposit_index: Deposit index the note derives from.
        change_index: 0 for the deposit itself, then 1, 2, ... per change note.
        amount: Remaining value as a decimal string (wei).
        status: Spend status.
        commitment: Derived commitment data, opaque to this layer.
        label: Pool label of the deposit.
        transaction_hash: Transaction that created the note.
        block_number: Block of that transaction.
        timestamp: Block timestamp.
        pool_address: Pool the note lives in.
    """

    id: str
    deposit_index: int
    change_index: int = 0
    amount: str = "0"
    status: NoteStatus = NoteStatus.UNSPENT
    commitment: str = ""
    label: str = ""
    transaction_hash: str = ""
    block_number: str = ""
    timestamp: str = ""
    pool_address: str = ""

    def __post_init__(self) -> None:
        if not isinstance(self.id, str) or not self.id:
            msg = "note id must be a non-empty string"
            raise ValueError(msg)
        _require_index("deposit_index", self.deposit_index)
        _require_index("change_index", self.change_index)
        object.__setattr__(self, "status", NoteStatus(self.status))

    @staticmethod
    def make_id(pool_address: str, deposit_index: int, change_index: int = 0) -> str:
        """Conventional identifier: ``<pool>:<deposit_index>:<change_index>``."""
        return f"{pool_address.lower()}:{deposit_index}:{change_index}"

    @property
    def is_spendable(self) -> bool:
        return self.status == NoteStatus.UNSPENT

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "deposit_index": self.deposit_index,
            "change_index": self.change_index,
            "amount": self.amount,
            "status": str(self.status),
            "commitment": self.commitment,
            "label": self.label,
            "transaction_hash": self.transaction_hash,
            "block_number": self.block_number,
            "timestamp": self.timestamp,
            "pool_address": self.pool_address,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Note:
        """Parse a stored note.

        Raises:
            ValueError: If the dict is not a well-formed note.
        """
        if not isinstance(data, dict):
            msg = f"note must be an object, got {type(data).__name__}"
            raise ValueError(msg)  # noqa: TRY004
        try:
            return cls(
                id=data["id"],
                deposit_index=data["deposit_index"],
                change_index=data.get("change_index", 0),
                amount=str(data.get("amount", "0")),
                status=NoteStatus(data["status"]),
                commitment=str(data.get("commitment", "")),
                label=str(data.get("label", "")),
                transaction_hash=str(data.get("transaction_hash", "")),
                block_number=str(data.get("block_number", "")),
                timestamp=str(data.get("timestamp", "")),
                pool_address=str(data.get("pool_address", "")),
            )
        except KeyError as exc:
            msg = f"note is missing field {exc}"
            raise ValueError(msg) from exc


def merge_note_chain(existing: Sequence[Note], incoming: Iterable[Note]) -> list[Note]:
    """Merge *incoming* into *existing* by note id.

    New ids are appended in submission order, a known id takes the incoming
    status (the last writer wins), and exact repeats change nothing. No entry
    of *existing* is ever dropped.
    """
    merged = list(existing)
    position = {note.id: i for i, note in enumerate(merged)}
    for note in incoming:
        i = position.get(note.id)
        if i is None:
            position[note.id] = len(merged)
            merged.append(note)
        elif merged[i].status != note.status:
            merged[i] = replace(merged[i], status=note.status)
    return merged


@dataclass
class DiscoveryResult:
    """Cached discovery state for one ``(public_key, pool_address)``.

    Attributes:
        note_chain: Notes discovered so far, unique by id.
        last_processed_cursor: Indexer cursor of the last persisted page.
        updated_at: Epoch seconds of the last write.
    """

    note_chain: list[Note] = field(default_factory=list)
    last_processed_cursor: str | None = None
    updated_at: float = 0.0

    @property
    def last_used_index(self) -> int:
        """Highest deposit index in the chain, -1 when empty."""
        return max((note.deposit_index for note in self.note_chain), default=-1)

    @property
    def unspent_notes(self) -> list[Note]:
        return [note for note in self.note_chain if note.is_spendable]

    def get_note(self, note_id: str) -> Note | None:
        return next((note for note in self.note_chain if note.id == note_id), None)

    def merged(
        self,
        notes: Iterable[Note],
        cursor: str | None,
        *,
        ordering: CursorOrdering,
        now: float,
    ) -> DiscoveryResult:
        """Return a new result with *notes* merged in and the cursor advanced.

        The cursor only moves forward under *ordering*; an absent or older
        *cursor* keeps the current one.
        """
        return DiscoveryResult(
            note_chain=merge_note_chain(self.note_chain, notes),
            last_processed_cursor=latest_cursor(self.last_processed_cursor, cursor, ordering),
            updated_at=now,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "format": RECORD_FORMAT,
            "note_chain": [note.to_dict() for note in self.note_chain],
            "last_processed_cursor": self.last_processed_cursor,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DiscoveryResult:
        """Parse a stored discovery result.

        Raises:
            ValueError: If the dict is not a well-formed result.
        """
        if not isinstance(data, dict) or data.get("format") != RECORD_FORMAT:
            msg = "unrecognised discovery record format"
            raise ValueError(msg)
        chain = data.get("note_chain")
        cursor = data.get("last_processed_cursor")
        updated_at = data.get("updated_at")
        if not isinstance(chain, list):
            msg = "note_chain must be a list"
            raise ValueError(msg)  # noqa: TRY004
        if cursor is not None and not isinstance(cursor, str):
            msg = "last_processed_cursor must be a string"
            raise ValueError(msg)  # noqa: TRY004
        if isinstance(updated_at, bool) or not isinstance(updated_at, int | float):
            msg = "updated_at must be a number"
            raise ValueError(msg)  # noqa: TRY004

        notes = [Note.from_dict(item) for item in chain]
        if len({note.id for note in notes}) != len(notes):
            msg = "note_chain contains duplicate ids"
            raise ValueError(msg)
        return cls(note_chain=notes, last_processed_cursor=cursor, updated_at=float(updated_at))

    def to_json(self) -> bytes:
        return json.dumps(self.to_dict(), separators=(",", ":")).encode("utf-8")

    @classmethod
    def from_json(cls, payload: bytes) -> DiscoveryResult:
        """Parse the bytes written by :meth:`to_json`.

        Raises:
            ValueError: On invalid UTF-8, invalid JSON or a malformed record.
        """
        return cls.from_dict(json.loads(payload.decode("utf-8")))
