"""Deposit index record."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

RECORD_FORMAT = 1


@dataclass(frozen=True)
class DepositIndexRecord:
    """Last committed deposit index for one ``(public_key, pool_address)``.

    ``last_used_index`` is -1 for a record seeded before any deposit, and
    never decreases over the record's lifetime.
    """

    public_key: str
    pool_address: str
    last_used_index: int
    updated_at: float

    def __post_init__(self) -> None:
        value = self.last_used_index
        if isinstance(value, bool) or not isinstance(value, int) or value < -1:
            msg = f"last_used_index must be an integer >= -1, got {value!r}"
            raise ValueError(msg)

    @property
    def next_index(self) -> int:
        return self.last_used_index + 1

    def to_json(self) -> bytes:
        data: dict[str, Any] = {
            "format": RECORD_FORMAT,
            "public_key": self.public_key,
            "pool_address": self.pool_address,
            "last_used_index": self.last_used_index,
            "updated_at": self.updated_at,
        }
        return json.dumps(data, separators=(",", ":")).encode("utf-8")

    @classmethod
    def from_json(cls, payload: bytes) -> DepositIndexRecord:
        """Parse the bytes written by :meth:`to_json`.

        Raises:
            ValueError: If the payload is not a well-formed record.
        """
        data = json.loads(payload.decode("utf-8"))
        if not isinstance(data, dict) or data.get("format") != RECORD_FORMAT:
            msg = "unrecognised deposit index record format"
            raise ValueError(msg)
        try:
            updated_at = data["updated_at"]
            if isinstance(updated_at, bool) or not isinstance(updated_at, int | float):
                msg = "updated_at must be a number"
                raise ValueError(msg)  # noqa: TRY004, TRY301
            return cls(
                public_key=str(data["public_key"]),
                pool_address=str(data["pool_address"]),
                last_used_index=data["last_used_index"],
                updated_at=float(updated_at),
            )
        except KeyError as exc:
            msg = f"deposit index record is missing field {exc}"
            raise ValueError(msg) from exc
