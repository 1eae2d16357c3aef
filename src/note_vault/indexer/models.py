"""Indexer data models — Activity, PageInfo, ActivityPage.

Data classes representing the activity indexer's GraphQL objects. Numeric
fields the indexer encodes as big-integer strings are kept as strings.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class ActivityType(enum.StrEnum):
    """Pool activity kinds."""

    DEPOSIT = "DEPOSIT"
    WITHDRAWAL = "WITHDRAWAL"
    RAGEQUIT = "RAGEQUIT"


class SortOrder(enum.StrEnum):
    """Timestamp ordering of an activities query."""

    ASC = "asc"
    DESC = "desc"


def _optional(value: Any) -> str | None:
    return None if value is None else str(value)


# ---------------------------------------------------------------------------
# Activities
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Activity:
    """One pool activity as reported by the indexer.

    ``activity_type`` is kept as the raw string so unknown kinds survive a
    round trip; compare it against :class:`ActivityType` members.
    """

    id: str
    activity_type: str
    pool_id: str
    amount: str = "0"
    commitment: str = ""
    asp_status: str | None = None
    user: str | None = None
    recipient: str | None = None
    original_amount: str | None = None
    vetting_fee_amount: str | None = None
    label: str | None = None
    precommitment_hash: str | None = None
    spent_nullifier: str | None = None
    new_commitment: str | None = None
    fee_amount: str | None = None
    fee_refund: str | None = None
    relayer: str | None = None
    is_sponsored: bool = False
    block_number: str = ""
    timestamp: str = ""
    transaction_hash: str = ""

    @property
    def is_deposit(self) -> bool:
        return self.activity_type == ActivityType.DEPOSIT

    @property
    def is_withdrawal(self) -> bool:
        return self.activity_type == ActivityType.WITHDRAWAL

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Activity:
        """Create from an indexer ``items`` entry."""
        return cls(
            id=str(data.get("id", "")),
            activity_type=str(data.get("type", "")),
            pool_id=str(data.get("poolId", "")),
            amount=str(data.get("amount") or "0"),
            commitment=str(data.get("commitment") or ""),
            asp_status=_optional(data.get("aspStatus")),
            user=_optional(data.get("user")),
            recipient=_optional(data.get("recipient")),
            original_amount=_optional(data.get("originalAmount")),
            vetting_fee_amount=_optional(data.get("vettingFeeAmount")),
            label=_optional(data.get("label")),
            precommitment_hash=_optional(data.get("precommitmentHash")),
            spent_nullifier=_optional(data.get("spentNullifier")),
            new_commitment=_optional(data.get("newCommitment")),
            fee_amount=_optional(data.get("feeAmount")),
            fee_refund=_optional(data.get("feeRefund")),
            relayer=_optional(data.get("relayer")),
            is_sponsored=bool(data.get("isSponsored", False)),
            block_number=str(data.get("blockNumber") or ""),
            timestamp=str(data.get("timestamp") or ""),
            transaction_hash=str(data.get("transactionHash") or ""),
        )


@dataclass(frozen=True)
class PageInfo:
    """Cursor pagination state of one activities page."""

    has_next_page: bool = False
    has_previous_page: bool = False
    start_cursor: str | None = None
    end_cursor: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PageInfo:
        # Empty cursors mean "no cursor".
        return cls(
            has_next_page=bool(data.get("hasNextPage", False)),
            has_previous_page=bool(data.get("hasPreviousPage", False)),
            start_cursor=data.get("startCursor") or None,
            end_cursor=data.get("endCursor") or None,
        )


@dataclass(frozen=True)
class ActivityPage:
    """One page of activities plus its pagination state."""

    items: list[Activity] = field(default_factory=list)
    page_info: PageInfo = field(default_factory=PageInfo)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ActivityPage:
        """Create from the ``activitys`` object of a GraphQL response."""
        return cls(
            items=[Activity.from_dict(item) for item in data.get("items") or []],
            page_info=PageInfo.from_dict(data.get("pageInfo") or {}),
        )


# ---------------------------------------------------------------------------
# Source protocol
# ---------------------------------------------------------------------------


@runtime_checkable
class ActivitySource(Protocol):
    """Anything that can page through a pool's activities."""

    async def fetch_activities(
        self,
        pool_address: str,
        limit: int,
        cursor: str | None = None,
        sort_order: SortOrder = SortOrder.ASC,
    ) -> ActivityPage:
        """Fetch up to *limit* activities after *cursor*."""
        ...
