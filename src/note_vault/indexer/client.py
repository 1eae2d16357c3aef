"""Indexer HTTP client — page through a pool's activities over GraphQL.

Provides an async client for the activity indexer. The only query sent is
the pool-wide, paginated ``activitys`` listing, which carries nothing
specific to the account doing the scanning.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx

from note_vault.errors.indexer_errors import IndexerError
from note_vault.indexer.models import ActivityPage, SortOrder

if TYPE_CHECKING:
    from note_vault.config.settings import IndexerConfig

logger = logging.getLogger(__name__)

ACTIVITIES_QUERY = """
query GetActivitiesPaginated(
  $poolId: String!, $limit: Int!, $after: String, $orderDirection: String!
) {
  activitys(
    where: { poolId: $poolId }
    limit: $limit
    after: $after
    orderBy: "timestamp"
    orderDirection: $orderDirection
  ) {
    items {
      id
      type
      aspStatus
      poolId
      user
      recipient
      amount
      originalAmount
      vettingFeeAmount
      commitment
      label
      precommitmentHash
      spentNullifier
      newCommitment
      feeAmount
      feeRefund
      relayer
      isSponsored
      blockNumber
      timestamp
      transactionHash
    }
    pageInfo {
      hasNextPage
      hasPreviousPage
      startCursor
      endCursor
    }
  }
}
"""


class IndexerClient:
    """Async GraphQL client for the activity indexer.

    Usage::

        indexer = IndexerClient(config)
        await indexer.connect()
        try:
            page = await indexer.fetch_activities(pool, limit=100)
        finally:
            await indexer.close()
    """

    def __init__(
        self,
        config: IndexerConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the indexer client.

        Args:
            config: Indexer configuration (url, auth_token, timeout).
            transport: Optional httpx transport, used by tests.
        """
        self._config = config
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def connect(self) -> None:  # noqa: ASYNC910
        """Create the underlying HTTP client."""
        if not self._config.url:
            msg = "indexer url is not configured"
            raise IndexerError(msg, status_code=500)
        headers: dict[str, str] = {
            "Content-Type": "application/json",
        }
        if self._config.auth_token:
            headers["Authorization"] = f"Bearer {self._config.auth_token}"

        self._client = httpx.AsyncClient(
            headers=headers,
            timeout=self._config.timeout,
            transport=self._transport,
        )

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def is_connected(self) -> bool:
        """Check if the HTTP client is active."""
        return self._client is not None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def fetch_activities(
        self,
        pool_address: str,
        limit: int,
        cursor: str | None = None,
        sort_order: SortOrder = SortOrder.ASC,
    ) -> ActivityPage:
        """Fetch one page of a pool's activities.

        Args:
            pool_address: Pool address (sent lower-cased as ``poolId``).
            limit: Maximum number of items.
            cursor: Resume after this cursor; None starts from the beginning.
            sort_order: Timestamp ordering.

        Returns:
            ActivityPage with items and pagination info.

        Raises:
            IndexerError: On transport, HTTP or GraphQL errors.
        """
        client = self._ensure_connected()
        variables: dict[str, Any] = {
            "poolId": pool_address.lower(),
            "limit": limit,
            "after": cursor,
            "orderDirection": str(sort_order),
        }

        try:
            response = await client.post(
                self._config.url,
                json={"query": ACTIVITIES_QUERY, "variables": variables},
            )
        except httpx.HTTPError as exc:
            raise IndexerError(f"indexer fetch_activities failed: {exc}") from exc

        if response.status_code != 200:
            self._raise_for_status(response, "fetch_activities")

        try:
            body = response.json()
        except ValueError as exc:
            raise IndexerError("indexer returned a non-JSON body") from exc

        errors = body.get("errors") if isinstance(body, dict) else None
        if errors:
            if not isinstance(errors, list):
                errors = [errors]
            detail = "; ".join(
                str(err.get("message", err) if isinstance(err, dict) else err) for err in errors
            )
            raise IndexerError(f"indexer query failed: {detail}")

        payload = body.get("data") if isinstance(body, dict) else None
        data = payload.get("activitys") if isinstance(payload, dict) else None
        if not isinstance(data, dict):
            raise IndexerError("indexer response has no activitys field")

        page = ActivityPage.from_dict(data)
        logger.debug(
            "Fetched %d activities (after=%s, next=%s)",
            len(page.items),
            cursor,
            page.page_info.has_next_page,
        )
        return page

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _ensure_connected(self) -> httpx.AsyncClient:
        """Return the HTTP client, raising if not connected."""
        if self._client is None:
            msg = "Indexer client not connected. Call connect() first."
            raise IndexerError(msg, status_code=500)
        return self._client

    def _raise_for_status(self, response: httpx.Response, operation: str) -> None:
        """Raise an IndexerError from a non-2xx response."""
        status = response.status_code
        try:
            body = response.json()
            detail = body.get("message", response.text) if isinstance(body, dict) else response.text
        except ValueError:
            detail = response.text

        message = f"indexer {operation} failed ({status}): {detail}"
        raise IndexerError(message, status_code=status)
