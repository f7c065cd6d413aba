"""
Broker Normalizer - Transaction Pager.

============================================================
PURPOSE
============================================================
Walks the broker's cursor-paginated transaction log.

The transaction summary does not carry transactions; it lists
page-link URLs whose query strings hold `from`/`to` id bounds.
Each page is fetched through the since-id endpoint and the
pages are concatenated in listed order.

CRITICAL CONSTRAINTS:
- Strictly sequential: page n+1 is requested after page n is appended
- Any failing page aborts the whole fetch (no partial results)
- No transaction is returned twice

============================================================
"""

import logging
from typing import Any, Dict, List, Optional, Set
from urllib.parse import parse_qs, urlparse

from .config import PaginationConfig
from .errors import MalformedPageLink
from .types import PaginationCursor, iso8601


logger = logging.getLogger(__name__)


SUMMARY_ENDPOINT = "accounts/{accountID}/transactions"
SINCE_ID_ENDPOINT = "accounts/{accountID}/transactions/sinceid"


def _query_int(query: Dict[str, List[str]], key: str) -> Optional[int]:
    values = query.get(key)
    if not values:
        return None
    value = values[0].strip()
    if not value.isdigit():
        raise ValueError(f"Non-numeric {key}: {value}")
    return int(value)


def parse_page_link(link: Any) -> PaginationCursor:
    """
    Extract the id bounds from a page-link URL.

    Args:
        link: URL like .../transactions/idrange?from=6&to=10

    Returns:
        PaginationCursor

    Raises:
        MalformedPageLink: If `from` is missing or not an integer
    """
    if not isinstance(link, str):
        raise MalformedPageLink(link)
    try:
        query = parse_qs(urlparse(link).query)
        from_id = _query_int(query, "from")
        to_id = _query_int(query, "to")
    except ValueError as e:
        raise MalformedPageLink(link, f"Malformed page link {link}: {e}") from e
    if from_id is None:
        raise MalformedPageLink(link, f"Page link without 'from' bound: {link}")
    return PaginationCursor(from_id=from_id, to_id=to_id)


def _transaction_id(transaction: Dict[str, Any]) -> Optional[int]:
    value = transaction.get("id") if isinstance(transaction, dict) else None
    if value is None:
        return None
    value = str(value)
    return int(value) if value.isdigit() else None


class TransactionPager:
    """
    Fetches the full transaction history since a point in time.

    Usage:
        pager = TransactionPager(transport, PaginationConfig(page_size=500))
        transactions = await pager.fetch(since=1643846400000, params={"type": "ORDER_FILL"})
    """

    def __init__(self, transport, config: Optional[PaginationConfig] = None):
        self._transport = transport
        self._config = config or PaginationConfig()

    async def fetch(
        self,
        since: Optional[int] = None,
        page_size: Optional[int] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> List[Dict[str, Any]]:
        """
        Fetch every transaction from `since` (ms) until now.

        Args:
            since: Start time in ms; epoch zero when omitted
            page_size: Summary page size (config default when omitted)
            params: Extra filters passed to every request (e.g. type)

        Returns:
            Raw transactions, page order preserved
        """
        filters = dict(params or {})
        start = since if since is not None else self._config.default_since

        summary_params = dict(filters)
        summary_params["from"] = iso8601(start)
        size = page_size if page_size is not None else self._config.page_size
        if size is not None:
            summary_params["pageSize"] = size

        summary = await self._transport.request(SUMMARY_ENDPOINT, summary_params)
        pages = (summary.get("pages") or []) if isinstance(summary, dict) else []

        logger.debug(f"Transaction summary since {summary_params['from']}: {len(pages)} pages")

        transactions: List[Dict[str, Any]] = []
        seen: Set[int] = set()

        for index, link in enumerate(pages):
            cursor = parse_page_link(link)

            page_params = dict(filters)
            # sinceid returns ids strictly greater than the one given
            page_params["id"] = str(cursor.from_id - 1)
            page = await self._transport.request(SINCE_ID_ENDPOINT, page_params)

            added = 0
            for transaction in (page or {}).get("transactions") or []:
                transaction_id = _transaction_id(transaction)
                if transaction_id is not None:
                    if cursor.to_id is not None and transaction_id > cursor.to_id:
                        continue
                    if transaction_id in seen:
                        continue
                    seen.add(transaction_id)
                transactions.append(transaction)
                added += 1

            logger.debug(
                f"Page {index + 1}/{len(pages)} "
                f"[{cursor.from_id}..{cursor.to_id}]: {added} transactions"
            )

        return transactions
