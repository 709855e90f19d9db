from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Dict, Iterable, List, Optional

import httpx

from .blacklist import normalize
from .errors import HolderSourceError
from .models import Holder
from .project_constants import CHAIN_ID, TOKEN_CONTRACT

logger = logging.getLogger(__name__)

COVALENT_API = "https://api.covalenthq.com/v1"
PAGE_SIZE = 100


def aggregate_holders(items: Iterable[Dict[str, Any]]) -> List[Holder]:
    """Sum balances per normalized address; zero balances are dropped."""
    balances: Dict[str, int] = defaultdict(int)

    for item in items:
        address = item.get("address")
        if not address:
            continue
        try:
            amount = int(item.get("balance") or 0)
        except (TypeError, ValueError):
            logger.debug("Skipping holder with unparsable balance: %r", item)
            continue
        if amount > 0:
            balances[normalize(address)] += amount

    # Deterministic ordering (critical for reproducibility)
    return [Holder(addr, bal) for addr, bal in sorted(balances.items())]


class CovalentHolderSource:
    """Token holder snapshot from the Covalent token_holders endpoint."""

    def __init__(
        self,
        api_key: str,
        contract: str = TOKEN_CONTRACT,
        chain_id: int = CHAIN_ID,
        timeout_s: float = 60.0,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self.api_key = api_key
        self.contract = contract
        self.chain_id = chain_id
        self.client = client or httpx.Client(timeout=timeout_s)

    def close(self) -> None:
        self.client.close()

    def fetch_holders(self) -> List[Holder]:
        logger.info("Fetching token holders for crystal ball distribution...")
        url = f"{COVALENT_API}/{self.chain_id}/tokens/{self.contract}/token_holders/"
        items: List[Dict[str, Any]] = []
        page = 0
        while True:
            page_items = self._fetch_page(url, page)
            items.extend(page_items)
            logger.debug("Fetched %d holders on page %d", len(page_items), page)
            if len(page_items) < PAGE_SIZE:
                break
            page += 1

        holders = aggregate_holders(items)
        logger.info("Total holders fetched: %d (%d with balance)", len(items), len(holders))
        return holders

    def _fetch_page(self, url: str, page: int) -> List[Dict[str, Any]]:
        params = {"key": self.api_key, "page-size": PAGE_SIZE, "page-number": page}
        try:
            resp = self.client.get(url, params=params)
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise HolderSourceError(f"Covalent page {page} failed: {e}") from e

        items = (data.get("data") or {}).get("items") if isinstance(data, dict) else None
        if not isinstance(items, list):
            raise HolderSourceError("Invalid data format received from Covalent API")
        return items
