"""Per-address ball counter: the progress state machine."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Dict, List, Optional, Set

from .blacklist import normalize
from .errors import InvalidAddress
from .models import ProgressRecord
from .prize import from_basis_points, to_basis_points
from .project_constants import BALLS_FOR_PRIZE
from .store import SQLiteStore

logger = logging.getLogger(__name__)

# A record found at the final stage has a payout due; it stays there until the
# caller settles the payout and resets it.
TRANSITIONS: Dict[int, int] = {0: 1, 1: 2, 2: BALLS_FOR_PRIZE, BALLS_FOR_PRIZE: BALLS_FOR_PRIZE}
RESET_COUNT = 0


class ProgressLedger:
    """
    Ball counts per address, backed by the `progress` table.

    States are 0..3; a missing record means 0. `increment` follows
    TRANSITIONS, `reset` always returns to 0. Blacklisted records are kept
    for audit but can no longer move.
    """

    def __init__(self, store: SQLiteStore):
        self._store = store

    def get(self, address: str) -> int:
        record = self._store.get_progress(normalize(address))
        return record.count if record else 0

    def increment(self, address: str) -> int:
        address = normalize(address)
        with self._store.transaction():
            record = self._store.get_progress(address)
            if record and record.blacklisted:
                raise InvalidAddress(address)
            count = record.count if record else 0
            new_count = TRANSITIONS[count]
            self._store.set_count(address, new_count)
        logger.debug("Progress %s: %d -> %d", address, count, new_count)
        return new_count

    def reset(self, address: str) -> None:
        address = normalize(address)
        with self._store.transaction():
            self._store.set_count(address, RESET_COUNT)
            self._store.set_pending(address, None)
        logger.debug("Progress %s reset", address)

    def mark_pending(self, address: str, percentage: Decimal) -> None:
        """Remember the percentage of a payout that is about to be sent."""
        self._store.set_pending(normalize(address), to_basis_points(percentage))

    def pending(self, address: str) -> Optional[Decimal]:
        record = self._store.get_progress(normalize(address))
        if record is None or record.pending_bp is None:
            return None
        return from_basis_points(record.pending_bp)

    def top(self, n: int, exclude_blacklisted: bool = True) -> List[ProgressRecord]:
        records = self._store.list_progress()
        if exclude_blacklisted:
            records = [r for r in records if not r.blacklisted]
        # sorted() is stable: ties keep insertion order
        return sorted(records, key=lambda r: -r.count)[:n]

    def flag_blacklisted(self, blacklist: Set[str]) -> int:
        flagged = self._store.flag_progress({normalize(a) for a in blacklist})
        if flagged:
            logger.info("Flagged %d progress record(s) as blacklisted", flagged)
        return flagged

    def blacklisted_addresses(self) -> Set[str]:
        return self._store.blacklisted_progress()
