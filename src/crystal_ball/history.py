"""Completed payouts, recorded at most once per (winner, percentage)."""

from __future__ import annotations

import logging
from typing import List, Set

from .blacklist import normalize
from .errors import DuplicateOutcome
from .models import PayoutEvent, RecordResult
from .prize import from_basis_points, to_basis_points
from .store import SQLiteStore

logger = logging.getLogger(__name__)


class OutcomeRecorder:
    def __init__(self, store: SQLiteStore):
        self._store = store

    def record(self, event: PayoutEvent) -> RecordResult:
        """
        Append a payout event.

        A second event with the same winner and percentage is skipped and
        reported as `inserted=False`; retrying callers can call this freely.
        """
        if not 0 < event.percentage <= 100:
            raise ValueError(f"Percentage out of range: {event.percentage}")
        winner = normalize(event.winner)
        try:
            self._store.insert_payout(
                winner, to_basis_points(event.percentage), event.tx_ref
            )
        except DuplicateOutcome:
            logger.info(
                "Duplicate entry found and skipped: %s %s%%", winner, event.percentage
            )
            return RecordResult(inserted=False)
        logger.info(
            "Winner added to history: %s, percentage %s, tx %s",
            winner,
            event.percentage,
            event.tx_ref,
        )
        return RecordResult(inserted=True)

    def list(self, exclude_blacklisted: bool = True) -> List[PayoutEvent]:
        rows = self._store.list_payouts()
        if exclude_blacklisted:
            rows = [r for r in rows if not r["blacklisted"]]
        # Rows come in insertion order and sorted() is stable
        rows = sorted(rows, key=lambda r: -r["percentage_bp"])
        return [
            PayoutEvent(
                winner=r["winner"],
                percentage=from_basis_points(r["percentage_bp"]),
                tx_ref=r["tx_ref"],
            )
            for r in rows
        ]

    def top(self, n: int) -> List[PayoutEvent]:
        return self.list()[:n]

    def count_for_address(self, address: str) -> int:
        address = normalize(address)
        return sum(1 for e in self.list(exclude_blacklisted=False) if e.winner == address)

    def flag_blacklisted(self, blacklist: Set[str]) -> int:
        flagged = self._store.flag_payouts({normalize(a) for a in blacklist})
        if flagged:
            logger.info("Flagged %d payout record(s) as blacklisted", flagged)
        return flagged
