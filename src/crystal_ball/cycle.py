"""
One tick of the crystal ball distribution.

Bootstrap ticks give one ball to each of the first holders (by address) until
the bootstrap limit is reached. Regular ticks draw a single winner by stake,
add a ball, and on the third ball pay out a share of the treasury, record the
payout and reset the winner to zero.

The third ball and the drawn percentage are committed before the transfer is
sent, and the record and reset follow in a second transaction. A record left at
the third ball with a pending percentage is settled without a new transfer.
"""

from __future__ import annotations

import enum
import logging
import random
import threading
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional, Set, Tuple

from . import blacklist as blacklist_filter
from . import draw
from .errors import (
    ExternalServiceError,
    InsufficientFunds,
    InvalidAddress,
    SendFailed,
    StoreUnavailable,
)
from .history import OutcomeRecorder
from .interfaces import HolderSource, Notifier, Treasury
from .ledger import ProgressLedger
from .models import Announcement, Holder, PayoutEvent, PhaseMode, RecordResult
from .phase import DistributionPhase
from .prize import PrizeCalculator
from .project_constants import BALLS_FOR_PRIZE, BOOTSTRAP_LIMIT, STORE_ALERT_THRESHOLD
from .store import SQLiteStore

logger = logging.getLogger(__name__)


class CycleStatus(str, enum.Enum):
    SKIPPED = "skipped"  # previous cycle still running
    NO_HOLDERS = "no_holders"
    NO_WINNER = "no_winner"
    BOOTSTRAP = "bootstrap"
    PROGRESS = "progress"
    PAYOUT = "payout"
    ABORTED = "aborted"


@dataclass(frozen=True)
class CycleReport:
    status: CycleStatus
    phase: Optional[PhaseMode] = None
    winner: Optional[str] = None
    count: Optional[int] = None
    percentage: Optional[Decimal] = None
    net_amount: Optional[int] = None
    tx_ref: Optional[str] = None
    inserted: Optional[bool] = None
    seeded: List[str] = field(default_factory=list)
    error: Optional[str] = None


class DistributionCycle:
    """
    Orchestrates the per-tick distribution.

    Usage:
        cycle = DistributionCycle(store, holder_source, treasury, notifier)
        report = cycle.run_cycle()

    Store writes up to the third ball run in one transaction; the transfer
    runs outside it. A tick that arrives while another is still running is
    skipped.
    """

    def __init__(
        self,
        store: SQLiteStore,
        holder_source: HolderSource,
        treasury: Treasury,
        notifier: Notifier,
        blacklist: Optional[Set[str]] = None,
        prize_calculator: Optional[PrizeCalculator] = None,
        bootstrap_limit: int = BOOTSTRAP_LIMIT,
        rng: Optional[random.Random] = None,
        store_alert_threshold: int = STORE_ALERT_THRESHOLD,
    ):
        self._store = store
        self._holder_source = holder_source
        self._treasury = treasury
        self._notifier = notifier
        self._blacklist = {blacklist_filter.normalize(a) for a in blacklist or ()}
        self._calculator = prize_calculator or PrizeCalculator()
        self._rng = rng
        self._store_alert_threshold = store_alert_threshold

        self.ledger = ProgressLedger(store)
        self.recorder = OutcomeRecorder(store)
        self.phase = DistributionPhase.load(store, bootstrap_limit)

        self._lock = threading.Lock()
        self._store_failures = 0
        # Sent but not yet recorded; settled first thing next cycle
        self._unrecorded: Optional[PayoutEvent] = None

        logger.info(
            "Distribution phase: %s (%d/%d seeded)",
            self.phase.mode.value,
            self.phase.bootstrap_issued,
            self.phase.bootstrap_limit,
        )

    def run_cycle(self) -> CycleReport:
        if not self._lock.acquire(blocking=False):
            logger.warning("Previous cycle still running, skipping this tick.")
            return CycleReport(CycleStatus.SKIPPED)
        try:
            report = self._run()
        except StoreUnavailable as e:
            self._on_store_failure(e)
            return CycleReport(CycleStatus.ABORTED, phase=self.phase.mode, error=str(e))
        except ExternalServiceError as e:
            logger.error("Cycle aborted: %s", e)
            return CycleReport(CycleStatus.ABORTED, phase=self.phase.mode, error=str(e))
        except InvalidAddress as e:
            # Filtering runs before increment, so this is a bug
            logger.exception("Blacklisted address reached the ledger")
            return CycleReport(CycleStatus.ABORTED, phase=self.phase.mode, error=str(e))
        finally:
            self._lock.release()

        self._store_failures = 0
        return report

    def flag_blacklisted(self) -> int:
        """Mark stored records of blacklisted addresses; nothing is deleted."""
        with self._store.transaction():
            flagged = self.ledger.flag_blacklisted(self._blacklist)
            flagged += self.recorder.flag_blacklisted(self._blacklist)
        return flagged

    # -----------------------------------------------------
    # Phases
    # -----------------------------------------------------
    def _run(self) -> CycleReport:
        logger.info("Starting distribution process...")
        snapshot = self._holder_source.fetch_holders()
        leftover = self._unrecorded

        due: Optional[PayoutEvent] = None
        with self._store.transaction():
            if leftover is not None:
                logger.info("Recording payout to %s from the previous cycle", leftover.winner)
                self._settle(leftover)
            self.flag_blacklisted()
            excluded = self._blacklist | self.ledger.blacklisted_addresses()
            holders = blacklist_filter.apply(snapshot, excluded)
            logger.info(
                "Snapshot: %d holder(s), %d after blacklist", len(snapshot), len(holders)
            )

            if self.phase.mode is PhaseMode.BOOTSTRAP:
                report = self._bootstrap(holders)
            else:
                report, due = self._regular(holders)
        self._unrecorded = None

        if leftover is not None:
            self._safe_notify(_announcement(leftover))

        if report.status is CycleStatus.BOOTSTRAP:
            self.phase = DistributionPhase(
                bootstrap_issued=self.phase.bootstrap_issued + len(report.seeded),
                bootstrap_limit=self.phase.bootstrap_limit,
            )
            if self.phase.mode is PhaseMode.REGULAR:
                logger.info("Initial distribution complete, switching to regular draws.")
            return report

        if due is not None:
            report = self._pay_out(due.winner, due.percentage)
        if report.winner is not None:
            self._safe_notify(
                Announcement(
                    stage=report.count,
                    address=report.winner,
                    percentage=report.percentage,
                    tx_ref=report.tx_ref,
                )
            )
        return report

    def _bootstrap(self, holders: List[Holder]) -> CycleReport:
        logger.info("Initial distribution...")
        if not holders:
            logger.info("No token holders found, skipping initial distribution.")
            return CycleReport(CycleStatus.NO_HOLDERS, phase=PhaseMode.BOOTSTRAP)

        seeded: List[str] = []
        for holder in draw.ordered(holders):
            if len(seeded) >= self.phase.remaining:
                break
            if holder.stake <= 0:
                continue
            count = self.ledger.increment(holder.address)
            seeded.append(holder.address)
            logger.info("Initial distribution: awarded 1 crystal ball to %s", holder.address)
            if count >= BALLS_FOR_PRIZE:
                logger.info("%s holds %d crystal balls, prize due on next selection", holder.address, count)

        DistributionPhase(
            bootstrap_issued=self.phase.bootstrap_issued + len(seeded),
            bootstrap_limit=self.phase.bootstrap_limit,
        ).persist(self._store)

        return CycleReport(CycleStatus.BOOTSTRAP, phase=PhaseMode.BOOTSTRAP, seeded=seeded)

    def _regular(
        self, holders: List[Holder]
    ) -> Tuple[CycleReport, Optional[PayoutEvent]]:
        logger.info("Regular distribution...")
        winner = draw.select(holders, self._rng)
        if winner is None:
            logger.info("No winner selected, skipping distribution.")
            return CycleReport(CycleStatus.NO_WINNER, phase=PhaseMode.REGULAR), None

        count = self.ledger.increment(winner)
        if count < BALLS_FOR_PRIZE:
            logger.info("Announcing %d crystal ball(s) for %s", count, winner)
            report = CycleReport(
                CycleStatus.PROGRESS, phase=PhaseMode.REGULAR, winner=winner, count=count
            )
            return report, None

        pending = self.ledger.pending(winner)
        if pending is not None:
            # Transfer may already be out; settle without sending again
            logger.warning(
                "Payout of %s%% to %s was interrupted, recording it without a new transfer",
                pending,
                winner,
            )
            result = self._settle(PayoutEvent(winner, pending))
            report = CycleReport(
                CycleStatus.PAYOUT,
                phase=PhaseMode.REGULAR,
                winner=winner,
                count=count,
                percentage=pending,
                inserted=result.inserted,
            )
            return report, None

        logger.info("Distributing prize to %s who has collected %d crystal balls.", winner, count)
        percentage = self._calculator.draw_percentage()
        self.ledger.mark_pending(winner, percentage)
        return CycleReport(CycleStatus.PAYOUT, phase=PhaseMode.REGULAR), PayoutEvent(
            winner, percentage
        )

    # -----------------------------------------------------
    # Payout
    # -----------------------------------------------------
    def _pay_out(self, winner: str, percentage: Decimal) -> CycleReport:
        """Send the prize, then record it and reset the winner in a second transaction."""
        net_amount: Optional[int] = None
        tx_ref: Optional[str] = None
        try:
            prize = self._calculator.compute(
                self._treasury.get_balance(),
                self._treasury.estimate_gas_cost(),
                percentage=percentage,
            )
            net_amount = prize.net_amount
            tx_ref = self._send(winner, net_amount)
            logger.info("Prize transaction successful with hash: %s", tx_ref)
        except InsufficientFunds as e:
            logger.warning("Insufficient balance to pay %s: %s", winner, e)
            if e.treasury_balance <= 0:
                self._safe_alert(
                    "Announcement: Insufficient funds for prize distribution. "
                    "Balance is zero!"
                )
        except SendFailed as e:
            logger.warning("Prize transaction failed or was not sent: %s", e)
        except ExternalServiceError as e:
            logger.warning("Treasury lookup failed, prize not sent: %s", e)

        # Recorded and reset whatever happened to the transfer
        event = PayoutEvent(winner, percentage, tx_ref)
        self._unrecorded = event
        with self._store.transaction():
            result = self._settle(event)
        self._unrecorded = None

        return CycleReport(
            CycleStatus.PAYOUT,
            phase=PhaseMode.REGULAR,
            winner=winner,
            count=BALLS_FOR_PRIZE,
            percentage=percentage,
            net_amount=net_amount,
            tx_ref=tx_ref,
            inserted=result.inserted,
        )

    def _settle(self, event: PayoutEvent) -> RecordResult:
        result = self.recorder.record(event)
        self.ledger.reset(event.winner)
        return result


    def _send(self, winner: str, amount: int) -> str:
        try:
            tx_ref = self._treasury.send(winner, amount)
        except ExternalServiceError as e:
            raise SendFailed(str(e)) from e
        if tx_ref is None:
            raise SendFailed(f"Transaction to {winner} was not confirmed")
        return tx_ref

    # -----------------------------------------------------
    # Notifications and alerts
    # -----------------------------------------------------
    def _safe_notify(self, announcement: Announcement) -> None:
        try:
            self._notifier.notify(announcement)
        except ExternalServiceError as e:
            logger.warning("Announcement for %s failed: %s", announcement.address, e)

    def _safe_alert(self, text: str) -> None:
        try:
            self._notifier.alert(text)
        except ExternalServiceError as e:
            logger.warning("Alert failed: %s", e)

    def _on_store_failure(self, error: StoreUnavailable) -> None:
        self._store_failures += 1
        logger.error(
            "Store unavailable (%d consecutive cycle(s)): %s", self._store_failures, error
        )
        if self._store_failures == self._store_alert_threshold:
            self._safe_alert(
                f"Store unavailable for {self._store_failures} consecutive cycles: {error}"
            )


def _announcement(event: PayoutEvent) -> Announcement:
    return Announcement(
        stage=BALLS_FOR_PRIZE,
        address=event.winner,
        percentage=event.percentage,
        tx_ref=event.tx_ref,
    )
