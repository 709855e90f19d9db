from __future__ import annotations

import logging
import random
from bisect import bisect_right
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, List, Optional, Tuple

from .models import Holder
from .project_constants import NATIVE_DECIMALS

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HolderRange:
    address: str
    stake: int
    start_ticket: int
    end_ticket: int  # exclusive


def to_ether(raw_amount: int) -> Decimal:
    return Decimal(raw_amount) / (Decimal(10) ** NATIVE_DECIMALS)


def ordered(holders: Iterable[Holder]) -> List[Holder]:
    # Deterministic ordering (critical for reproducibility)
    return sorted(holders, key=lambda h: h.address)


def build_ranges(holders: Iterable[Holder]) -> Tuple[List[HolderRange], int]:
    ranges: List[HolderRange] = []
    cursor = 0
    for holder in holders:
        if holder.stake < 0:
            raise ValueError(f"Negative stake for {holder.address}: {holder.stake}")
        start = cursor
        end = cursor + holder.stake
        ranges.append(HolderRange(holder.address, holder.stake, start, end))
        cursor = end
    return ranges, cursor


def pick(ranges: List[HolderRange], ticket: int) -> HolderRange:
    """
    Return the first range whose cumulative end is strictly above ticket.

    Zero-stake ranges have start == end and are never returned.
    """
    ends = [r.end_ticket for r in ranges]
    idx = bisect_right(ends, ticket)
    if ticket < 0 or idx >= len(ranges):
        raise RuntimeError("Ticket out of range (unexpected).")
    return ranges[idx]


def select(
    holders: Iterable[Holder],
    rng: Optional[random.Random] = None,
) -> Optional[str]:
    """Draw one address with probability proportional to its stake."""
    ranges, total_tickets = build_ranges(ordered(holders))
    if total_tickets <= 0:
        logger.info("No valid tickets available.")
        return None

    ticket = (rng or random.SystemRandom()).randrange(total_tickets)
    winner = pick(ranges, ticket)
    logger.info(
        "Winner selected: %s (ticket %d of %d, cumulative %d)",
        winner.address,
        ticket,
        total_tickets,
        winner.end_ticket,
    )
    return winner.address
