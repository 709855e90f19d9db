from __future__ import annotations

import enum
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional


@dataclass(frozen=True)
class Holder:
    address: str
    stake: int


@dataclass(frozen=True)
class ProgressRecord:
    address: str
    count: int
    blacklisted: bool = False
    pending_bp: Optional[int] = None


@dataclass(frozen=True)
class PayoutEvent:
    winner: str
    percentage: Decimal
    tx_ref: Optional[str] = None


@dataclass(frozen=True)
class RecordResult:
    inserted: bool


@dataclass(frozen=True)
class Announcement:
    """One notification per selection; stage is the winner's ball count."""

    stage: int
    address: str
    percentage: Optional[Decimal] = None
    tx_ref: Optional[str] = None


class PhaseMode(str, enum.Enum):
    BOOTSTRAP = "bootstrap"
    REGULAR = "regular"
