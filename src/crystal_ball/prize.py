"""Payout sizing: a random share of the treasury, minus the transfer fee."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from .errors import InsufficientFunds
from .project_constants import MIN_PRIZE_PERCENT

logger = logging.getLogger(__name__)

# Percentages carry two decimals; 1 basis point here is 0.01%
BP_PER_PERCENT = 100
FULL_BP = 100 * BP_PER_PERCENT


@dataclass(frozen=True)
class PrizeResult:
    percentage: Decimal
    gross_amount: int
    net_amount: int


def to_basis_points(percentage: Decimal) -> int:
    return int((Decimal(percentage) * BP_PER_PERCENT).to_integral_value())


def from_basis_points(bp: int) -> Decimal:
    return (Decimal(bp) / BP_PER_PERCENT).quantize(Decimal("0.01"))


class PrizeCalculator:
    """
    Compute how much of the treasury a winner receives.

    The percentage is an integer basis-point draw in [min_percentage, 100),
    so the share sent and the share recorded are the same number.
    """

    def __init__(
        self,
        min_percentage: int = MIN_PRIZE_PERCENT,
        rng: Optional[random.Random] = None,
    ):
        if not 0 < min_percentage < 100:
            raise ValueError(f"min_percentage must be in (0, 100), got {min_percentage}")
        self._min_bp = min_percentage * BP_PER_PERCENT
        self._rng = rng or random.SystemRandom()

    def draw_percentage(self) -> Decimal:
        return from_basis_points(self._rng.randrange(self._min_bp, FULL_BP))

    def compute(
        self,
        treasury_balance: int,
        gas_cost: int,
        percentage: Optional[Decimal] = None,
    ) -> PrizeResult:
        if percentage is None:
            percentage = self.draw_percentage()
        percentage = from_basis_points(to_basis_points(percentage))

        gross = treasury_balance * to_basis_points(percentage) // FULL_BP
        net = gross - gas_cost
        logger.info(
            "Prize: %s%% of %d = %d, gas %d, net %d",
            percentage,
            treasury_balance,
            gross,
            gas_cost,
            net,
        )
        if treasury_balance <= 0 or net <= 0:
            raise InsufficientFunds(percentage, treasury_balance, net)
        return PrizeResult(percentage=percentage, gross_amount=gross, net_amount=net)
