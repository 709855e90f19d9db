from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from .cycle import CycleReport, DistributionCycle

logger = logging.getLogger(__name__)


class Scheduler:
    """Runs one distribution cycle per interval in the foreground."""

    def __init__(
        self,
        cycle: DistributionCycle,
        interval_s: float,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.cycle = cycle
        self.interval_s = interval_s
        self._clock = clock
        self._sleep = sleep
        self.next_run_at = clock() + interval_s

    def seconds_until_next(self) -> float:
        return max(self.next_run_at - self._clock(), 0.0)

    def tick(self) -> Optional[CycleReport]:
        logger.info("Scheduled crystal ball distribution task triggered.")
        self.next_run_at = self._clock() + self.interval_s
        try:
            return self.cycle.run_cycle()
        except Exception:
            # Next tick retries from committed state
            logger.exception("Unexpected error in distribution cycle")
            return None

    def run_forever(self, max_ticks: Optional[int] = None) -> int:
        ticks = 0
        try:
            while max_ticks is None or ticks < max_ticks:
                self._sleep(self.seconds_until_next())
                self.tick()
                ticks += 1
        except KeyboardInterrupt:
            logger.info("Shutting down...")
        return ticks
