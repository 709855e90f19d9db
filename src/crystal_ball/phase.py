from __future__ import annotations

from dataclasses import dataclass

from .models import PhaseMode
from .project_constants import BOOTSTRAP_LIMIT
from .store import SQLiteStore

BOOTSTRAP_ISSUED_KEY = "initialDistributionCount"


@dataclass
class DistributionPhase:
    """Process-wide bootstrap progress, persisted in the settings table."""

    bootstrap_issued: int = 0
    bootstrap_limit: int = BOOTSTRAP_LIMIT

    @property
    def mode(self) -> PhaseMode:
        if self.bootstrap_issued >= self.bootstrap_limit:
            return PhaseMode.REGULAR
        return PhaseMode.BOOTSTRAP

    @property
    def remaining(self) -> int:
        return max(self.bootstrap_limit - self.bootstrap_issued, 0)

    def advance(self, issued: int) -> None:
        self.bootstrap_issued += issued

    @classmethod
    def load(cls, store: SQLiteStore, bootstrap_limit: int = BOOTSTRAP_LIMIT) -> "DistributionPhase":
        raw = store.get_setting(BOOTSTRAP_ISSUED_KEY, "0")
        return cls(bootstrap_issued=int(raw or 0), bootstrap_limit=bootstrap_limit)

    def persist(self, store: SQLiteStore) -> None:
        store.set_setting(BOOTSTRAP_ISSUED_KEY, str(self.bootstrap_issued))
