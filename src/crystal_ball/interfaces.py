from __future__ import annotations

from typing import List, Optional, Protocol

from .models import Announcement, Holder


class HolderSource(Protocol):
    def fetch_holders(self) -> List[Holder]: ...


class Treasury(Protocol):
    def get_balance(self) -> int: ...

    def estimate_gas_cost(self) -> int: ...

    def send(self, to: str, amount: int) -> Optional[str]:  # tx hash or None
        ...


class Notifier(Protocol):
    def notify(self, announcement: Announcement) -> None: ...

    def alert(self, text: str) -> None: ...
