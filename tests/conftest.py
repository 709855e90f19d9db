"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import random
from typing import List, Optional

import pytest

from crystal_ball.errors import NotificationError, RpcError
from crystal_ball.models import Announcement, Holder
from crystal_ball.store import SQLiteStore

ADDR_A = "0x" + "a" * 40
ADDR_B = "0x" + "b" * 40
ADDR_C = "0x" + "c" * 40


class FixedRandom(random.Random):
    """Random source whose randrange returns preset values in order."""

    def __init__(self, *values: int):
        super().__init__(0)
        self._values = list(values)
        self.calls = []

    def randrange(self, start, stop=None, step=1):
        self.calls.append((start, stop))
        if len(self._values) > 1:
            return self._values.pop(0)
        return self._values[0]


class FakeHolderSource:
    def __init__(self, holders: List[Holder]):
        self.holders = holders
        self.calls = 0

    def fetch_holders(self) -> List[Holder]:
        self.calls += 1
        return list(self.holders)


class FakeTreasury:
    def __init__(
        self,
        balance: int = 1000,
        gas_cost: int = 50,
        tx_ref: Optional[str] = "0xtx",
        send_error: Optional[Exception] = None,
        balance_error: Optional[Exception] = None,
    ):
        self.balance = balance
        self.gas_cost = gas_cost
        self.tx_ref = tx_ref
        self.send_error = send_error
        self.balance_error = balance_error
        self.sent = []

    def get_balance(self) -> int:
        if self.balance_error:
            raise self.balance_error
        return self.balance

    def estimate_gas_cost(self) -> int:
        return self.gas_cost

    def send(self, to: str, amount: int) -> Optional[str]:
        self.sent.append((to, amount))
        if self.send_error:
            raise self.send_error
        return self.tx_ref


class RecordingNotifier:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.announcements: List[Announcement] = []
        self.alerts: List[str] = []

    def notify(self, announcement: Announcement) -> None:
        if self.fail:
            raise NotificationError("chat unreachable")
        self.announcements.append(announcement)

    def alert(self, text: str) -> None:
        if self.fail:
            raise NotificationError("chat unreachable")
        self.alerts.append(text)


@pytest.fixture
def store():
    s = SQLiteStore(":memory:")
    yield s
    s.close()


@pytest.fixture
def holders() -> List[Holder]:
    return [Holder(ADDR_A, 100), Holder(ADDR_B, 300), Holder(ADDR_C, 0)]


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def rpc_down() -> RpcError:
    return RpcError("connection refused")
