"""Exceptions for the distribution cycle and its collaborators."""

from __future__ import annotations

from decimal import Decimal


class LotteryError(Exception):
    """Base exception for distribution errors."""

    pass


class NoEligibleTickets(LotteryError):
    """Raised when the snapshot carries no positive stake."""

    pass


class InvalidAddress(LotteryError):
    """Raised when a blacklisted address reaches the progress ledger."""

    def __init__(self, address: str):
        super().__init__(f"Address is blacklisted: {address}")
        self.address = address


class InsufficientFunds(LotteryError):
    """Raised when the treasury cannot cover a payout after fees."""

    def __init__(
        self,
        percentage: Decimal,
        treasury_balance: int,
        net_amount: int,
    ):
        super().__init__(
            f"Insufficient funds: balance={treasury_balance} net={net_amount} "
            f"percentage={percentage}"
        )
        self.percentage = percentage
        self.treasury_balance = treasury_balance
        self.net_amount = net_amount


class SendFailed(LotteryError):
    """Raised when a payout transaction was not confirmed."""

    pass


class DuplicateOutcome(LotteryError):
    """Raised by the store when a (winner, percentage) pair already exists."""

    pass


class StoreUnavailable(LotteryError):
    """Raised when the persistent store cannot be read or written."""

    pass


class ExternalServiceError(LotteryError):
    """Base exception for failures of remote collaborators."""

    pass


class HolderSourceError(ExternalServiceError):
    """Raised when the holder snapshot cannot be fetched."""

    pass


class RpcError(ExternalServiceError):
    """Raised on JSON-RPC transport or protocol errors."""

    pass


class NotificationError(ExternalServiceError):
    """Raised when an announcement cannot be delivered."""

    pass
