"""Treasury account: balance, fee estimate and signed payouts over JSON-RPC."""

from __future__ import annotations

import logging
import time
from typing import Optional

from eth_account import Account
from eth_utils import to_checksum_address

from .errors import RpcError
from .project_constants import CHAIN_ID, GAS_LIMIT
from .rpc import RpcClient

logger = logging.getLogger(__name__)


class RpcTreasury:
    """
    Pays winners from a single externally owned account.

    `send` signs a legacy value transfer locally with eth-account, broadcasts
    it and waits for the receipt. It returns the transaction hash only for a
    successful receipt; reverts, timeouts and RPC errors return None.
    """

    def __init__(
        self,
        rpc: RpcClient,
        sender_address: str,
        private_key: Optional[str] = None,
        chain_id: int = CHAIN_ID,
        gas_limit: int = GAS_LIMIT,
        receipt_timeout_s: float = 120.0,
        poll_interval_s: float = 3.0,
    ) -> None:
        self.rpc = rpc
        self.sender_address = to_checksum_address(sender_address)
        self._private_key = private_key
        self.chain_id = chain_id
        self.gas_limit = gas_limit
        self.receipt_timeout_s = receipt_timeout_s
        self.poll_interval_s = poll_interval_s

    def get_balance(self) -> int:
        return self.rpc.get_balance(self.sender_address)

    def estimate_gas_cost(self) -> int:
        gas_price = self.rpc.get_gas_price()
        logger.debug("Gas estimate: %d, gas price: %d", self.gas_limit, gas_price)
        return self.gas_limit * gas_price

    def send(self, to: str, amount: int) -> Optional[str]:
        if not self._private_key:
            logger.error("PRIVATE_KEY is not configured; cannot send prize.")
            return None
        if amount <= 0:
            return None

        try:
            recipient = to_checksum_address(to)
            tx = {
                "to": recipient,
                "value": amount,
                "gas": self.gas_limit,
                "gasPrice": self.rpc.get_gas_price(),
                "nonce": self.rpc.get_transaction_count(self.sender_address),
                "chainId": self.chain_id,
            }
            logger.info("Sending %d wei to %s", amount, recipient)
            signed = Account.sign_transaction(tx, self._private_key)
            tx_hash = self.rpc.send_raw_transaction(bytes(signed.raw_transaction))
        except (RpcError, ValueError, TypeError) as e:
            logger.error("Error sending transaction: %s", e)
            return None

        return self._wait_for_receipt(tx_hash)

    def _wait_for_receipt(self, tx_hash: str) -> Optional[str]:
        deadline = time.monotonic() + self.receipt_timeout_s
        while True:
            try:
                receipt = self.rpc.get_transaction_receipt(tx_hash)
            except RpcError as e:
                logger.warning("Receipt lookup for %s failed: %s", tx_hash, e)
                receipt = None

            if receipt is not None:
                if int(receipt.get("status", "0x0"), 16) == 1:
                    return tx_hash
                logger.error("Transaction %s reverted", tx_hash)
                return None

            if time.monotonic() >= deadline:
                logger.error("No receipt for %s after %.0fs", tx_hash, self.receipt_timeout_s)
                return None
            time.sleep(self.poll_interval_s)
