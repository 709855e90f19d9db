from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx

from .errors import RpcError


class RpcClient:
    """Minimal EVM JSON-RPC client for the treasury account."""

    def __init__(
        self,
        rpc_url: str,
        timeout_s: float = 60.0,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self.rpc_url = rpc_url
        self.client = client or httpx.Client(timeout=timeout_s)
        self._next_id = 1

    def close(self) -> None:
        self.client.close()

    def get_balance(self, address: str, block: str = "latest") -> int:
        """Returns the native balance in wei."""
        return _hex_to_int(self._call("eth_getBalance", [address, block]))

    def get_gas_price(self) -> int:
        return _hex_to_int(self._call("eth_gasPrice", []))

    def get_transaction_count(self, address: str, block: str = "pending") -> int:
        return _hex_to_int(self._call("eth_getTransactionCount", [address, block]))

    def send_raw_transaction(self, raw_tx: bytes) -> str:
        """Broadcasts a signed transaction and returns its hash."""
        return self._call("eth_sendRawTransaction", ["0x" + raw_tx.hex()])

    def get_transaction_receipt(self, tx_hash: str) -> Optional[Dict[str, Any]]:
        """Returns None while the transaction is still pending."""
        return self._call("eth_getTransactionReceipt", [tx_hash])

    def _call(self, method: str, params: List[Any]) -> Any:
        payload = {
            "jsonrpc": "2.0",
            "id": self._next_id,
            "method": method,
            "params": params,
        }
        self._next_id += 1
        data = self._post(payload)
        return data.get("result")

    def _post(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        try:
            resp = self.client.post(self.rpc_url, json=payload)
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise RpcError(f"{payload['method']} failed: {e}") from e
        if "error" in data:
            raise RpcError(f"RPC error: {data['error']}")
        return data


def _hex_to_int(value: Any) -> int:
    if not isinstance(value, str):
        raise RpcError(f"Expected hex quantity, got {value!r}")
    return int(value, 16)
