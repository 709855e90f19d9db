"""Tests for the HTTP collaborators against httpx.MockTransport."""

import json
from decimal import Decimal

import httpx
import pytest

from crystal_ball.errors import HolderSourceError, NotificationError, RpcError
from crystal_ball.holders import PAGE_SIZE, CovalentHolderSource, aggregate_holders
from crystal_ball.models import Announcement, Holder
from crystal_ball.notify import TelegramNotifier, announcement_text
from crystal_ball.rpc import RpcClient
from crystal_ball.wallet import RpcTreasury
from conftest import ADDR_B

# Well-known throwaway key from the eth-account documentation
TEST_KEY = "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"
SENDER = "0x" + "1" * 40


def mock_client(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


class TestCovalentHolderSource:
    def test_pages_until_short_page(self):
        pages = {
            0: [{"address": f"0x{i:040x}", "balance": str(i)} for i in range(PAGE_SIZE)],
            1: [
                {"address": f"0x{5:040x}".upper(), "balance": "10"},
                {"address": "0x" + "f" * 40, "balance": "7"},
            ],
        }
        requested = []

        def handler(request: httpx.Request) -> httpx.Response:
            page = int(request.url.params["page-number"])
            requested.append(page)
            assert request.url.params["key"] == "secret"
            return httpx.Response(200, json={"data": {"items": pages[page]}})

        source = CovalentHolderSource("secret", client=mock_client(handler))
        holders = source.fetch_holders()

        assert requested == [0, 1]
        assert len(holders) == PAGE_SIZE  # zero balance dropped, one new address
        assert Holder(f"0x{5:040x}", 15) in holders
        assert [h.address for h in holders] == sorted(h.address for h in holders)

    def test_http_error(self):
        source = CovalentHolderSource(
            "secret", client=mock_client(lambda r: httpx.Response(500))
        )
        with pytest.raises(HolderSourceError):
            source.fetch_holders()

    def test_bad_payload(self):
        source = CovalentHolderSource(
            "secret", client=mock_client(lambda r: httpx.Response(200, json={"data": None}))
        )
        with pytest.raises(HolderSourceError):
            source.fetch_holders()

    def test_empty_snapshot(self):
        source = CovalentHolderSource(
            "secret",
            client=mock_client(lambda r: httpx.Response(200, json={"data": {"items": []}})),
        )
        assert source.fetch_holders() == []


def test_aggregate_skips_unparsable_rows():
    items = [{"address": "0xAA", "balance": "x"}, {"balance": "5"}, {"address": "0xbb", "balance": "3"}]
    assert aggregate_holders(items) == [Holder("0xbb", 3)]


def rpc_handler(results, calls=None):
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        if calls is not None:
            calls.append(body["method"])
        result = results[body["method"]]
        if isinstance(result, dict) and "error" in result:
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], **result})
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": result})

    return handler


class TestRpcClient:
    def test_quantities_are_decoded(self):
        rpc = RpcClient(
            "http://rpc",
            client=mock_client(rpc_handler({"eth_getBalance": "0x3e8", "eth_gasPrice": "0x5"})),
        )
        assert rpc.get_balance(SENDER) == 1000
        assert rpc.get_gas_price() == 5

    def test_rpc_error(self):
        rpc = RpcClient(
            "http://rpc",
            client=mock_client(rpc_handler({"eth_gasPrice": {"error": {"code": -32000}}})),
        )
        with pytest.raises(RpcError):
            rpc.get_gas_price()

    def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        rpc = RpcClient("http://rpc", client=mock_client(handler))
        with pytest.raises(RpcError):
            rpc.get_balance(SENDER)


class TestRpcTreasury:
    def make(self, results, calls=None, **kwargs):
        rpc = RpcClient("http://rpc", client=mock_client(rpc_handler(results, calls)))
        return RpcTreasury(rpc, SENDER, TEST_KEY, receipt_timeout_s=0, **kwargs)

    def results(self, **overrides):
        base = {
            "eth_getBalance": "0x2710",
            "eth_gasPrice": "0x3",
            "eth_getTransactionCount": "0x7",
            "eth_sendRawTransaction": "0xabc",
            "eth_getTransactionReceipt": {"status": "0x1"},
        }
        base.update(overrides)
        return base

    def test_gas_cost_is_limit_times_price(self):
        assert self.make(self.results()).estimate_gas_cost() == 21000 * 3

    def test_balance(self):
        assert self.make(self.results()).get_balance() == 10000

    def test_successful_send_returns_hash(self):
        calls = []
        treasury = self.make(self.results(), calls)

        assert treasury.send(ADDR_B, 500) == "0xabc"
        assert "eth_sendRawTransaction" in calls

    def test_reverted_send(self):
        treasury = self.make(self.results(eth_getTransactionReceipt={"status": "0x0"}))
        assert treasury.send(ADDR_B, 500) is None

    def test_missing_receipt_times_out(self):
        treasury = self.make(self.results(eth_getTransactionReceipt=None))
        assert treasury.send(ADDR_B, 500) is None

    def test_broadcast_error(self):
        treasury = self.make(
            self.results(eth_sendRawTransaction={"error": {"message": "nonce too low"}})
        )
        assert treasury.send(ADDR_B, 500) is None

    def test_without_key_nothing_is_sent(self):
        calls = []
        rpc = RpcClient("http://rpc", client=mock_client(rpc_handler(self.results(), calls)))
        treasury = RpcTreasury(rpc, SENDER)

        assert treasury.send(ADDR_B, 500) is None
        assert calls == []


class TestTelegramNotifier:
    def test_stage_announcement_sends_photo(self):
        sent = []

        def handler(request: httpx.Request) -> httpx.Response:
            sent.append((request.url.path, json.loads(request.content)))
            return httpx.Response(200, json={"ok": True, "result": {}})

        notifier = TelegramNotifier("TOKEN", "-100", client=mock_client(handler))
        notifier.notify(Announcement(stage=2, address=ADDR_B))

        path, payload = sent[0]
        assert path == "/botTOKEN/sendPhoto"
        assert payload["chat_id"] == "-100"
        assert "2 crystal balls" in payload["caption"]

    def test_alert_sends_message(self):
        sent = []

        def handler(request):
            sent.append(request.url.path)
            return httpx.Response(200, json={"ok": True})

        TelegramNotifier("TOKEN", "-100", client=mock_client(handler)).alert("hello")
        assert sent == ["/botTOKEN/sendMessage"]

    def test_rejected_message(self):
        notifier = TelegramNotifier(
            "TOKEN",
            "-100",
            client=mock_client(lambda r: httpx.Response(200, json={"ok": False, "description": "chat not found"})),
        )
        with pytest.raises(NotificationError):
            notifier.alert("hello")


class TestAnnouncementText:
    def test_first_ball(self):
        text = announcement_text(Announcement(stage=1, address=ADDR_B))
        assert text == "Congratulations 0xbbb...bbb!\nYou are now holding 1 crystal ball!"

    def test_prize_with_transaction(self):
        text = announcement_text(
            Announcement(stage=3, address=ADDR_B, percentage=Decimal("42.5"), tx_ref="0xabc")
        )
        assert "42.50% of the prize" in text
        assert "Transaction ID: 0xabc" in text

    def test_prize_without_transaction(self):
        text = announcement_text(Announcement(stage=3, address=ADDR_B, percentage=Decimal("42.5")))
        assert "issue with the transaction" in text

    def test_invalid_stage(self):
        with pytest.raises(ValueError):
            announcement_text(Announcement(stage=4, address=ADDR_B))
