"""Tests for the read-only CLI commands."""

from decimal import Decimal

import pytest

from crystal_ball import cli
from crystal_ball.history import OutcomeRecorder
from crystal_ball.ledger import ProgressLedger
from crystal_ball.models import PayoutEvent
from crystal_ball.store import SQLiteStore
from conftest import ADDR_A, ADDR_B


@pytest.fixture
def db_path(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("BLACKLISTED_ADDRESSES", raising=False)
    path = str(tmp_path / "lottery.db")
    store = SQLiteStore(path)
    ledger = ProgressLedger(store)
    ledger.increment(ADDR_A)
    ledger.increment(ADDR_B)
    ledger.increment(ADDR_B)
    OutcomeRecorder(store).record(PayoutEvent(ADDR_B, Decimal("61.5"), "0x1"))
    store.close()
    return path


def run(argv):
    args = cli.build_parser().parse_args(argv)
    return args.func(args)


class TestParser:
    def test_subcommand_required(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args([])

    def test_global_flags(self):
        args = cli.build_parser().parse_args(["--db", "x.db", "--timeout", "5", "balls", "--top", "3"])
        assert (args.db, args.timeout, args.top) == ("x.db", 5.0, 3)


class TestReadCommands:
    def test_balls(self, db_path, capsys):
        assert run(["--db", db_path, "balls"]) == 0
        out = capsys.readouterr().out.splitlines()

        assert out[0] == "🔮 Top 15 Crystal Ball Counts 🔮"
        assert out[2] == "🥇 0xbbb...bbb - 🔮🔮"
        assert out[3] == "🥈 0xaaa...aaa - 🔮"

    def test_winners(self, db_path, capsys):
        assert run(["--db", db_path, "winners"]) == 0
        out = capsys.readouterr().out

        assert "🥇 0xbbb...bbb - 61.50%" in out

    def test_winners_empty(self, tmp_path, monkeypatch, capsys):
        monkeypatch.chdir(tmp_path)
        assert run(["--db", str(tmp_path / "empty.db"), "winners"]) == 0
        assert "No winners recorded yet." in capsys.readouterr().out

    def test_check(self, db_path, capsys):
        assert run(["--db", db_path, "check", ADDR_B.upper()]) == 0
        out = capsys.readouterr().out

        assert "0xbbb...bbb - 🔮🔮" in out
        assert "Prizes won    : 1" in out

    def test_blacklist(self, db_path, capsys, monkeypatch):
        monkeypatch.setenv("BLACKLISTED_ADDRESSES", ADDR_B)
        assert run(["--db", db_path, "blacklist"]) == 0
        assert "Records flagged      : 2" in capsys.readouterr().out

        store = SQLiteStore(db_path)
        assert [r.address for r in ProgressLedger(store).top(10)] == [ADDR_A]
        store.close()
