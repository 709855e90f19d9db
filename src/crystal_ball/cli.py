from __future__ import annotations

import argparse
import logging

from .config import Settings
from .cycle import DistributionCycle
from .draw import to_ether
from .history import OutcomeRecorder
from .holders import CovalentHolderSource
from .ledger import ProgressLedger
from .notify import (
    BALL,
    LogNotifier,
    TelegramNotifier,
    format_balls,
    format_winners,
    shorten_address,
)
from .prize import PrizeCalculator
from .project_constants import LEADERBOARD_SIZE
from .rpc import RpcClient
from .scheduler import Scheduler
from .store import SQLiteStore
from .wallet import RpcTreasury


def setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def load_settings(args: argparse.Namespace) -> Settings:
    return Settings.from_env(rpc_url_override=args.rpc_url, database_override=args.db)


def build_cycle(settings: Settings, args: argparse.Namespace) -> DistributionCycle:
    settings.require("rpc_url", "covalent_api_key", "sender_address")
    log = logging.getLogger("cycle")

    if settings.bot_token and settings.announcement_chat_id:
        notifier = TelegramNotifier(settings.bot_token, settings.announcement_chat_id)
    else:
        log.warning("BOT_TOKEN / ANNOUNCEMENT_CHAT_ID not set; announcements go to the log.")
        notifier = LogNotifier()

    rpc = RpcClient(settings.rpc_url, timeout_s=args.timeout)
    return DistributionCycle(
        store=SQLiteStore(settings.database_path),
        holder_source=CovalentHolderSource(settings.covalent_api_key, timeout_s=args.timeout),
        treasury=RpcTreasury(rpc, settings.sender_address, settings.private_key),
        notifier=notifier,
        blacklist=set(settings.blacklist),
        prize_calculator=PrizeCalculator(min_percentage=settings.min_prize_percent),
        bootstrap_limit=settings.bootstrap_limit,
    )


def cmd_run(args: argparse.Namespace) -> int:
    settings = load_settings(args)
    cycle = build_cycle(settings, args)
    cycle.flag_blacklisted()
    scheduler = Scheduler(cycle, interval_s=settings.interval_minutes * 60)
    logging.getLogger("run").info(
        "Distributing every %d minutes; first tick in %.0fs",
        settings.interval_minutes,
        scheduler.seconds_until_next(),
    )
    scheduler.run_forever()
    return 0


def cmd_cycle(args: argparse.Namespace) -> int:
    settings = load_settings(args)
    report = build_cycle(settings, args).run_cycle()

    print("========================================")
    print("🔮 CRYSTAL BALL DISTRIBUTION")
    print("========================================")
    print(f"Status        : {report.status.value}")
    print(f"Phase         : {report.phase.value if report.phase else '-'}")
    if report.seeded:
        print(f"Seeded        : {len(report.seeded)} address(es)")
    if report.winner:
        print(f"Winner        : {report.winner}")
        print(f"Balls         : {BALL * (report.count or 0)}")
    if report.percentage is not None:
        print(f"Percentage    : {report.percentage:.2f}%")
        print(f"Transaction   : {report.tx_ref or '(not sent)'}")
    if report.error:
        print(f"Error         : {report.error}")
    return 0 if report.error is None else 1


def cmd_balls(args: argparse.Namespace) -> int:
    store = SQLiteStore(load_settings(args).database_path)
    try:
        print(format_balls(ProgressLedger(store).top(args.top), args.top))
    finally:
        store.close()
    return 0


def cmd_winners(args: argparse.Namespace) -> int:
    store = SQLiteStore(load_settings(args).database_path)
    try:
        print(format_winners(OutcomeRecorder(store).top(args.top), args.top))
    finally:
        store.close()
    return 0


def cmd_check(args: argparse.Namespace) -> int:
    store = SQLiteStore(load_settings(args).database_path)
    try:
        count = ProgressLedger(store).get(args.address)
        payouts = OutcomeRecorder(store).count_for_address(args.address)
    finally:
        store.close()
    print(f"{shorten_address(args.address.strip().lower())} - {BALL * count}")
    print(f"Prizes won    : {payouts}")
    return 0


def cmd_prize(args: argparse.Namespace) -> int:
    settings = load_settings(args)
    settings.require("rpc_url", "sender_address")
    rpc = RpcClient(settings.rpc_url, timeout_s=args.timeout)
    try:
        balance = RpcTreasury(rpc, settings.sender_address).get_balance()
    finally:
        rpc.close()
    print(f"Current wallet holding: {to_ether(balance)} BNB")
    return 0


def cmd_blacklist(args: argparse.Namespace) -> int:
    settings = load_settings(args)
    store = SQLiteStore(settings.database_path)
    try:
        flagged = ProgressLedger(store).flag_blacklisted(set(settings.blacklist))
        flagged += OutcomeRecorder(store).flag_blacklisted(set(settings.blacklist))
    finally:
        store.close()
    print(f"Blacklisted addresses: {len(settings.blacklist)}")
    print(f"Records flagged      : {flagged}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="crystal-ball",
        description="Crystal ball prize distribution for token holders.",
    )
    p.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    p.add_argument("--rpc-url", default=None, help="Override RPC URL (else use env).")
    p.add_argument("--db", default=None, help="Override SQLite database path.")
    p.add_argument("--timeout", type=float, default=60.0, help="HTTP timeout seconds.")

    sub = p.add_subparsers(dest="cmd", required=True)

    r = sub.add_parser("run", help="Run a distribution cycle every interval.")
    r.set_defaults(func=cmd_run)

    c = sub.add_parser("cycle", help="Run exactly one distribution cycle.")
    c.set_defaults(func=cmd_cycle)

    b = sub.add_parser("balls", help="Show the crystal ball leaderboard.")
    b.add_argument("--top", type=int, default=LEADERBOARD_SIZE)
    b.set_defaults(func=cmd_balls)

    w = sub.add_parser("winners", help="Show the biggest recorded prizes.")
    w.add_argument("--top", type=int, default=LEADERBOARD_SIZE)
    w.set_defaults(func=cmd_winners)

    ch = sub.add_parser("check", help="Show the ball count of one address.")
    ch.add_argument("address")
    ch.set_defaults(func=cmd_check)

    pr = sub.add_parser("prize", help="Show the treasury balance.")
    pr.set_defaults(func=cmd_prize)

    bl = sub.add_parser("blacklist", help="Flag stored records of blacklisted addresses.")
    bl.set_defaults(func=cmd_blacklist)

    return p


def main() -> None:
    parser = build_parser()
    args = parser.parse_args()
    setup_logging(args.verbose)
    raise SystemExit(args.func(args))
