from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import FrozenSet

from dotenv import find_dotenv, load_dotenv

from .blacklist import load_blacklist_file, parse_blacklist
from .project_constants import (
    BLACKLIST_FILE,
    BOOTSTRAP_LIMIT,
    INTERVAL_MINUTES,
    MIN_PRIZE_PERCENT,
)


@dataclass(frozen=True)
class Settings:
    rpc_url: str
    database_path: str = "crystal_ball.db"
    covalent_api_key: str = ""
    sender_address: str = ""
    private_key: str = ""
    bot_token: str = ""
    announcement_chat_id: str = ""
    blacklist: FrozenSet[str] = field(default_factory=frozenset)
    min_prize_percent: int = MIN_PRIZE_PERCENT
    bootstrap_limit: int = BOOTSTRAP_LIMIT
    interval_minutes: int = INTERVAL_MINUTES

    @staticmethod
    def from_env(
        rpc_url_override: str | None = None,
        database_override: str | None = None,
    ) -> "Settings":
        load_dotenv(find_dotenv(usecwd=True))

        return Settings(
            rpc_url=_rpc_url(rpc_url_override),
            database_path=database_override
            or os.getenv("DATABASE_PATH", "").strip()
            or "crystal_ball.db",
            covalent_api_key=os.getenv("COVALENT_API_KEY", "").strip(),
            sender_address=os.getenv("SENDER_ADDRESS", "").strip(),
            private_key=os.getenv("PRIVATE_KEY", "").strip(),
            bot_token=os.getenv("BOT_TOKEN", "").strip(),
            announcement_chat_id=os.getenv("ANNOUNCEMENT_CHAT_ID", "").strip(),
            blacklist=frozenset(
                parse_blacklist(os.getenv("BLACKLISTED_ADDRESSES"))
                | _blacklist_file()
            ),
            min_prize_percent=_int_env("MIN_PRIZE_PERCENT", MIN_PRIZE_PERCENT),
            bootstrap_limit=_int_env("BOOTSTRAP_LIMIT", BOOTSTRAP_LIMIT),
            interval_minutes=_int_env("INTERVAL_MINUTES", INTERVAL_MINUTES),
        )

    def require(self, *names: str) -> None:
        missing = [n for n in names if not getattr(self, n)]
        if missing:
            env_names = ", ".join(n.upper() for n in missing)
            raise RuntimeError(f"Missing {env_names}. Put it in .env or export it.")


def _rpc_url(override: str | None) -> str:
    # If user provides --rpc-url, trust it.
    if override:
        return override

    env_rpc = os.getenv("RPC_URL", "").strip()
    if env_rpc:
        return env_rpc

    # Read-only commands run without one; see Settings.require
    return os.getenv("INFURA_URL", "").strip()


def _blacklist_file() -> set:
    path = os.getenv("BLACKLIST_FILE", BLACKLIST_FILE)
    if not os.path.exists(path):
        return set()
    return load_blacklist_file(path)


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}") from e
