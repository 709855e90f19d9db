from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from .errors import NotificationError
from .models import Announcement, PayoutEvent, ProgressRecord

logger = logging.getLogger(__name__)

TELEGRAM_API = "https://api.telegram.org"
BALL = "🔮"

STAGE_IMAGES = {
    1: "https://i.ibb.co/zJ22FG8/DALL-E-2023-12-05-16-50-19-A-single-pink-crystal-ball-inspired-by-Lucky-Lady-s-charm-casino-game-wit.png",
    2: "https://i.ibb.co/0tqJQgg/DALL-E-2023-12-05-16-50-16-Two-pink-crystal-balls-inspired-by-Lucky-Lady-s-charm-casino-game-with-a.png",
    3: "https://i.ibb.co/X51N3PN/DALL-E-2023-12-05-16-50-13-Three-pink-crystal-balls-inspired-by-Lucky-Lady-s-charm-casino-game-arran.png",
}


def shorten_address(address: str) -> str:
    return f"{address[:5]}...{address[-3:]}"


def rank_label(index: int) -> str:
    medals = {0: "🥇", 1: "🥈", 2: "🥉"}
    return medals.get(index, f"  {index + 1}.")


def announcement_text(announcement: Announcement) -> str:
    short = shorten_address(announcement.address)
    if announcement.stage == 1:
        return f"Congratulations {short}!\nYou are now holding 1 crystal ball!"
    if announcement.stage == 2:
        return f"Congratulations {short}!\nYou are now holding 2 crystal balls!"
    if announcement.stage == 3:
        if announcement.tx_ref:
            return (
                f"🎉 Congratulations to {short}! You've won "
                f"{announcement.percentage:.2f}% of the prize! 🎉\n"
                f"Transaction ID: {announcement.tx_ref}"
            )
        return f"There was an issue with the transaction for {short}. Please contact support."
    raise ValueError(f"Invalid number of crystal balls for announcement: {announcement.stage}")


def format_balls(records: List[ProgressRecord], size: int) -> str:
    lines = [f"{BALL} Top {size} Crystal Ball Counts {BALL}", ""]
    for index, record in enumerate(records):
        lines.append(f"{rank_label(index)} {shorten_address(record.address)} - {BALL * record.count}")
    return "\n".join(lines)


def format_winners(events: List[PayoutEvent], size: int) -> str:
    if not events:
        return "No winners recorded yet."
    lines = [f"🏆 Top {size} Winners 🏆", ""]
    for index, event in enumerate(events):
        lines.append(f"{rank_label(index)} {shorten_address(event.winner)} - {event.percentage:.2f}%")
    return "\n".join(lines)


class LogNotifier:
    """Used when no Telegram bot is configured."""

    def notify(self, announcement: Announcement) -> None:
        logger.info("Announcement: %s", announcement_text(announcement))

    def alert(self, text: str) -> None:
        logger.warning("Alert: %s", text)


class TelegramNotifier:
    def __init__(
        self,
        bot_token: str,
        chat_id: str,
        timeout_s: float = 30.0,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self.chat_id = chat_id
        self._base_url = f"{TELEGRAM_API}/bot{bot_token}"
        self.client = client or httpx.Client(timeout=timeout_s)

    def close(self) -> None:
        self.client.close()

    def notify(self, announcement: Announcement) -> None:
        caption = announcement_text(announcement)
        self._post(
            "sendPhoto",
            {
                "chat_id": self.chat_id,
                "photo": STAGE_IMAGES[announcement.stage],
                "caption": caption,
            },
        )

    def alert(self, text: str) -> None:
        self._post("sendMessage", {"chat_id": self.chat_id, "text": text})

    def _post(self, method: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        try:
            resp = self.client.post(f"{self._base_url}/{method}", json=payload)
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise NotificationError(f"Telegram {method} failed: {e}") from e
        if not data.get("ok", False):
            raise NotificationError(f"Telegram {method} rejected: {data.get('description')}")
        return data
