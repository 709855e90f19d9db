from __future__ import annotations

from typing import Iterable, List, Set

from .models import Holder


def normalize(address: str) -> str:
    return address.strip().lower()


def is_blacklisted(address: str, blacklist: Set[str]) -> bool:
    # Entries may come in unnormalized from callers that built the set themselves
    target = normalize(address)
    return any(normalize(entry) == target for entry in blacklist)


def apply(holders: Iterable[Holder], blacklist: Set[str]) -> List[Holder]:
    if not blacklist:
        return list(holders)
    normalized = {normalize(entry) for entry in blacklist}
    return [h for h in holders if normalize(h.address) not in normalized]


def parse_blacklist(raw: str | None) -> Set[str]:
    """Parse a comma-separated address list, e.g. BLACKLISTED_ADDRESSES."""
    if not raw:
        return set()
    return {normalize(part) for part in raw.split(",") if part.strip()}


def load_blacklist_file(path: str | None) -> Set[str]:
    if not path:
        return set()
    out: Set[str] = set()
    with open(path, "r", encoding="utf-8") as f:
        for line in f:
            w = line.strip()
            if not w or w.startswith("#"):
                continue
            out.add(normalize(w))
    return out
