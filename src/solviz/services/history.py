from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Iterable, List

from solviz.config import settings

logger = logging.getLogger(__name__)


class SearchHistory:
    """Most recent first, de-duplicated, bounded."""

    def __init__(self, max_size: int = settings.SEARCH_HISTORY_SIZE, items: Iterable[str] = ()) -> None:
        if max_size <= 0:
            raise ValueError("max_size must be > 0")
        self._max = max_size
        self._items: List[str] = []
        for a in reversed(list(items)):
            self.add(a)

    def add(self, address: str) -> None:
        if not address:
            return
        if address in self._items:
            self._items.remove(address)
        self._items.insert(0, address)
        del self._items[self._max:]

    def items(self) -> List[str]:
        return list(self._items)

    def clear(self) -> None:
        self._items.clear()

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, address: str) -> bool:
        return address in self._items

    # ---------- persistence ----------

    @classmethod
    def load(cls, path: str, max_size: int = settings.SEARCH_HISTORY_SIZE) -> "SearchHistory":
        p = Path(path)
        if not p.exists():
            return cls(max_size)
        try:
            with p.open(encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning("ignoring unreadable history file %s: %s", path, e)
            return cls(max_size)
        items = [a for a in data if isinstance(a, str)] if isinstance(data, list) else []
        return cls(max_size, items)

    def save(self, path: str) -> str:
        p = Path(path)
        p.parent.mkdir(parents=True, exist_ok=True)
        with p.open("w", encoding="utf-8") as f:
            json.dump(self._items, f, indent=2)
        return str(p)
