"""
Action Log - Recent player-visible events (stat deltas, checks, diagnostics).
"""

import time
from typing import Any, Dict, List, Optional

from config import settings


class ActionLog:
    """
    Capped list of recent events, newest first.
    Supports save/load via to_dict/from_dict.
    """

    def __init__(self, limit: int = settings.LOG_LIMIT) -> None:
        self.limit = limit
        self._entries: List[Dict[str, Any]] = []

    def add_entry(self, text: Optional[str]) -> None:
        """
        Push an entry to the front. Empty text is ignored; only the newest
        `limit` entries are kept.
        """
        if not text:
            return
        self._entries.insert(0, {"text": str(text), "at": time.time()})
        del self._entries[self.limit:]

    def texts(self) -> List[str]:
        """All entry texts, newest first."""
        return [entry["text"] for entry in self._entries]

    def latest(self) -> str:
        return self._entries[0]["text"] if self._entries else ""

    def __len__(self) -> int:
        return len(self._entries)

    def to_dict(self) -> List[Dict[str, Any]]:
        return [dict(entry) for entry in self._entries]

    @classmethod
    def from_dict(cls, data: Any, limit: int = settings.LOG_LIMIT) -> "ActionLog":
        """
        Deserialize from JSON. Handles missing data and plain string lists.
        """
        inst = cls(limit=limit)
        if not isinstance(data, list):
            return inst
        for entry in data[:limit]:
            if isinstance(entry, dict) and entry.get("text"):
                inst._entries.append({"text": str(entry["text"]), "at": entry.get("at", 0)})
            elif isinstance(entry, str) and entry:
                inst._entries.append({"text": entry, "at": 0})
        return inst
