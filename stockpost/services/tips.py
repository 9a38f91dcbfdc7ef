from __future__ import annotations
import asyncio
import json
import logging
import random
from datetime import date
from pathlib import Path


log = logging.getLogger(__name__)


class DailyTipRotator:
    """
    Picks a tip not yet shown on the given day.

    `tips_path` holds a JSON list of strings; `cache_path` maps ISO dates to
    the tips already used that day. When every tip has been used the day's
    list starts over.
    """

    def __init__(self, tips_path: str, cache_path: str, *, rng: random.Random | None = None):
        self.tips_path = Path(tips_path)
        self.cache_path = Path(cache_path)
        self.rng = rng or random.Random()

    def _load_tips(self) -> list[str]:
        try:
            tips = json.loads(self.tips_path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return []
        return [str(t) for t in tips if str(t).strip()] if isinstance(tips, list) else []

    def _load_shown(self) -> dict[str, list[str]]:
        try:
            shown = json.loads(self.cache_path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError:
            log.warning("tips: %s is corrupt, starting over", self.cache_path)
            return {}
        return shown if isinstance(shown, dict) else {}

    def _save_shown(self, shown: dict[str, list[str]]) -> None:
        self.cache_path.parent.mkdir(parents=True, exist_ok=True)
        self.cache_path.write_text(json.dumps(shown, indent=2, ensure_ascii=False), encoding="utf-8")

    def next_tip(self, today: date) -> str:
        tips = self._load_tips()
        if not tips:
            return ""

        key = today.isoformat()
        shown = self._load_shown()
        used = shown.get(key) or []

        available = [t for t in tips if t not in used]
        if not available:
            used = []
            available = tips

        selected = self.rng.choice(available)
        # only today's entry is kept; older days are never read again
        self._save_shown({key: [*used, selected]})
        return f"📌 {selected}"

    async def anext_tip(self, today: date) -> str:
        return await asyncio.to_thread(self.next_tip, today)
