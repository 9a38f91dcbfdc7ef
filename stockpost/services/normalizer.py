from __future__ import annotations
import json
from typing import Any

from stockpost.schemas.snapshot import Snapshot


# Keys that change on every poll without the shop content changing.
# Countdowns tick down between polls the same way timestamps do.
VOLATILE_FIELDS: frozenset[str] = frozenset({
    "updated_at",
    "updatedAt",
    "last_updated",
    "lastUpdated",
    "timestamp",
    "request_id",
    "requestId",
    "countdown",
    "countdown_seconds",
})


def _stable_json_bytes(obj: Any) -> bytes:
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def strip_volatile(obj: Any) -> Any:
    if isinstance(obj, dict):
        return {k: strip_volatile(v) for k, v in obj.items() if k not in VOLATILE_FIELDS}
    if isinstance(obj, list):
        return [strip_volatile(v) for v in obj]
    return obj


def _item_sort_key(item: dict) -> tuple:
    name = str(item.get("name") or "").lower()
    qty = item.get("quantity")
    return (name, qty if isinstance(qty, (int, float)) else -1, str(item.get("emoji") or ""))


def canonical_snapshot(snapshot: Snapshot) -> dict[str, Any]:
    """
    Snapshot as a plain dict with volatile fields removed and items in a
    deterministic order (lower-cased name, then quantity). Upstream item order
    is not considered meaningful.
    """
    raw = strip_volatile(snapshot.model_dump(mode="json"))

    for state in (raw.get("categories") or {}).values():
        state["items"] = sorted(state.get("items") or [], key=_item_sort_key)

    predictions = raw.get("predictions")
    if isinstance(predictions, dict):
        for cat, rows in predictions.items():
            predictions[cat] = sorted(rows, key=lambda r: (str(r.get("name") or "").lower(), str(r.get("show_time") or "")))

    return raw


def normalize(snapshot: Snapshot) -> bytes:
    return _stable_json_bytes(canonical_snapshot(snapshot))
