from __future__ import annotations

import re
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class StockItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str
    quantity: int = Field(default=0, validation_alias=AliasChoices("quantity", "qty", "value"))
    emoji: str | None = Field(default=None, validation_alias=AliasChoices("emoji", "icon"))

    @field_validator("name", mode="before")
    @classmethod
    def _name_as_text(cls, v: Any) -> Any:
        return v if v is None else str(v)

    @field_validator("quantity", mode="before")
    @classmethod
    def _coerce_quantity(cls, v: Any) -> int:
        # unreadable quantities count as zero
        if isinstance(v, int):
            return v
        try:
            return int(float(v))
        except (TypeError, ValueError, OverflowError):
            return 0


_DURATION_PART = re.compile(r"(\d+)\s*([hms])", re.IGNORECASE)


def parse_countdown_seconds(text: str | None) -> float | None:
    """
    Parse an upstream countdown into seconds.

    Accepts "04m 12s", "1h 2m 3s", "00:04:12", "04:12" and bare numbers.
    Returns None when nothing sensible can be read.
    """
    if text is None:
        return None
    s = str(text).strip()
    if not s:
        return None
    if re.fullmatch(r"\d+(\.\d+)?", s):
        return float(s)
    if re.fullmatch(r"\d+(:\d{1,2}){1,2}", s):
        total = 0
        for part in s.split(":"):
            total = total * 60 + int(part)
        return float(total)
    parts = _DURATION_PART.findall(s)
    if not parts:
        return None
    unit_seconds = {"h": 3600, "m": 60, "s": 1}
    return float(sum(int(n) * unit_seconds[u.lower()] for n, u in parts))


class CategoryState(BaseModel):
    """
    One shop category as reported upstream (seed, gear, egg, merchant...).

    `countdown` is kept verbatim for display; `countdown_seconds` is derived
    from it when the source does not send a numeric value.
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    items: list[StockItem] = Field(default_factory=list)
    countdown: str | None = None
    countdown_seconds: float | None = Field(
        default=None,
        validation_alias=AliasChoices("countdown_seconds", "countdownSeconds"),
    )
    status: str | None = None
    updated_at: str | None = Field(
        default=None,
        validation_alias=AliasChoices("updated_at", "updatedAt", "lastUpdated"),
    )

    @field_validator("items", mode="before")
    @classmethod
    def _items_or_empty(cls, v: Any) -> Any:
        if not isinstance(v, list):
            return []
        # drop entries we cannot name rather than failing the whole category
        return [it for it in v if isinstance(it, StockItem) or (isinstance(it, dict) and it.get("name"))]

    @field_validator("countdown", "updated_at", mode="before")
    @classmethod
    def _stringify(cls, v: Any) -> Any:
        return None if v is None else str(v)

    def model_post_init(self, __context: Any) -> None:
        if self.countdown_seconds is None:
            self.countdown_seconds = parse_countdown_seconds(self.countdown)


class Weather(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    description: str | None = None
    crop_bonuses: str | None = Field(default=None, validation_alias=AliasChoices("crop_bonuses", "cropBonuses"))
    updated_at: str | None = Field(
        default=None,
        validation_alias=AliasChoices("updated_at", "updatedAt", "lastUpdated"),
    )

    @field_validator("description", "crop_bonuses", "updated_at", mode="before")
    @classmethod
    def _stringify(cls, v: Any) -> Any:
        if v is None:
            return None
        if isinstance(v, list):
            return ", ".join(str(x) for x in v)
        return str(v)


class Prediction(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str
    show_time: str | None = Field(default=None, validation_alias=AliasChoices("show_time", "showTime"))


class Snapshot(BaseModel):
    categories: dict[str, CategoryState] = Field(default_factory=dict)
    weather: Weather | None = None
    predictions: dict[str, list[Prediction]] | None = None
    updated_at: str | None = None

    def category(self, name: str) -> CategoryState | None:
        return self.categories.get(name)


_TIMESTAMP_KEYS = {"updated_at", "updatedAt", "lastUpdated", "timestamp"}
_TOP_LEVEL_VOLATILE = {"updated_at", "updatedAt", "lastUpdated", "timestamp", "request_id", "requestId"}


def unwrap_envelope(payload: Any) -> dict[str, Any]:
    """Return the `data` envelope when present, else the payload itself (dict only)."""
    if isinstance(payload, dict):
        data = payload.get("data", payload)
        return data if isinstance(data, dict) else {}
    return {}


def parse_stock_payload(payload: Any) -> Snapshot:
    """
    Build a Snapshot from an upstream stock document.

    Anything that is a dict is treated as a category; lists of items directly
    under a category key are accepted too. Missing pieces inside a category
    degrade to empty.

    Raises ValueError when the document is not a stock document at all (not an
    object, a non-object `data` envelope, or no category-shaped entry), so an
    upstream error reply is never mistaken for an empty shop.
    """
    if not isinstance(payload, dict):
        raise ValueError(f"expected a JSON object, got {type(payload).__name__}")
    data = payload.get("data", payload)
    if not isinstance(data, dict):
        raise ValueError(f"`data` is {type(data).__name__}, not an object")
    categories: dict[str, CategoryState] = {}
    updated_at = None

    for key, value in data.items():
        if key in _TOP_LEVEL_VOLATILE:
            if key in _TIMESTAMP_KEYS and value is not None:
                updated_at = str(value)
            continue
        if isinstance(value, dict):
            categories[key] = CategoryState.model_validate(value)
        elif isinstance(value, list):
            categories[key] = CategoryState.model_validate({"items": value})

    if not categories:
        raise ValueError(f"no stock categories in payload (keys: {sorted(data)[:8]})")
    return Snapshot(categories=categories, updated_at=updated_at)


def parse_weather_payload(payload: Any) -> Weather | None:
    data = unwrap_envelope(payload)
    if not data:
        return None
    return Weather.model_validate(data)


def parse_predictions_payload(payload: Any) -> dict[str, list[Prediction]] | None:
    if not isinstance(payload, dict):
        return None
    if payload.get("status") != "success":
        return None
    data = payload.get("data")
    if not isinstance(data, dict):
        return None

    out: dict[str, list[Prediction]] = {}
    for cat, rows in data.items():
        if not isinstance(rows, list):
            continue
        out[cat] = [Prediction.model_validate(r) for r in rows if isinstance(r, dict) and r.get("name")]
    return out
