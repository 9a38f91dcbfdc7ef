from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime

from stockpost.schemas.snapshot import CategoryState, Prediction, Snapshot, Weather
from stockpost.services.text_style import stylize_bold_serif
from stockpost.services.tips import DailyTipRotator
from stockpost.services.update_window import should_show_update_countdown, update_countdown_message


REPORT_VERSION = "1.0.1"

# (category key, section title, fallback emoji) in posting order; predictions go after eggs
SECTIONS_BEFORE_PREDICTIONS = [
    ("gear", "GEAR", "🛠️"),
    ("seed", "SEEDS", "🌱"),
    ("egg", "EGGS", "🥚"),
]
SECTIONS_AFTER_PREDICTIONS = [
    ("honey", "EVENT SHOP", "🍯"),
    ("cosmetics", "COSMETICS", "🎀"),
]
MERCHANT_KEY = "travelingmerchant"

PREDICTION_EMOJI = {"seed": "🌱", "gear": "🛠️", "egg": "🥚"}

WANTED_ITEMS = [
    "Master Sprinkler",
    "Godly Sprinkler",
    "Medium Treat",
    "Medium Toy",
    "Ember Lily",
    "Giant Pinecone",
    "Burning Bud",
    "Magnifying Glass",
    "Mythical Egg",
    "Paradise Egg",
    "Trading Ticket",
    "Bug Egg",
    "Bee Egg",
    "Grand Master Sprinkler",
    "Level Up Lollipop",
    "Friendship Pot",
    "Sprout Egg",
]
RECOMMENDATION_CATEGORIES = ["gear", "seed", "egg", "honey", "cosmetics", MERCHANT_KEY]


def format_local_time(now: datetime) -> str:
    return now.strftime("%b %d, %Y, %I:%M %p")


def summarize_section(title: str, emoji: str, group: CategoryState | None) -> str:
    if not group or not group.items:
        return ""
    label = f"╭───── CURRENT {title.upper()} STOCK ─────╮"
    lines = "\n".join(f"{it.emoji or emoji} {it.name} [{it.quantity}]" for it in group.items)
    countdown = f"\n⏳ {group.countdown}" if group.countdown else ""
    return f"{label}\n{lines}{countdown}\n╰────────────────╯"


def summarize_merchant(merchant: CategoryState | None) -> str:
    if merchant is None:
        return ""
    if merchant.status == "leaved":
        return "╭──── MERCHANT ────╮\n🛒 Not Available\n╰────────────────╯"
    items = "\n".join(f"🛒 {it.name} [{it.quantity}]" for it in merchant.items)
    return f"╭──── MERCHANT ────╮\n{items}\n⌛ Leaves in: {merchant.countdown or 'Unknown'}\n╰────────────────╯"


def summarize_weather(weather: Weather | None) -> str:
    if not weather or not weather.description:
        return ""
    return f"☁️ Weather: {weather.description}\n🌽 Bonus Crop: {weather.crop_bonuses or 'None'}"


def summarize_predictions(predictions: dict[str, list[Prediction]] | None) -> str:
    if not predictions:
        return ""
    blocks = []
    for cat in ("seed", "gear", "egg"):
        rows = predictions.get(cat) or []
        if not rows:
            continue
        label = f"╭───── UPCOMING {cat.upper()} ─────╮"
        items = "\n".join(f"{PREDICTION_EMOJI[cat]} {p.name}: {p.show_time or 'Unknown'}" for p in rows)
        blocks.append(f"{label}\n{items}\n╰────────────────╯")
    if not blocks:
        return ""
    warning = f"⚠️ {stylize_bold_serif('Predictions are in BETA and not fully tested. Use with caution!')}\n"
    return warning + "\n".join(blocks)


def recommendations(snapshot: Snapshot) -> str:
    in_stock = set()
    for cat in RECOMMENDATION_CATEGORIES:
        state = snapshot.category(cat)
        if state:
            in_stock.update(it.name.lower() for it in state.items)

    hits = [name for name in WANTED_ITEMS if name.lower() in in_stock]
    if not hits:
        return ""
    return f"💡 {stylize_bold_serif('Recommended Buys Today')}:\n" + "\n".join(f"✅ {name}" for name in hits)


@dataclass
class ReportComposer:
    """
    Builds the post caption.

    `compose` is pure and takes the tip as an argument; `acompose` draws one
    from `tip_source` off the event loop first.
    """

    tip_source: DailyTipRotator | None = None

    async def acompose(self, snapshot: Snapshot, *, now: datetime) -> str:
        tip = await self.tip_source.anext_tip(now.date()) if self.tip_source is not None else None
        return self.compose(snapshot, now=now, tip=tip)

    def compose(self, snapshot: Snapshot, *, now: datetime, tip: str | None = None) -> str:
        parts: list[str | None] = [
            f"🌿✨ {stylize_bold_serif('Grow-a-Garden Report')} ✨🌿",
            f"📦 {stylize_bold_serif(f'Version: {REPORT_VERSION}')} //",
            f"🕓 {format_local_time(now)} PH Time",
        ]
        parts += [summarize_section(title, emoji, snapshot.category(key)) for key, title, emoji in SECTIONS_BEFORE_PREDICTIONS]
        parts.append(summarize_predictions(snapshot.predictions))
        parts += [summarize_section(title, emoji, snapshot.category(key)) for key, title, emoji in SECTIONS_AFTER_PREDICTIONS]
        parts.append(summarize_merchant(snapshot.category(MERCHANT_KEY)))
        parts.append(summarize_weather(snapshot.weather))

        if should_show_update_countdown(now):
            parts.append(
                f"╭──── {stylize_bold_serif('GAG NEXT UPDATE AT')} ────╮\n"
                f"{update_countdown_message(now)}\n╰────────────────╯"
            )

        parts.append(tip)
        parts.append(recommendations(snapshot))
        return "\n\n".join(p for p in parts if p)
