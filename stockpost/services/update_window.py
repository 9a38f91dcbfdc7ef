from __future__ import annotations
from datetime import datetime, timedelta

from stockpost.services.text_style import stylize_bold_serif


# Python weekday(): Monday=0 ... Sunday=6
FRIDAY = 4
SATURDAY = 5
SUNDAY = 6

UPDATE_HOUR = 22
ADMIN_WINDOW_HOUR = 20


def should_show_update_countdown(now: datetime) -> bool:
    """Friday from noon until Saturday's 22:00 update (local time)."""
    wd = now.weekday()
    return (wd == FRIDAY and now.hour >= 12) or (wd == SATURDAY and now.hour < UPDATE_HOUR)


def update_countdown_message(now: datetime) -> str:
    if now.weekday() != SATURDAY:
        return ""
    if now.hour >= UPDATE_HOUR:
        return stylize_bold_serif("✅ Update has arrived! Check out what's new!")
    if now.hour >= ADMIN_WINDOW_HOUR:
        return stylize_bold_serif("⚠️ Admins are now playing on the server... Be alert for admin abuse 👀")

    target = now.replace(hour=UPDATE_HOUR, minute=0, second=0, microsecond=0)
    remaining = int((target - now) / timedelta(seconds=1))
    h, rem = divmod(remaining, 3600)
    m, s = divmod(rem, 60)
    return (
        f"⏳ {stylize_bold_serif('Update in')} "
        f"{stylize_bold_serif(f'{h:02d}')}h {stylize_bold_serif(f'{m:02d}')}m {stylize_bold_serif(f'{s:02d}')}s"
    )


def is_weekly_reset_window(now: datetime) -> bool:
    """Sunday 00:00-00:04 local: the stored fingerprint is cleared so the new week posts fresh."""
    return now.weekday() == SUNDAY and now.hour == 0 and now.minute < 5
