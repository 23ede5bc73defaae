"""
Daily attendance reminder settings.

The tracker itself sends nothing. It only stores NotificationSettings and
answers "is a reminder due now?" for whatever periodic checker runs it
(the `absencetracker reminder --check` command, a cron job, ...).
The check only reads the settings and stamps last_checked; it never
touches courses or attendance.
"""

from __future__ import annotations

import re
from dataclasses import replace
from datetime import datetime
from typing import Any, Optional

from absencetracker.context import TrackerState
from absencetracker.model import NotificationSettings
from absencetracker.storage import NOTIFICATION_SETTINGS_KEY

TIME_RE = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")

# Minutes of tolerance around the configured time
REMINDER_WINDOW_MINUTES = 1


def is_valid_time(value: str) -> bool:
    return bool(TIME_RE.match(value or ""))


def update_notification_settings(state: TrackerState, **changes: Any) -> NotificationSettings:
    """
    Merge changes into the settings and persist them wholesale.
    Raises ValueError for a malformed time.
    """
    if "time" in changes and not is_valid_time(changes["time"]):
        raise ValueError(f"Invalid reminder time: {changes['time']!r} (expected HH:MM)")

    known = {k: v for k, v in changes.items() if k in ("enabled", "time", "last_checked")}
    state.notification_settings = replace(state.notification_settings, **known)
    state.commit(NOTIFICATION_SETTINGS_KEY)
    return state.notification_settings


def should_send_reminder(
    settings: NotificationSettings,
    now: Optional[datetime] = None,
) -> tuple[bool, NotificationSettings]:
    """
    Return (due, settings). When due, the returned settings carry today's
    date in last_checked so the reminder fires at most once per day.
    """
    now = now or datetime.now()
    today = now.date().isoformat()

    if not settings.enabled or settings.last_checked == today:
        return False, settings
    if not is_valid_time(settings.time):
        return False, settings

    hour, minute = (int(x) for x in settings.time.split(":"))
    target = hour * 60 + minute
    current = now.hour * 60 + now.minute

    if abs(current - target) <= REMINDER_WINDOW_MINUTES:
        return True, replace(settings, last_checked=today)
    return False, settings


def check_reminder(state: TrackerState, now: Optional[datetime] = None) -> bool:
    due, settings = should_send_reminder(state.notification_settings, now)
    if due:
        state.notification_settings = settings
        state.commit(NOTIFICATION_SETTINGS_KEY)
    return due
