"""
Timezone utility functions for the pick'em application
"""

from datetime import datetime, timezone

import pytz
from flask import current_app, has_app_context


def _timezone_from_config(key, default):
    timezone_name = default
    if has_app_context():
        timezone_name = current_app.config.get(key, default)
    try:
        return pytz.timezone(timezone_name)
    except pytz.UnknownTimeZoneError:
        # Fallback to the default if the configured zone is invalid
        return pytz.timezone(default)


def get_app_timezone():
    """Get the application's configured display timezone"""
    return _timezone_from_config("TIMEZONE", "UTC")


def get_schedule_timezone():
    """Get the timezone the league schedule is published in (waves, deadlines)"""
    return _timezone_from_config("SCHEDULE_TIMEZONE", "America/New_York")


def get_utc_time():
    """Get current time in UTC"""
    return datetime.now(timezone.utc)


def ensure_utc(dt):
    """Return an aware UTC datetime; naive values are assumed to be UTC"""
    if dt is None:
        return None

    # Databases like SQLite drop tzinfo, values are stored as UTC
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)

    return dt.astimezone(timezone.utc)


def parse_provider_time(value):
    """Parse an ISO-8601 timestamp from the schedule provider into UTC"""
    if not value:
        return None

    # ESPN sends "2025-09-05T00:20Z"
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    return ensure_utc(parsed)


def convert_to_app_timezone(dt):
    """Convert a datetime to the application's timezone"""
    if dt is None:
        return None

    return ensure_utc(dt).astimezone(get_app_timezone())


def format_game_time(dt, format_str="%a %m/%d at %I:%M %p"):
    """Format a game time in the application's timezone"""
    if dt is None:
        return "TBD"

    app_time = convert_to_app_timezone(dt)
    return app_time.strftime(format_str)
