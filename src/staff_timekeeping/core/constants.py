"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

from datetime import timedelta

MAX_SESSION_DURATION = timedelta(hours=24)
LONG_SHIFT_THRESHOLD = timedelta(hours=12, minutes=30)
LONG_SHIFT_BREAK = timedelta(hours=1)
SHORT_SHIFT_THRESHOLD = timedelta(hours=4, minutes=30)
SHORT_SHIFT_BREAK = timedelta(minutes=30)

DURATION_INCOMPLETE = "Incomplete"
DURATION_INVALID = "Invalid"
DURATION_NOT_AVAILABLE = "N/A"

YEAR_MONTH_FORMAT = "%Y-%m"
DISPLAY_TIME_FORMAT = "%H:%M"

DEFAULT_DEBOUNCE_SECONDS = 0.3
