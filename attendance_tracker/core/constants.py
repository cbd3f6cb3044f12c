"""
Service-wide constants
"""

SERVICE_NAME = "attendance-tracker"

# Live status buckets
LIVE_WORKING = "working"
LIVE_ON_BREAK = "on-break"
LIVE_CHECKED_OUT = "checked-out"

WEEKDAY_LABELS = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
