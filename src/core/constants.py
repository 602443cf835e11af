"""Core application constants."""

from datetime import timedelta
from decimal import Decimal

# Time constants
MILLISECONDS_PER_SECOND = 1000
DAYS_PER_WEEK = 7

# Companies keep their books in a civil time one hour ahead of UTC.
# This is a fixed offset, not a timezone: daylight saving is ignored.
CIVIL_TIME_OFFSET_HOURS = 1
CIVIL_TIME_OFFSET = timedelta(hours=CIVIL_TIME_OFFSET_HOURS)

# ISO-8601 week bounds
MIN_WEEK = 1
MAX_WEEK = 53

# Money
PERCENT_BASE = Decimal(100)
ZERO = Decimal(0)
CURRENCY_UNIT = Decimal(1)
RATE_PRECISION = Decimal("0.01")

# Tax applied to the whole taxable profit when no bracket is configured
FLAT_TAX_RATE_PERCENT = 25

# Security and redaction
REDACTED = "[REDACTED]"
