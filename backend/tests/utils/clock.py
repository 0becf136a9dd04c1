"""Pinned calendar used across the test suite."""

from datetime import date, datetime, timedelta

TODAY = date(2030, 1, 7)  # Monday
NOW = datetime(2030, 1, 7, 8, 0)
NEXT_MONDAY = TODAY + timedelta(days=7)
