"""Utility modules for the Learning Hub API."""

from src.utils.dates import ensure_utc_aware, utc_now
from src.utils.numbers import percent_half_up


__all__ = ["ensure_utc_aware", "percent_half_up", "utc_now"]
