"""Utility functions."""

from clinic_ops.utils.time import age_on, ensure_utc, utc_now

__all__ = ["utc_now", "ensure_utc", "age_on"]
