"""Utility modules for the GovLearn API."""

from govlearn.utils.time import ensure_utc_aware, utc_now


__all__ = ["ensure_utc_aware", "utc_now"]
