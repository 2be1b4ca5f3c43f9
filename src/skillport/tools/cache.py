"""Cache maintenance tools."""

import logging
from datetime import timedelta

from skillport.config import settings
from skillport.core.cache import CacheManager

logger = logging.getLogger("skillport.tools.cache")


def cache_path() -> str:
    """Location of the git cache root."""
    return str(settings.cache_path)


def cache_info() -> dict:
    """Cache root, entry counts and size on disk."""
    return CacheManager().stats()


def clean_cache(all: bool = False, max_age_days: int | None = None) -> dict:
    """Evict stale checkouts, or wipe the whole cache.

    Args:
        all: Remove mirrors and checkouts
        max_age_days: Checkout age limit (default: settings.checkout_max_age_days)

    Returns:
        Dictionary with the number of removed entries and what was cleaned.
    """
    cache = CacheManager()
    if all:
        removed = cache.purge_all()
        return {"removed": removed, "mode": "all", "path": str(cache.root)}

    days = settings.checkout_max_age_days if max_age_days is None else max_age_days
    removed = cache.evict(timedelta(days=days))
    return {"removed": removed, "mode": "checkouts", "max_age_days": days, "path": str(cache.root)}
