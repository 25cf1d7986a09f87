"""
Key/value cache over the api_cache table.

Each record carries two expiries:
- expires_at (soft): get() only serves the value before this instant
- stale_until (hard): get_stale() serves it until this instant, as a
  last-resort fallback after an upstream failure

Reads never raise; a broken database looks the same as a cache miss.
"""

from __future__ import annotations
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional
import logging

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from optionstrike.db.models import ApiCacheEntry
from optionstrike.utils.timestamp import utc_now

logger = logging.getLogger(__name__)

LATEST_RECOMMENDATIONS_KEY = "latest_recommendations"
LEGACY_STALE_SUFFIX = "_stale"
DEFAULT_STALE_MINUTES = 10080


def earnings_key(from_date: str, to_date: str, expanded: bool = False) -> str:
    return f"earnings_{from_date}_{to_date}" + ("_ext" if expanded else "")


def eps_growth_key(symbol: str) -> str:
    return f"eps_growth_{symbol}"


def stock_price_key(symbol: str) -> str:
    return f"stock_price_{symbol}"


def options_chain_key(symbol: str, expiration_date: Optional[str] = None) -> str:
    return f"options_chain_{symbol}" + (f"_{expiration_date}" if expiration_date else "")


def company_profile_key(symbol: str) -> str:
    return f"company_profile_{symbol}"


class CacheStore:
    """Durable JSON cache with soft and hard expiry per key."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        clock: Callable[[], datetime] = utc_now,
        default_stale_minutes: int = DEFAULT_STALE_MINUTES,
    ):
        self._session_factory = session_factory
        self._clock = clock
        self._default_stale_minutes = default_stale_minutes

    def _read(self, key: str, column) -> Optional[Any]:
        now = self._clock()
        session = self._session_factory()
        try:
            row = (
                session.query(ApiCacheEntry.data)
                .filter(ApiCacheEntry.cache_key == key, column > now)
                .first()
            )
        finally:
            session.close()
        return row[0] if row is not None else None

    async def get(self, key: str) -> Optional[Any]:
        """Return the cached value if present and not soft-expired, else None."""
        try:
            value = self._read(key, ApiCacheEntry.expires_at)
        except SQLAlchemyError as e:
            logger.warning(f"[Cache] Query error for key {key}: {e}")
            return None

        if value is None:
            logger.debug(f"[Cache] Miss: {key}")
        else:
            logger.debug(f"[Cache] Hit: {key}")
        return value

    async def get_stale(self, key: str) -> Optional[Any]:
        """
        Return the fallback copy for key, ignoring the soft expiry.

        Falls back to a separate "<key>_stale" record when seeded externally.
        """
        try:
            value = self._read(key, ApiCacheEntry.stale_until)
            if value is None:
                value = self._read(f"{key}{LEGACY_STALE_SUFFIX}", ApiCacheEntry.expires_at)
        except SQLAlchemyError as e:
            logger.warning(f"[Cache] Stale query error for key {key}: {e}")
            return None

        if value is not None:
            logger.info(f"[Cache] Serving stale copy for {key}")
        return value

    async def set(
        self,
        key: str,
        value: Any,
        ttl_minutes: float = 30,
        stale_minutes: Optional[float] = None,
    ) -> bool:
        """Upsert key. Returns False instead of raising on failure."""
        now = self._clock()
        if stale_minutes is None:
            stale_minutes = self._default_stale_minutes
        expires_at = now + timedelta(minutes=ttl_minutes)
        stale_until = now + timedelta(minutes=max(ttl_minutes, stale_minutes))

        session = self._session_factory()
        try:
            entry = session.query(ApiCacheEntry).filter(ApiCacheEntry.cache_key == key).first()
            if entry is not None:
                entry.data = value
                entry.expires_at = expires_at
                entry.stale_until = stale_until
            else:
                session.add(ApiCacheEntry(
                    cache_key=key,
                    data=value,
                    expires_at=expires_at,
                    stale_until=stale_until,
                ))
            session.commit()
        except (SQLAlchemyError, TypeError, ValueError) as e:
            session.rollback()
            logger.error(f"[Cache] Error caching data for {key}: {e}")
            return False
        finally:
            session.close()

        logger.debug(f"[Cache] Stored {key} (ttl={ttl_minutes}m, stale={stale_minutes}m)")
        return True

    async def delete(self, key: str) -> bool:
        session = self._session_factory()
        try:
            session.query(ApiCacheEntry).filter(ApiCacheEntry.cache_key == key).delete()
            session.commit()
            return True
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"[Cache] Error deleting {key}: {e}")
            return False
        finally:
            session.close()

    async def clear_expired(self) -> int:
        """
        Delete entries past their hard expiry. Returns the number removed,
        or -1 on error.

        Soft-expired entries are kept so stale fallback still works.
        """
        now = self._clock()
        session = self._session_factory()
        try:
            count = (
                session.query(ApiCacheEntry)
                .filter(ApiCacheEntry.stale_until <= now)
                .delete(synchronize_session=False)
            )
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"[Cache] Error clearing expired cache: {e}")
            return -1
        finally:
            session.close()

        logger.info(f"[Cache] Cleared {count} expired cache entries")
        return count

    async def stats(self) -> Optional[Dict[str, int]]:
        now = self._clock()
        session = self._session_factory()
        try:
            total = session.query(func.count(ApiCacheEntry.id)).scalar() or 0
            expired = (
                session.query(func.count(ApiCacheEntry.id))
                .filter(ApiCacheEntry.expires_at <= now)
                .scalar() or 0
            )
            stale = (
                session.query(func.count(ApiCacheEntry.id))
                .filter(ApiCacheEntry.expires_at <= now, ApiCacheEntry.stale_until > now)
                .scalar() or 0
            )
        except SQLAlchemyError as e:
            logger.warning(f"[Cache] Error getting cache stats: {e}")
            return None
        finally:
            session.close()

        return {
            "total": total,
            "expired": expired,
            "active": total - expired,
            "stale": stale,
        }

    async def clear_all(self) -> int:
        """Delete every entry. Returns the number removed, or -1 on error."""
        session = self._session_factory()
        try:
            count = session.query(ApiCacheEntry).delete(synchronize_session=False)
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"[Cache] Error clearing all cache: {e}")
            return -1
        finally:
            session.close()

        logger.info(f"[Cache] Cleared all {count} cache entries")
        return count
