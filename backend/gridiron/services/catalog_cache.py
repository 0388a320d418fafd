"""
Catalog Cache for enabled cards and token types, grouped by rarity.

Pack rolls read the catalog through this cache. Entries expire after a TTL
and are dropped explicitly whenever the catalog is refreshed.
"""

from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional
import logging
import threading

from sqlalchemy.orm import Session

from gridiron.models.database_models import Card, Rarity, TokenType

logger = logging.getLogger(__name__)


class CatalogEntry(dict):
    """Plain dict snapshot of a catalog row, detached from any session"""


class CatalogCache:
    def __init__(self, ttl_seconds: int = 1800, clock: Callable[[], datetime] = datetime.utcnow):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._cache: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def _get(self, key: str) -> Optional[List[CatalogEntry]]:
        with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                return None
            if entry["expires_at"] < self._clock():
                del self._cache[key]
                return None
            return entry["value"]

    def _set(self, key: str, value: List[CatalogEntry]):
        with self._lock:
            self._cache[key] = {
                "value": value,
                "expires_at": self._clock() + timedelta(seconds=self.ttl_seconds),
            }

    def cards_for_rarity(self, db: Session, rarity: str) -> List[CatalogEntry]:
        key = f"cards:{rarity}"
        cached = self._get(key)
        if cached is not None:
            self.hits += 1
            return cached

        self.misses += 1
        rows = (
            db.query(Card)
            .filter(Card.rarity == Rarity(rarity), Card.enabled.is_(True))
            .order_by(Card.id)
            .all()
        )
        snapshot = [
            CatalogEntry(
                id=row.id,
                player_id=row.player_id,
                rarity=row.rarity.value,
                base_contracts=row.base_contracts,
                base_sell_value=row.base_sell_value,
            )
            for row in rows
        ]
        self._set(key, snapshot)
        return snapshot

    def token_types_for_rarity(self, db: Session, rarity: str) -> List[CatalogEntry]:
        key = f"token_types:{rarity}"
        cached = self._get(key)
        if cached is not None:
            self.hits += 1
            return cached

        self.misses += 1
        rows = (
            db.query(TokenType)
            .filter(TokenType.rarity == Rarity(rarity), TokenType.enabled.is_(True))
            .order_by(TokenType.id)
            .all()
        )
        snapshot = [
            CatalogEntry(
                id=row.id,
                name=row.name,
                rarity=row.rarity.value,
                max_uses=row.max_uses,
            )
            for row in rows
        ]
        self._set(key, snapshot)
        return snapshot

    def invalidate(self, prefix: Optional[str] = None) -> int:
        """Drop cached entries (all of them, or those whose key starts with prefix)"""
        with self._lock:
            if prefix is None:
                removed = len(self._cache)
                self._cache.clear()
            else:
                keys = [k for k in self._cache if k.startswith(prefix)]
                for key in keys:
                    del self._cache[key]
                removed = len(keys)
        logger.info(f"Catalog cache invalidated ({removed} entries)")
        return removed

    def get_stats(self) -> Dict[str, Any]:
        now = self._clock()
        with self._lock:
            active = sum(1 for e in self._cache.values() if e["expires_at"] >= now)
            total = len(self._cache)
        return {
            "total_entries": total,
            "active_entries": active,
            "expired_entries": total - active,
            "hits": self.hits,
            "misses": self.misses,
        }
