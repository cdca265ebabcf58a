"""
Analysis Cache Module

Short-lived in-memory memoization for analysis results served by the API.
Keys are sha256 digests of a canonical JSON payload so identical requests hit
the same entry regardless of dict ordering.

Usage:
    from modules.analysis_cache import analysis_cache, build_cache_key
    key = build_cache_key("quant", payload)
    cached = analysis_cache.get(key)
"""
import hashlib
import json
import logging
import threading
import time
from typing import Any, Dict, Optional, Tuple

import config

logger = logging.getLogger(__name__)


def build_cache_key(prefix: str, payload: Any) -> str:
    """Stable key: '<prefix>:<sha256 of sorted-key JSON>'."""
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    digest = hashlib.sha256(canonical.encode("utf-8")).hexdigest()
    return f"{prefix}:{digest}"


class AnalysisCache:
    """Thread-safe TTL cache; expiry uses the monotonic clock."""

    def __init__(self, default_ttl: float = config.ANALYSIS_CACHE_TTL_SECONDS, clock=time.monotonic):
        self.default_ttl = default_ttl
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: Dict[str, Tuple[float, Any]] = {}

    def get(self, key: str) -> Optional[Any]:
        """Return the cached value, or None on miss/expiry."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None

            expires_at, value = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: Any, ttl_seconds: Optional[float] = None) -> None:
        """
        Store `value` for `ttl_seconds` (default TTL when None). A TTL <= 0 evicts the key.

        Expired entries are swept on every write so unique keys cannot pile up.
        """
        ttl = self.default_ttl if ttl_seconds is None else ttl_seconds
        with self._lock:
            now = self._clock()
            expired = [k for k, (expires_at, _) in self._entries.items() if now >= expires_at]
            for k in expired:
                del self._entries[k]
            if expired:
                logger.debug(f"Analysis cache swept {len(expired)} expired entries")

            if ttl <= 0:
                self._entries.pop(key, None)
                return
            self._entries[key] = (now + ttl, value)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
        logger.debug("Analysis cache cleared")

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


# Shared instance used by the API routes
analysis_cache = AnalysisCache()
