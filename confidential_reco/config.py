"""
Configuration module for ConfidentialReco.

Centralizes configuration with environment variable support and a
thread-safe cached loader for the oracle trust store.
"""

import json
import os
import threading
import time
from pathlib import Path
from typing import Any, Dict, Optional

# ============================================================
# Environment Configuration
# ============================================================

ENV = os.getenv("RECO_ENV", "dev")  # dev|stage|prod

LOG_LEVEL = os.getenv("RECO_LOG_LEVEL", "INFO")
LOG_JSON = os.getenv("RECO_LOG_JSON", "1").lower() in ("1", "true", "yes")

# Oracle trust
ORACLE_TRUST_STORE_PATH = os.getenv("RECO_ORACLE_TRUST_STORE_PATH", "trust/oracle_trust_store.json")
ORACLE_QUORUM = int(os.getenv("RECO_ORACLE_QUORUM", "1"))

# Remote oracle gateway; empty runs the in-process LocalOracle
ORACLE_URL = os.getenv("RECO_ORACLE_URL", "")
CALLBACK_URL = os.getenv("RECO_CALLBACK_URL", "http://localhost:8000/oracle/callback")
ORACLE_TIMEOUT_SECONDS = float(os.getenv("RECO_ORACLE_TIMEOUT_SECONDS", "5"))

# Pending request expiry in seconds; 0 disables expiry
PENDING_TTL_SECONDS = int(os.getenv("RECO_PENDING_TTL_SECONDS", "0"))

# Selector echoed to the oracle so it knows which entry point to call back
CALLBACK_SELECTOR = os.getenv("RECO_CALLBACK_SELECTOR", "on_callback")

# Cache TTL (seconds)
CONFIG_CACHE_TTL = int(os.getenv("CONFIG_CACHE_TTL", "60"))


# ============================================================
# Cached Configuration Loaders
# ============================================================

class CachedConfig:
    """
    Thread-safe cached configuration loader.
    Reloads configuration files periodically based on TTL.
    """

    def __init__(self, ttl_seconds: int = 60):
        self._cache: Dict[str, Any] = {}
        self._timestamps: Dict[str, float] = {}
        self._lock = threading.RLock()
        self._ttl = ttl_seconds

    def _is_stale(self, key: str) -> bool:
        if key not in self._timestamps:
            return True
        return (time.time() - self._timestamps[key]) > self._ttl

    def get_json(self, path: str, force_reload: bool = False) -> Dict[str, Any]:
        with self._lock:
            if not force_reload and path in self._cache and not self._is_stale(path):
                return self._cache[path]

            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)

            self._cache[path] = data
            self._timestamps[path] = time.time()
            return data

    def invalidate(self, path: Optional[str] = None) -> None:
        """Invalidate cache for a specific path or all paths."""
        with self._lock:
            if path:
                self._cache.pop(path, None)
                self._timestamps.pop(path, None)
            else:
                self._cache.clear()
                self._timestamps.clear()


_config_cache = CachedConfig(ttl_seconds=CONFIG_CACHE_TTL)


def load_json_cached(path: str) -> Dict[str, Any]:
    return _config_cache.get_json(path)


def load_oracle_trust_store(path: Optional[str] = None) -> Dict[str, Any]:
    """Load the oracle trust store JSON with caching."""
    return load_json_cached(path or ORACLE_TRUST_STORE_PATH)


def invalidate_config_cache() -> None:
    _config_cache.invalidate()


# ============================================================
# Validation
# ============================================================

def validate_config() -> Dict[str, bool]:
    """
    Validate that all required configuration files exist.
    Returns dict of name -> exists.
    """
    paths = {}
    if ORACLE_URL:
        paths["oracle_trust_store"] = ORACLE_TRUST_STORE_PATH
    return {name: Path(path).exists() for name, path in paths.items()}


def pending_ttl() -> Optional[int]:
    """Pending request expiry, or None when disabled."""
    return PENDING_TTL_SECONDS if PENDING_TTL_SECONDS > 0 else None


def is_production() -> bool:
    return ENV == "prod"
