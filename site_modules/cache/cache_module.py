"""
Cache Module Implementation

In-process key/value cache with namespaces and expiration.
"""

import logging
import threading
import time
from typing import Any, Dict, List, Optional, Tuple

from site_application.module_definition import ApplicationModule, ModuleDependency

logger = logging.getLogger(__name__)

StoredKey = Tuple[Any, ...]


class SiteCacheModule(ApplicationModule):
    """
    Cache module.

    Namespaces are versioned: flushing a namespace bumps its version so all
    keys stored under the old version stop resolving. Expiration is given in
    seconds; zero means the value never expires.
    """

    def __init__(self, app):
        super().__init__(app)
        self.enabled = True
        self.app_ns = ''
        self._values: Dict[StoredKey, Tuple[Any, float]] = {}
        self._ns_versions: Dict[str, int] = {}
        self._lock = threading.RLock()

    def depends(self) -> List[ModuleDependency]:
        depends = super().depends()
        depends.append(ModuleDependency('SiteConfigModule', required=False))
        return depends

    def init(self) -> None:
        if self.app.has_module('SiteConfigModule'):
            config = self.app.get_module('SiteConfigModule')
            self.enabled = bool(config.get('cache.enabled'))
            self.app_ns = config.get('cache.app_ns') or ''

        logger.debug(f"Cache {'enabled' if self.enabled else 'disabled'} (app namespace: '{self.app_ns}')")

    def get(self, key: str) -> Optional[Any]:
        """Get a value, or None if it is missing or expired."""
        return self._get(self._key(key))

    def set(self, key: str, value: Any, expiration: int = 0) -> bool:
        """Store a value."""
        return self._set(self._key(key), value, expiration)

    def delete(self, key: str) -> bool:
        """Delete a value. Returns whether a value was removed."""
        return self._delete(self._key(key))

    def get_ns(self, name_space: str, key: str) -> Optional[Any]:
        return self._get(self._ns_key(name_space, key))

    def set_ns(self, name_space: str, key: str, value: Any, expiration: int = 0) -> bool:
        return self._set(self._ns_key(name_space, key), value, expiration)

    def delete_ns(self, name_space: str, key: str) -> bool:
        return self._delete(self._ns_key(name_space, key))

    def flush_ns(self, name_space: str) -> None:
        """Invalidate every key in a namespace."""
        with self._lock:
            version = self._ns_versions.get(name_space, 0)
            prefix = (self.app_ns, name_space, version)
            for stored_key in [k for k in self._values if len(k) == 4 and k[:3] == prefix]:
                del self._values[stored_key]
            self._ns_versions[name_space] = version + 1

    def clear(self) -> None:
        with self._lock:
            self._values.clear()
            self._ns_versions.clear()

    # Plain keys are (app_ns, key), namespaced keys (app_ns, name_space, version, key)
    def _key(self, key: str) -> StoredKey:
        return (self.app_ns, key)

    def _ns_key(self, name_space: str, key: str) -> StoredKey:
        with self._lock:
            version = self._ns_versions.get(name_space, 0)
        return (self.app_ns, name_space, version, key)

    def _get(self, stored_key: StoredKey) -> Optional[Any]:
        if not self.enabled:
            return None

        with self._lock:
            entry = self._values.get(stored_key)
            if entry is None:
                return None

            value, expires_at = entry
            if expires_at and expires_at <= time.time():
                del self._values[stored_key]
                return None
            return value

    def _set(self, stored_key: StoredKey, value: Any, expiration: int) -> bool:
        if not self.enabled:
            return False

        expires_at = time.time() + expiration if expiration > 0 else 0.0
        with self._lock:
            self._values[stored_key] = (value, expires_at)
        return True

    def _delete(self, stored_key: StoredKey) -> bool:
        with self._lock:
            return self._values.pop(stored_key, None) is not None
