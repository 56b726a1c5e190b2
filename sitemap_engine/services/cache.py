"""
Cache service for generated sitemap output.

Wraps a Django cache backend. The regeneration job is the only writer;
views and the generator read. Values are replaced whole, so no locking is
needed. ``invalidate`` is the single path that purges stale output.
"""
import logging
from typing import Any, Iterable, Optional

from django.core.cache import caches
from django.core.cache.backends.base import InvalidCacheBackendError

from ..conf import engine_settings
from .html_renderer import HTML_STYLES

logger = logging.getLogger(__name__)

XML_KEY = 'xml'
PARTS_KEY = 'parts'
MODULES_KEY = 'modules'
MODULE_KEY_PREFIX = 'module:'

# Keys written by earlier releases; purged together with the current ones.
LEGACY_KEYS = ('sitemap_xml_cache', 'sitemap_html_cache', 'html')


def html_key(style: str) -> str:
    return f'html_{style}'


KNOWN_KEYS = (XML_KEY, PARTS_KEY, MODULES_KEY) + tuple(html_key(style) for style in HTML_STYLES)


class SitemapCache:
    """
    Key/value store for sitemap documents.

    Lifecycle: ``open()`` binds the backend (idempotent), ``close()`` releases
    it. Values never expire on their own; they live until ``invalidate``.
    """

    def __init__(self, alias: Optional[str] = None, key_prefix: Optional[str] = None):
        self.alias = alias or engine_settings.CACHE_ALIAS
        self.key_prefix = key_prefix or engine_settings.CACHE_KEY_PREFIX
        self._backend = None

    def open(self) -> 'SitemapCache':
        """Bind the cache backend. Calling it again is a no-op."""
        if self._backend is None:
            try:
                self._backend = caches[self.alias]
            except InvalidCacheBackendError:
                logger.warning(f"Cache alias '{self.alias}' not configured, using 'default'")
                self._backend = caches['default']
        return self

    # Same operation under the name used by callers that think in tables
    init = open

    def close(self) -> None:
        if self._backend is not None:
            self._backend.close()
            self._backend = None

    @property
    def backend(self):
        if self._backend is None:
            self.open()
        return self._backend

    def _key(self, key: str) -> str:
        return f'{self.key_prefix}:{key}'

    def get(self, key: str, default: Any = None) -> Any:
        return self.backend.get(self._key(key), default)

    def put(self, key: str, value: Any) -> None:
        self.backend.set(self._key(key), value, timeout=None)

    def has(self, key: str) -> bool:
        return self.backend.has_key(self._key(key))

    def delete(self, key: str) -> None:
        self.backend.delete(self._key(key))

    def put_module(self, filename: str, xml: str) -> None:
        """Cache a per-source sitemap file and remember its name for invalidation."""
        self.put(MODULE_KEY_PREFIX + filename, xml)
        modules = set(self.get(MODULES_KEY) or [])
        if filename not in modules:
            modules.add(filename)
            self.put(MODULES_KEY, sorted(modules))

    def get_module(self, filename: str) -> Optional[str]:
        return self.get(MODULE_KEY_PREFIX + filename)

    def invalidate(self) -> None:
        """Remove every known key, legacy aliases and cached module files included."""
        module_keys = [MODULE_KEY_PREFIX + name for name in (self.get(MODULES_KEY) or [])]
        keys: Iterable[str] = list(KNOWN_KEYS) + list(LEGACY_KEYS) + module_keys
        self.backend.delete_many([self._key(key) for key in keys])
        logger.debug(f"Invalidated {len(module_keys)} module entries and all sitemap keys")


def app_cache() -> SitemapCache:
    """The cache instance opened by the app at startup."""
    from django.apps import apps

    return apps.get_app_config('sitemap_engine').cache
