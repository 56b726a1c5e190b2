"""
Shop source.

- Catalog ``/shop``: priority 0.8, daily
- Categories ``/shop/category/<slug>``: priority 0.7, weekly
- Products ``/shop/product/<slug>``: priority 0.8, weekly

Slugs and titles may be localized; an item is listed for a language only
when it has a slug in that language. The canonical path always uses the
default-language slug so translations group together.
"""
import logging
from typing import Dict, List, Optional, Union

from ..content import ShopCatalog, ShopItem, load_provider
from ..languages import extract_base, get_default_language, prefix_path
from ..runtime import CollectOptions
from ..url_entry import UrlEntry
from .base import SitemapSource

logger = logging.getLogger(__name__)

Localized = Union[Dict[str, str], str, None]


def localized(value: Localized, language: Optional[str]) -> Optional[str]:
    """Pick the value for a language from a localized dict (exact code, base code, then first)."""
    if isinstance(value, str):
        return value
    if not value:
        return None
    if language:
        if value.get(language):
            return value[language]
        base = extract_base(language)
        if value.get(base):
            return value[base]
        for code, text in value.items():
            if extract_base(code) == base and text:
                return text
    return next(iter(value.values()), None)


def has_slug(item: ShopItem, language: Optional[str]) -> bool:
    if isinstance(item.slug, str):
        return bool(item.slug)
    if not item.slug:
        return False
    if language is None:
        return True
    base = extract_base(language)
    return any(code == language or extract_base(code) == base for code in item.slug)


class ShopSource(SitemapSource):
    name = 'shop'

    def is_enabled(self, options: CollectOptions) -> bool:
        return options.settings.include_shop and load_provider('shop') is not None

    def sitemap_filename(self) -> str:
        return 'sitemap-shop'

    def collect(self, options: CollectOptions) -> List[UrlEntry]:
        catalog = self._catalog()
        if catalog is None or not catalog.enabled:
            return []

        language = options.language or get_default_language().code
        entries = [self._entry('/shop', options, priority=0.8, changefreq='daily',
                               title='Shop', category='Shop')]
        entries.extend(self._items(catalog.categories, 'category', 'Shop > Categories', 0.7, language, options))
        entries.extend(self._items(catalog.products, 'product', 'Shop > Products', 0.8, language, options))
        return entries

    def _catalog(self) -> Optional[ShopCatalog]:
        provider = load_provider('shop')
        if provider is None:
            return None
        try:
            catalog = provider()
        except Exception as e:
            logger.warning(f"Shop sitemap source failed to collect: {e}")
            return None
        return catalog if isinstance(catalog, ShopCatalog) else None

    def _items(self, items: List[ShopItem], kind: str, category: str, priority: float,
               language: str, options: CollectOptions) -> List[UrlEntry]:
        default_language = get_default_language().code
        entries = []
        for item in items:
            if not item.active or not has_slug(item, language):
                continue
            slug = localized(item.slug, language) or str(item.id)
            canonical_slug = localized(item.slug, default_language) or str(item.id)
            entries.append(self._entry(
                f'/shop/{kind}/{slug}',
                options,
                canonical_path=f'/shop/{kind}/{canonical_slug}',
                lastmod=item.updated_at,
                priority=priority,
                changefreq='weekly',
                title=localized(item.title, language) or kind.capitalize(),
                category=category,
            ))
        return entries

    def _entry(self, path: str, options: CollectOptions, canonical_path: Optional[str] = None,
               **fields) -> UrlEntry:
        return UrlEntry(
            loc=self.build_url(prefix_path(path, options.language, options.all_languages), options),
            source=self.name,
            canonical_path=canonical_path or path,
            **fields
        )
