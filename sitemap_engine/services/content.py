"""
Read interfaces to the content collaborators.

The engine never queries content tables itself. Each content domain is read
through a provider: a callable configured by dotted path in
``SITEMAP_ENGINE['PROVIDERS']`` that returns the records below.

- ``posts()`` -> iterable of ``ContentRecord``
- ``entities()`` -> iterable of ``EntityType``
- ``publishing()`` -> iterable of ``PublishingGroup``
- ``shop()`` -> ``ShopCatalog``
"""
import logging
from dataclasses import dataclass, field
import datetime
from typing import Any, Callable, Dict, List, Optional, Union

from django.utils.module_loading import import_string

from ..conf import engine_settings

logger = logging.getLogger(__name__)

Timestamp = Union[datetime.datetime, datetime.date, str, None]


def is_excluded(metadata: Optional[Dict[str, Any]]) -> bool:
    """True when a metadata dict carries ``sitemap_exclude`` set to true."""
    if not metadata:
        return False
    return metadata.get('sitemap_exclude') in (True, 'true')


@dataclass
class ContentRecord:
    """A published record: a post or an entity record."""
    id: Any
    slug: Optional[str] = None
    title: Optional[str] = None
    updated_at: Timestamp = None
    published_at: Timestamp = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def excluded(self) -> bool:
        return is_excluded(self.metadata)

    @property
    def url_slug(self) -> str:
        return self.slug or str(self.id)


@dataclass
class EntityType:
    """
    A custom content type with its published records.

    ``settings`` may carry ``sitemap_url_pattern`` (e.g. ``/products/:slug``)
    and ``sitemap_index_path`` overrides.
    """
    name: str
    display_name: Optional[str] = None
    settings: Dict[str, Any] = field(default_factory=dict)
    updated_at: Timestamp = None
    created_at: Timestamp = None
    records: List[ContentRecord] = field(default_factory=list)

    @property
    def label(self) -> str:
        return self.display_name or self.name


@dataclass
class PublishingPost:
    """
    A post of a publishing group.

    ``mode`` is ``slug`` (URL ends in the slug) or ``timestamp`` (URL ends in
    the publication date, plus the time when several posts share a date).
    """
    slug: Optional[str] = None
    title: Optional[str] = None
    mode: str = 'slug'
    status: str = 'draft'
    date: Union[datetime.date, str, None] = None
    time: Union[datetime.time, str, None] = None
    updated_at: Timestamp = None
    published_at: Timestamp = None
    path: Optional[str] = None
    available_languages: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def published(self) -> bool:
        return self.status == 'published'

    @property
    def excluded(self) -> bool:
        return is_excluded(self.metadata)


@dataclass
class PublishingGroup:
    slug: str
    name: str
    posts: List[PublishingPost] = field(default_factory=list)
    settings: Dict[str, Any] = field(default_factory=dict)

    @property
    def excluded(self) -> bool:
        return is_excluded(self.settings)


@dataclass
class ShopItem:
    """
    A shop category or product.

    ``slug`` and ``title`` are either plain strings or dicts keyed by
    language code (base or dialect).
    """
    id: Any
    slug: Union[Dict[str, str], str, None] = None
    title: Union[Dict[str, str], str, None] = None
    updated_at: Timestamp = None
    active: bool = True


@dataclass
class ShopCatalog:
    categories: List[ShopItem] = field(default_factory=list)
    products: List[ShopItem] = field(default_factory=list)
    enabled: bool = True


def load_provider(name: str) -> Optional[Callable]:
    """
    Return the provider callable configured for ``name``, or None.

    Args:
        name: Provider key (posts, entities, publishing, shop)

    Returns:
        The imported callable, or None when unset or not importable
    """
    path = engine_settings.PROVIDERS.get(name)
    if not path:
        return None
    if callable(path):
        return path
    try:
        return import_string(path)
    except ImportError as e:
        logger.warning(f"Could not import {name} provider '{path}': {e}")
        return None
