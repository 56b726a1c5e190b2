"""
Runtime settings snapshot and collection options.

The snapshot is read from the ``SitemapConfig`` model on the calling thread
and handed to every source through ``CollectOptions``, so collection running
on worker threads never touches the ORM.
"""
import logging
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Tuple

from django.db import DatabaseError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SitemapSettings:
    enabled: bool = True
    base_url: str = ''
    schedule_enabled: bool = True
    update_frequency: str = 'daily'
    include_static: bool = True
    include_router_discovery: bool = True
    include_posts: bool = True
    include_entities: bool = True
    include_entity_index: bool = True
    include_publishing: bool = True
    include_shop: bool = True
    exclude_patterns: Tuple[str, ...] = ()
    include_only_patterns: Tuple[str, ...] = ()
    protected_pipelines: Tuple[str, ...] = ()
    static_routes: Tuple[dict, ...] = ()
    custom_urls: Tuple[dict, ...] = ()
    entity_patterns: Dict[str, str] = field(default_factory=dict)
    flat_mode: bool = False
    html_enabled: bool = True
    html_style: str = 'hierarchical'
    xsl_enabled: bool = True
    xsl_style: str = 'table'

    @classmethod
    def from_model(cls, config) -> 'SitemapSettings':
        return cls(
            enabled=config.enabled,
            base_url=config.base_url or '',
            schedule_enabled=config.schedule_enabled,
            update_frequency=config.update_frequency,
            include_static=config.include_static,
            include_router_discovery=config.include_router_discovery,
            include_posts=config.include_posts,
            include_entities=config.include_entities,
            include_entity_index=config.include_entity_index,
            include_publishing=config.include_publishing,
            include_shop=config.include_shop,
            exclude_patterns=tuple(_as_list(config.exclude_patterns)),
            include_only_patterns=tuple(_as_list(config.include_only_patterns)),
            protected_pipelines=tuple(_as_list(config.protected_pipelines)),
            static_routes=tuple(_as_list(config.static_routes)),
            custom_urls=tuple(_as_list(config.custom_urls)),
            entity_patterns=dict(config.entity_patterns or {}),
            flat_mode=config.flat_mode,
            html_enabled=config.html_enabled,
            html_style=config.html_style,
            xsl_enabled=config.xsl_enabled,
            xsl_style=config.xsl_style,
        )


def _as_list(value) -> list:
    return list(value) if isinstance(value, (list, tuple)) else []


def load_settings() -> SitemapSettings:
    """
    Read the runtime configuration.

    Falls back to defaults when the database is not ready (during migrations
    or before the table exists).
    """
    from ..models import SitemapConfig

    try:
        config = SitemapConfig.objects.first()
    except DatabaseError as e:
        logger.warning(f"Could not load sitemap configuration, using defaults: {e}")
        return SitemapSettings()

    if config is None:
        return SitemapSettings()
    return SitemapSettings.from_model(config)


@dataclass(frozen=True)
class CollectOptions:
    """
    Options passed to ``collect``.

    ``language`` is None in single-language mode. ``force`` skips the
    ``is_enabled`` check in the registry.
    """
    base_url: str
    language: Optional[str] = None
    is_default_language: bool = True
    all_languages: Tuple[str, ...] = ()
    force: bool = False
    settings: SitemapSettings = field(default_factory=SitemapSettings)

    def for_language(self, language: str, is_default: bool, all_languages: List[str]) -> 'CollectOptions':
        return replace(
            self,
            language=language,
            is_default_language=is_default,
            all_languages=tuple(all_languages),
        )

    def build_url(self, path: str) -> str:
        """Join the base URL and an absolute path."""
        if not path.startswith('/'):
            path = '/' + path
        return f"{self.base_url.rstrip('/')}{path}"
