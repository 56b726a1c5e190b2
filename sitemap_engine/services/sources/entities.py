"""
Entities source.

Lists the published records of every entity type, plus an index page per
type. The URL pattern of a type is resolved in this order:

1. ``sitemap_url_pattern`` in the entity type's own settings
2. A detail route of the URLconf whose path names the entity (``/product/``
   or ``/products/``), then a catch-all ``/:name/:slug`` route
3. ``entity_patterns[<name>]`` in the sitemap configuration
4. ``entity_patterns['*']`` with ``:entity_name`` substituted
5. Nothing: the type is skipped

Only the default language is collected; entity records are not translated.
"""
import logging
from typing import List, Optional, Tuple

from ..content import EntityType, load_provider
from ..languages import prefix_path
from ..route_resolver import Route, RouteResolver
from ..runtime import CollectOptions
from ..url_entry import UrlEntry
from .base import SubSitemapSource

logger = logging.getLogger(__name__)

GLOBAL_PATTERN_KEY = '*'


class EntitiesSource(SubSitemapSource):
    name = 'entities'

    def is_enabled(self, options: CollectOptions) -> bool:
        return options.settings.include_entities and load_provider('entities') is not None

    def collect(self, options: CollectOptions) -> List[UrlEntry]:
        entries = []
        for _, group_entries in self._collect_groups(options):
            entries.extend(group_entries)
        return entries

    def sub_sitemaps(self, options: CollectOptions) -> Optional[List[Tuple[str, List[UrlEntry]]]]:
        groups = [(name, entries) for name, entries in self._collect_groups(options) if entries]
        return groups or None

    def _collect_groups(self, options: CollectOptions) -> List[Tuple[str, List[UrlEntry]]]:
        if not options.is_default_language:
            return []

        provider = load_provider('entities')
        if provider is None:
            return []
        try:
            entity_types = list(provider())
        except Exception as e:
            logger.warning(f"Entities sitemap source failed to collect: {e}")
            return []

        resolver = RouteResolver(extra_protected_pipelines=options.settings.protected_pipelines)
        routes = resolver.get_routes()

        groups = []
        for entity in entity_types:
            if not isinstance(entity, EntityType):
                continue
            try:
                groups.append((entity.name, self._collect_entity(entity, resolver, routes, options)))
            except Exception as e:
                logger.warning(f"Failed to collect records for entity {entity.name}: {e}")
        return groups

    def _collect_entity(self, entity: EntityType, resolver: RouteResolver,
                        routes: List[Route], options: CollectOptions) -> List[UrlEntry]:
        route = resolver.find_content_route_descriptor('entity', entity.name, routes=routes)
        if route is not None and resolver.route_requires_auth(route):
            logger.debug(f"Entity '{entity.name}' skipped - routes require authentication")
            return []

        pattern = self.url_pattern(entity, resolver, routes, options)
        if not pattern:
            logger.debug(f"Entity '{entity.name}' skipped - no URL pattern found")
            return []

        entries = []
        if options.settings.include_entity_index:
            index_entry = self._index_entry(entity, resolver, routes, options)
            if index_entry is not None:
                entries.append(index_entry)

        for record in entity.records:
            if record.excluded:
                continue
            canonical_path = pattern.replace(':slug', record.url_slug).replace(':id', str(record.id))
            entries.append(UrlEntry(
                loc=self.build_url(self._path(canonical_path, options), options),
                lastmod=record.updated_at,
                changefreq='weekly',
                priority=0.8,
                title=record.title,
                category=entity.label,
                source=self.name,
                canonical_path=canonical_path,
            ))

        logger.debug(f"Entity '{entity.name}' using URL pattern {pattern} ({len(entity.records)} records)")
        return entries

    @staticmethod
    def url_pattern(entity: EntityType, resolver: RouteResolver, routes: List[Route],
                    options: CollectOptions) -> Optional[str]:
        """Resolve the detail URL pattern of an entity type, or None."""
        pattern = (entity.settings or {}).get('sitemap_url_pattern')
        if pattern:
            return pattern

        pattern = resolver.find_content_route('entity', entity.name, routes=routes)
        if pattern:
            return pattern

        entity_patterns = options.settings.entity_patterns or {}
        pattern = entity_patterns.get(entity.name)
        if pattern:
            return pattern

        global_pattern = entity_patterns.get(GLOBAL_PATTERN_KEY)
        if global_pattern:
            return global_pattern.replace(':entity_name', entity.name)
        return None

    @staticmethod
    def index_path(entity: EntityType, resolver: RouteResolver, routes: List[Route]) -> Optional[str]:
        path = (entity.settings or {}).get('sitemap_index_path')
        if path:
            return path
        return resolver.find_index_route('entity', entity.name, routes=routes)

    def _index_entry(self, entity: EntityType, resolver: RouteResolver, routes: List[Route],
                     options: CollectOptions) -> Optional[UrlEntry]:
        canonical_path = self.index_path(entity, resolver, routes)
        if not canonical_path:
            return None
        return UrlEntry(
            loc=self.build_url(self._path(canonical_path, options), options),
            lastmod=entity.updated_at or entity.created_at,
            changefreq='daily',
            priority=0.7,
            title=f"{entity.display_name or entity.name.capitalize()} - Index",
            category=entity.label,
            source=self.name,
            canonical_path=canonical_path,
        )

    @staticmethod
    def _path(canonical_path: str, options: CollectOptions) -> str:
        return prefix_path(canonical_path, options.language, options.all_languages)
