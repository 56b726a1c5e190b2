"""
Router Discovery source.

Lists every public GET route of the URLconf that has no parameters, filtered
by exclude / include-only regexes and by authentication protection.
"""
import logging
import re
from typing import List

from ..route_resolver import Route, RouteResolver
from ..runtime import CollectOptions
from ..url_entry import UrlEntry
from .base import SitemapSource

logger = logging.getLogger(__name__)

DEFAULT_EXCLUDE_PATTERNS = [
    r'^/admin',
    r'^/api',
    r'^/dev',
    r'^/test',
    r'^/dashboard',
    r':[a-z_]+',
    r'\*',
    r'/accounts/',
    r'/login',
    r'/logout',
    r'/register',
    r'/password',
    r'/checkout',
    r'/cart',
    r'/health',
    r'/ready',
    r'/sitemap',
    r'/sitemaps/',
    r'/assets/',
    r'/robots\.txt',
    r'^/$',
]


def _compile(patterns) -> List[re.Pattern]:
    compiled = []
    for pattern in patterns:
        try:
            compiled.append(re.compile(pattern))
        except (re.error, TypeError) as e:
            logger.warning(f"Ignoring invalid route pattern {pattern!r}: {e}")
    return compiled


def title_from_route(route: Route) -> str:
    """Derive a display title from the view name: ``AboutPageView`` -> ``About Page View``."""
    name = route.handler.rsplit('.', 1)[-1]
    if name.islower():
        return name.replace('_', ' ').title()
    return re.sub(r'(?<!^)([A-Z])', r' \1', name).strip()


class RouterDiscoverySource(SitemapSource):
    name = 'router_discovery'

    def is_enabled(self, options: CollectOptions) -> bool:
        return options.settings.include_router_discovery

    def sitemap_filename(self) -> str:
        return 'sitemap-routes'

    def collect(self, options: CollectOptions) -> List[UrlEntry]:
        if not options.is_default_language:
            return []

        settings = options.settings
        exclude = _compile(settings.exclude_patterns or DEFAULT_EXCLUDE_PATTERNS)
        include_only = _compile(settings.include_only_patterns)
        resolver = RouteResolver(extra_protected_pipelines=settings.protected_pipelines)

        entries = []
        seen = set()
        for route in resolver.get_routes():
            if not self._valid_for_sitemap(route, exclude, include_only, resolver):
                continue
            entry = UrlEntry(
                loc=self.build_url(route.path, options),
                changefreq='weekly',
                priority=0.5,
                title=title_from_route(route),
                category='Routes',
                source=self.name,
            )
            if entry.loc in seen:
                continue
            seen.add(entry.loc)
            entries.append(entry)

        logger.debug(f"Router discovery found {len(entries)} public routes")
        return entries

    @staticmethod
    def _valid_for_sitemap(route: Route, exclude, include_only, resolver: RouteResolver) -> bool:
        if not route.is_get or route.has_params:
            return False
        if any(pattern.search(route.path) for pattern in exclude):
            return False
        if include_only and not any(pattern.search(route.path) for pattern in include_only):
            return False
        return not resolver.route_requires_auth(route)
