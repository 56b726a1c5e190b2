"""
Static routes source.

Lists the homepage, configured static routes and custom URLs. A static
route names either an explicit ``path`` or a ``view`` (dotted view path or
URL name) resolved through the RouteResolver; routes that resolve to
nothing are skipped.
"""
import logging
from typing import List

from ...conf import get_url_prefix
from ..route_resolver import RouteResolver
from ..runtime import CollectOptions
from ..url_entry import UrlEntry
from .base import SitemapSource

logger = logging.getLogger(__name__)

DEFAULT_STATIC_ROUTES = [
    {
        'path': '/',
        'priority': 0.9,
        'changefreq': 'daily',
        'title': 'Home',
        'category': 'Main',
        'prefixed': False,
    },
    {
        'view': 'register',
        'priority': 0.7,
        'changefreq': 'monthly',
        'title': 'Register',
        'category': 'Authentication',
        'prefixed': True,
    },
    {
        'view': 'login',
        'priority': 0.7,
        'changefreq': 'monthly',
        'title': 'Login',
        'category': 'Authentication',
        'prefixed': True,
    },
]


class StaticSource(SitemapSource):
    name = 'static'

    def is_enabled(self, options: CollectOptions) -> bool:
        return options.settings.include_static

    def collect(self, options: CollectOptions) -> List[UrlEntry]:
        if not options.is_default_language:
            return []

        routes_config = list(options.settings.static_routes) or DEFAULT_STATIC_ROUTES
        resolver = RouteResolver(extra_protected_pipelines=options.settings.protected_pipelines)
        routes = None

        entries = []
        for config in routes_config:
            if not isinstance(config, dict):
                continue
            path = config.get('path')
            if path and config.get('prefixed'):
                path = _with_prefix(path)
            if not path and config.get('view'):
                if routes is None:
                    routes = resolver.get_routes()
                path = resolver.find_route(config['view'], routes=routes)
            if not path:
                logger.debug(f"Static route {config!r} did not resolve, skipping")
                continue
            entries.append(self._build_entry(config, path, options, category='Static'))

        for config in options.settings.custom_urls:
            if isinstance(config, dict) and config.get('path'):
                entries.append(self._build_entry(config, config['path'], options,
                                                 category='Custom'))

        return entries

    def _build_entry(self, config: dict, path: str, options: CollectOptions, category: str) -> UrlEntry:
        return UrlEntry(
            loc=self.build_url(path, options),
            changefreq=config.get('changefreq', 'weekly'),
            priority=config.get('priority', 0.5),
            title=config.get('title', path),
            category=config.get('category', category),
            source=self.name,
        )


def _with_prefix(path: str) -> str:
    prefix = get_url_prefix()
    if not prefix:
        return path
    return prefix + ('/' + path.lstrip('/') if path != '/' else '/')
