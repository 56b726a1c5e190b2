"""
Posts source.

Lists the posts index and every public post. The source only runs when the
URLconf has a public posts detail route, and only for the default language.
"""
import logging
from typing import List

from ..content import ContentRecord, load_provider
from ..languages import prefix_path
from ..route_resolver import RouteResolver, extract_prefix
from ..runtime import CollectOptions
from ..url_entry import UrlEntry
from .base import SitemapSource

logger = logging.getLogger(__name__)


class PostsSource(SitemapSource):
    name = 'posts'

    def is_enabled(self, options: CollectOptions) -> bool:
        return options.settings.include_posts and load_provider('posts') is not None

    def collect(self, options: CollectOptions) -> List[UrlEntry]:
        if not options.is_default_language:
            return []

        resolver = RouteResolver(extra_protected_pipelines=options.settings.protected_pipelines)
        route = resolver.find_content_route_descriptor('posts')
        if route is None:
            logger.debug("No public posts route found, skipping posts source")
            return []
        if resolver.route_requires_auth(route):
            logger.debug("Posts route requires authentication, skipping")
            return []

        entries = [self._index_entry(route.path, options)]
        entries.extend(self._post_entries(route.path, options))
        return entries

    def _path(self, canonical_path: str, options: CollectOptions) -> str:
        return prefix_path(canonical_path, options.language, options.all_languages)

    def _index_entry(self, pattern: str, options: CollectOptions) -> UrlEntry:
        canonical_path = index_path(pattern)
        return UrlEntry(
            loc=self.build_url(self._path(canonical_path, options), options),
            changefreq='daily',
            priority=0.7,
            title='Posts',
            category='Posts',
            source=self.name,
            canonical_path=canonical_path,
        )

    def _post_entries(self, pattern: str, options: CollectOptions) -> List[UrlEntry]:
        provider = load_provider('posts')
        if provider is None:
            return []
        try:
            posts = list(provider())
        except Exception as e:
            logger.warning(f"Failed to collect posts: {e}")
            return []

        entries = []
        for post in posts:
            if not isinstance(post, ContentRecord) or post.excluded:
                continue
            canonical_path = build_path(pattern, post)
            if ':' in canonical_path or '*' in canonical_path:
                continue
            entries.append(UrlEntry(
                loc=self.build_url(self._path(canonical_path, options), options),
                lastmod=post.updated_at or post.published_at,
                changefreq='weekly',
                priority=0.8,
                title=post.title,
                category='Posts',
                source=self.name,
                canonical_path=canonical_path,
            ))
        return entries


def index_path(pattern: str) -> str:
    """``/posts/:slug/`` -> ``/posts/``"""
    prefix = extract_prefix(pattern)
    if pattern.endswith('/') and not prefix.endswith('/'):
        return prefix + '/'
    return prefix


def build_path(pattern: str, record: ContentRecord) -> str:
    return pattern.replace(':slug', record.url_slug).replace(':id', str(record.id))
