"""
Sources with fixed output for generator and registry tests.
"""
from sitemap_engine.services.languages import prefix_path
from sitemap_engine.services.sources.base import SitemapSource, SubSitemapSource
from sitemap_engine.services.url_entry import UrlEntry


class ListSource(SitemapSource):
    """Returns one entry per path, prefixed with the language in multilingual mode."""

    def __init__(self, name, paths, enabled=True, category=None):
        self.name = name
        self.paths = list(paths)
        self.enabled = enabled
        self.category = category
        self.calls = []

    def is_enabled(self, options):
        return self.enabled

    def collect(self, options):
        self.calls.append(options.language)
        return [
            UrlEntry(
                loc=options.build_url(prefix_path(path, options.language, options.all_languages)),
                priority=0.5,
                title=path.strip('/').title() or 'Home',
                category=self.category,
                source=self.name,
                canonical_path=path,
            )
            for path in self.paths
        ]


class FailingSource(SitemapSource):
    name = 'failing'

    def is_enabled(self, options):
        return True

    def collect(self, options):
        raise RuntimeError('database is on fire')


class GarbageSource(SitemapSource):
    name = 'garbage'

    def is_enabled(self, options):
        return True

    def collect(self, options):
        return ['https://example.com/not-an-entry']


class BrokenEnabledSource(ListSource):

    def is_enabled(self, options):
        raise RuntimeError('cannot decide')


class GroupedSource(SubSitemapSource):
    """Splits its paths into groups keyed by the first path segment."""
    name = 'grouped'

    def __init__(self, paths):
        self.paths = list(paths)

    def is_enabled(self, options):
        return True

    def collect(self, options):
        return [entry for _, entries in self.sub_sitemaps(options) for entry in entries]

    def sub_sitemaps(self, options):
        groups = {}
        for path in self.paths:
            groups.setdefault(path.strip('/').split('/')[0], []).append(UrlEntry(
                loc=options.build_url(prefix_path(path, options.language, options.all_languages)),
                source=self.name,
                canonical_path=path,
            ))
        return sorted(groups.items())


class NotASource:
    name = 'impostor'

    def collect(self, options):
        return []
