"""
Source contract.

Every content source subclasses ``SitemapSource``. Sources that split their
output into named groups additionally subclass ``SubSitemapSource``; the
registry checks for that class instead of probing for methods.
"""
from abc import ABC, abstractmethod
from typing import List, Optional, Tuple

from ..runtime import CollectOptions
from ..url_entry import UrlEntry


class SitemapSource(ABC):
    """
    A pluggable collector of sitemap entries for one content domain.

    ``is_enabled`` must not raise. ``collect`` returns ``[]`` on internal
    failure; the registry still guards against sources that break this.
    """

    #: Identifier used for diagnostics, grouping and the default filename
    name: str = ''

    def source_name(self) -> str:
        return self.name

    @abstractmethod
    def is_enabled(self, options: CollectOptions) -> bool:
        """Whether the source should contribute entries for this run."""

    @abstractmethod
    def collect(self, options: CollectOptions) -> List[UrlEntry]:
        """Return the entries of this source for ``options.language``."""

    def sitemap_filename(self) -> str:
        """Base name of the per-source sitemap file."""
        return f'sitemap-{self.source_name()}'

    def build_url(self, path: str, options: CollectOptions) -> str:
        return options.build_url(path)


class SubSitemapSource(SitemapSource):
    """A source that splits its output into named sub-sitemaps."""

    @abstractmethod
    def sub_sitemaps(self, options: CollectOptions) -> Optional[List[Tuple[str, List[UrlEntry]]]]:
        """
        Return ``(group_name, entries)`` pairs, or None to use a single file.

        Group files are named ``{sitemap_filename()}-{group_name}``.
        """
