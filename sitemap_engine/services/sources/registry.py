"""
Source registry.

Loads the configured sources and runs them behind an isolation boundary:
a source that is malformed, raises, or returns garbage contributes zero
entries and a warning, never an exception.
"""
import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from django.utils.module_loading import import_string

from ...conf import engine_settings
from ...exceptions import InvalidSourceOutput, SourceContractError
from ..runtime import CollectOptions
from ..url_entry import UrlEntry
from .base import SitemapSource, SubSitemapSource

logger = logging.getLogger(__name__)

SourceSpec = Union[str, type, SitemapSource]


@dataclass
class SourceResult:
    """Outcome of collecting one source: entries, or the reason it failed."""
    source: str
    entries: List[UrlEntry] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, source: str, entries: List[UrlEntry]) -> 'SourceResult':
        return cls(source=source, entries=entries)

    @classmethod
    def failure(cls, source: str, reason: str) -> 'SourceResult':
        return cls(source=source, error=reason)


@dataclass
class CollectionReport:
    """Entries from every source in order, plus warnings from the failed ones."""
    entries: List[UrlEntry] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    results: List[SourceResult] = field(default_factory=list)

    def add(self, result: SourceResult) -> None:
        self.results.append(result)
        if result.ok:
            self.entries.extend(result.entries)
        else:
            self.warnings.append(f"{result.source}: {result.error}")

    def extend(self, other: 'CollectionReport') -> None:
        for result in other.results:
            self.add(result)
        for warning in other.warnings:
            if warning not in self.warnings:
                self.warnings.append(warning)


def source_label(source) -> str:
    try:
        name = source.source_name()
        if name:
            return str(name)
    except Exception:
        return type(source).__name__
    return type(source).__name__


class SourceRegistry:
    """
    Holds the configured sources and dispatches collection to them.
    """

    def __init__(self, sources: Optional[Sequence[SourceSpec]] = None):
        """
        Initialize the registry.

        Args:
            sources: Source instances, classes or dotted paths. Defaults to
                ``SITEMAP_ENGINE['SOURCES']``.
        """
        self.load_warnings: List[str] = []
        specs = engine_settings.SOURCES if sources is None else sources
        self.sources: List[SitemapSource] = self._load(specs)

    def _load(self, specs: Iterable[SourceSpec]) -> List[SitemapSource]:
        loaded = []
        for spec in specs:
            try:
                obj = import_string(spec) if isinstance(spec, str) else spec
                source = obj() if isinstance(obj, type) else obj
                self.validate(source)
            except Exception as e:
                message = f"Skipping sitemap source {spec!r}: {e}"
                logger.warning(message)
                self.load_warnings.append(message)
                continue
            loaded.append(source)
        return loaded

    @staticmethod
    def validate(source) -> None:
        """Raise SourceContractError unless ``source`` implements the source contract."""
        if not isinstance(source, SitemapSource):
            raise SourceContractError(f"{type(source).__name__} is not a SitemapSource")

    @staticmethod
    def is_enabled(source: SitemapSource, options: CollectOptions) -> bool:
        try:
            return bool(source.is_enabled(options))
        except Exception as e:
            logger.warning(f"Sitemap source {source_label(source)} failed its enabled check: {e}")
            return False

    def enabled_sources(self, options: CollectOptions) -> List[SitemapSource]:
        return [source for source in self.sources if self.is_enabled(source, options)]

    def get(self, name: str) -> Optional[SitemapSource]:
        for source in self.sources:
            if source_label(source) == name:
                return source
        return None

    def safe_collect(self, source, options: CollectOptions) -> SourceResult:
        """
        Collect one source without letting it fail the run.

        Checks the contract, then ``is_enabled`` (skipped when ``options.force``
        is set), then calls ``collect`` and validates its output.

        Args:
            source: The source to collect
            options: Collection options

        Returns:
            SourceResult: The entries, or the reason the source contributed none
        """
        label = source_label(source)
        try:
            self.validate(source)
        except SourceContractError as e:
            logger.warning(f"Invalid sitemap source {label}: {e}")
            return SourceResult.failure(label, str(e))

        if not options.force and not self.is_enabled(source, options):
            return SourceResult.success(label, [])

        try:
            entries = source.collect(options)
            entries = self._check_output(entries)
        except Exception as e:
            logger.warning(f"Sitemap source {label} failed to collect: {e!r}")
            return SourceResult.failure(label, repr(e))

        return SourceResult.success(label, entries)

    @staticmethod
    def _check_output(entries) -> List[UrlEntry]:
        if entries is None:
            return []
        if not isinstance(entries, (list, tuple)):
            raise InvalidSourceOutput(f"collect returned {type(entries).__name__}, expected a list")
        invalid = [entry for entry in entries if not isinstance(entry, UrlEntry)]
        if invalid:
            raise InvalidSourceOutput(f"collect returned {len(invalid)} non-UrlEntry items")
        return list(entries)

    def collect_all(self, options: CollectOptions,
                    sources: Optional[Sequence[SitemapSource]] = None) -> CollectionReport:
        """
        Collect every source sequentially and merge the results.

        Args:
            options: Collection options
            sources: Sources to run; defaults to all registered sources

        Returns:
            CollectionReport: Entries in source order and the warnings of failed sources
        """
        report = CollectionReport()
        for source in (self.sources if sources is None else sources):
            report.add(self.safe_collect(source, options))
        return report

    def safe_sub_sitemaps(self, source: SitemapSource,
                          options: CollectOptions) -> Optional[List[Tuple[str, List[UrlEntry]]]]:
        """
        Return a source's sub-sitemap groups, or None for a single file.

        Failures are logged and treated as "no groups".
        """
        if not isinstance(source, SubSitemapSource):
            return None
        try:
            groups = source.sub_sitemaps(options)
        except Exception as e:
            logger.warning(f"Sitemap source {source_label(source)} failed to build sub-sitemaps: {e!r}")
            return None
        if not groups:
            return None
        checked = []
        for group_name, entries in groups:
            try:
                checked.append((str(group_name), self._check_output(entries)))
            except InvalidSourceOutput as e:
                logger.warning(f"Dropping sub-sitemap {group_name!r} of {source_label(source)}: {e}")
        return checked or None

    @staticmethod
    def safe_filename(source: SitemapSource) -> str:
        try:
            filename = source.sitemap_filename()
            if filename:
                return str(filename)
        except Exception as e:
            logger.warning(f"Sitemap source {source_label(source)} failed to name its file: {e}")
        return f'sitemap-{source_label(source)}'
