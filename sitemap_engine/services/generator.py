"""
Sitemap Generator Service.

Collects entries from every enabled source, deduplicates them, attaches
hreflang alternates in multilingual mode and serializes the result:

- ``generate_xml``: one ``<urlset>``, or a ``<sitemapindex>`` plus numbered
  parts when the URL count exceeds ``MAX_URLS_PER_FILE``. Cached.
- ``generate_html``: the same entries rendered as an HTML page. Cached per style.
- ``generate_all``: one file per source (or per sub-sitemap group) written to
  file storage, referenced from a ``<sitemapindex>``. In flat mode a single
  ``<urlset>`` is written instead.
"""
import logging
import math
import os
import time
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone as dt_timezone
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from django.db import connections

from ..conf import engine_settings, get_url_prefix
from .cache import MODULES_KEY, PARTS_KEY, XML_KEY, SitemapCache, app_cache, html_key
from .file_storage import INDEX_FILENAME, SitemapFileStorage
from .html_renderer import HTML_STYLES, HtmlRenderer
from .languages import (Language, display_code, extract_base, get_enabled_languages,
                        language_from_url)
from .runtime import CollectOptions, SitemapSettings, load_settings
from .sources.base import SitemapSource
from .sources.registry import CollectionReport, SourceRegistry
from .url_entry import Alternate, UrlEntry, escape_xml, format_lastmod, latest_lastmod

logger = logging.getLogger(__name__)

XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>'
URLSET_OPEN = ('<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9" '
               'xmlns:xhtml="http://www.w3.org/1999/xhtml">')
URLSET_CLOSE = '</urlset>'
SITEMAPINDEX_OPEN = '<sitemapindex xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">'
SITEMAPINDEX_CLOSE = '</sitemapindex>'

XSL_STYLES = ('table', 'cards', 'minimal')

BASE_URL_REQUIRED = 'base_url_required'
INVALID_STYLE = 'invalid_style'
SITEMAP_DISABLED = 'sitemap_disabled'

# Seconds between checks of per-language deadlines
FAN_OUT_POLL_INTERVAL = 0.05


@dataclass
class SitemapPart:
    """One part of a split sitemap, retrievable by its 1-based index."""
    index: int
    loc: str
    lastmod: datetime
    xml: str
    url_count: int


@dataclass
class SitemapFile:
    """A file written by ``generate_all``."""
    filename: str
    url_count: int
    lastmod: datetime


@dataclass
class GenerationResult:
    """
    Result of a generator call.

    ``error`` is one of ``base_url_required``, ``invalid_style`` or
    ``sitemap_disabled``; everything else degrades to fewer entries.
    """
    xml: Optional[str] = None
    html: Optional[str] = None
    parts: List[SitemapPart] = field(default_factory=list)
    files: List[SitemapFile] = field(default_factory=list)
    url_count: int = 0
    warnings: List[str] = field(default_factory=list)
    cached: bool = False
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def is_index(self) -> bool:
        return bool(self.parts)

    @classmethod
    def failure(cls, error: str) -> 'GenerationResult':
        return cls(error=error)


def stylesheet_line(style: Optional[str], kind: str = 'sitemap') -> Optional[str]:
    """
    Return the xml-stylesheet processing instruction for a style, or None.

    Args:
        style: One of XSL_STYLES; anything else yields no line
        kind: ``sitemap`` for urlsets, ``sitemap-index`` for index documents
    """
    if style not in XSL_STYLES:
        return None
    href = f"{get_url_prefix()}/assets/{kind}/{style}"
    return f'<?xml-stylesheet type="text/xsl" href="{href}"?>'


def with_stylesheet(xml: str, style: Optional[str]) -> str:
    """Replace the stylesheet line of a generated document with the one for ``style``."""
    lines = [line for line in xml.split('\n') if not line.startswith('<?xml-stylesheet')]
    kind = 'sitemap-index' if any(line.startswith('<sitemapindex') for line in lines[:3]) else 'sitemap'
    line = stylesheet_line(style, kind)
    if line:
        lines.insert(1, line)
    return '\n'.join(lines)


def build_urlset(entries: Sequence[UrlEntry], xsl_style: Optional[str] = None) -> str:
    """Serialize entries as a ``<urlset>`` document."""
    xml = [XML_DECLARATION]
    line = stylesheet_line(xsl_style, 'sitemap')
    if line:
        xml.append(line)
    xml.append(URLSET_OPEN)
    xml.extend(entry.to_xml() for entry in entries)
    xml.append(URLSET_CLOSE)
    return '\n'.join(xml)


def build_sitemapindex(references: Sequence[Tuple[str, Optional[datetime]]],
                       xsl_style: Optional[str] = None) -> str:
    """Serialize ``(loc, lastmod)`` pairs as a ``<sitemapindex>`` document."""
    xml = [XML_DECLARATION]
    line = stylesheet_line(xsl_style, 'sitemap-index')
    if line:
        xml.append(line)
    xml.append(SITEMAPINDEX_OPEN)
    for loc, lastmod in references:
        xml.append('  <sitemap>')
        xml.append(f'    <loc>{escape_xml(loc)}</loc>')
        xml.append(f'    <lastmod>{format_lastmod(lastmod or datetime.now(dt_timezone.utc))}</lastmod>')
        xml.append('  </sitemap>')
    xml.append(SITEMAPINDEX_CLOSE)
    return '\n'.join(xml)


def chunk(entries: Sequence[UrlEntry], size: int) -> List[List[UrlEntry]]:
    return [list(entries[i:i + size]) for i in range(0, len(entries), size)]


def dedupe(entries: Sequence[UrlEntry]) -> List[UrlEntry]:
    """Drop repeated locations keeping the first occurrence, then sort by location."""
    seen = set()
    unique = []
    for entry in entries:
        if entry.loc in seen:
            continue
        seen.add(entry.loc)
        unique.append(entry)
    return sorted(unique, key=lambda entry: entry.loc)


def attach_alternates(entries: Sequence[UrlEntry], languages: Sequence[Language], base_url: str) -> None:
    """
    Attach hreflang alternates to entries that share a canonical path.

    Every entry of a group gets one alternate per entry in the group (language
    taken from the URL's language segment) plus ``x-default`` pointing at the
    default-language entry. Entries without a canonical path are left alone.
    """
    codes = [language.code for language in languages]
    default_base = next((language.base_code for language in languages if language.is_default),
                        extract_base(None))
    non_default_segments = set()
    for language in languages:
        if not language.is_default:
            non_default_segments.update({language.code, display_code(language.code, codes)})

    groups: Dict[str, List[UrlEntry]] = {}
    for entry in entries:
        if entry.canonical_path:
            groups.setdefault(entry.canonical_path, []).append(entry)

    for group in groups.values():
        default_entry = next(
            (entry for entry in group
             if not any(f'/{segment}/' in entry.loc for segment in non_default_segments)),
            group[0],
        )
        alternates = []
        seen_hrefs = set()
        for entry in group:
            if entry.loc in seen_hrefs:
                continue
            seen_hrefs.add(entry.loc)
            alternates.append(Alternate(language_from_url(entry.loc, base_url, default_base), entry.loc))
        alternates.append(Alternate('x-default', default_entry.loc))
        for entry in group:
            entry.alternates = list(alternates)


class Generator:
    """
    Service for generating sitemaps from the registered sources.
    """

    def __init__(self, registry: Optional[SourceRegistry] = None, cache: Optional[SitemapCache] = None,
                 storage: Optional[SitemapFileStorage] = None, html_renderer: Optional[HtmlRenderer] = None,
                 max_urls_per_file: Optional[int] = None, language_timeout: Optional[float] = None):
        """
        Initialize the generator.

        Args:
            registry: The source registry to collect from
            cache: The cache service for generated output
            storage: File storage for ``generate_all``
            html_renderer: Renderer for HTML sitemaps
            max_urls_per_file: URL limit per document (defaults to MAX_URLS_PER_FILE)
            language_timeout: Seconds each language may take in multilingual mode
        """
        self.registry = registry or SourceRegistry()
        self.cache = (cache or app_cache()).open()
        self.storage = storage or SitemapFileStorage()
        self.html_renderer = html_renderer or HtmlRenderer()
        self.max_urls_per_file = max_urls_per_file or engine_settings.MAX_URLS_PER_FILE
        self.language_timeout = language_timeout if language_timeout is not None else engine_settings.LANGUAGE_TIMEOUT

    # Options

    def build_options(self, base_url: Optional[str] = None,
                      settings: Optional[SitemapSettings] = None) -> CollectOptions:
        """Snapshot the runtime settings on the calling thread."""
        settings = settings or load_settings()
        return CollectOptions(base_url=(base_url or settings.base_url or '').rstrip('/'), settings=settings)

    def _check(self, options: CollectOptions) -> Optional[str]:
        if not options.settings.enabled:
            return SITEMAP_DISABLED
        if not options.base_url:
            return BASE_URL_REQUIRED
        return None

    def default_xsl_style(self, options: CollectOptions) -> Optional[str]:
        return options.settings.xsl_style if options.settings.xsl_enabled else None

    # Collection

    def collect_all_entries(self, options: CollectOptions,
                            sources: Optional[Sequence[SitemapSource]] = None) -> CollectionReport:
        """
        Collect, deduplicate and sort entries from the enabled sources.

        Sources are filtered on the calling thread; collection then runs with
        ``force`` set. With more than one enabled language, every language is
        collected on its own worker thread and alternates are attached.

        Args:
            options: Collection options (base URL and settings snapshot)
            sources: Sources to collect; defaults to all enabled sources

        Returns:
            CollectionReport: Unique entries sorted by location, plus warnings
        """
        if sources is None:
            sources = self.registry.enabled_sources(options)
        options = replace(options, force=True)
        languages = get_enabled_languages()

        if len(languages) <= 1:
            report = self.registry.collect_all(options, sources)
            report.entries = dedupe(report.entries)
            return report

        report = CollectionReport()
        for language_report in self._fan_out(
                lambda lang_options: self.registry.collect_all(lang_options, sources),
                options, languages, report):
            report.extend(language_report)

        attach_alternates(report.entries, languages, options.base_url)
        report.entries = dedupe(report.entries)
        return report

    def _fan_out(self, task: Callable[[CollectOptions], object], options: CollectOptions,
                 languages: Sequence[Language], report: CollectionReport) -> List:
        """
        Run ``task`` once per language on a thread pool.

        Each language gets ``language_timeout`` seconds from the moment its
        task starts running. A language that raises or exceeds its timeout
        contributes nothing and adds a warning to ``report``. Languages still
        queued after every worker wave had its full timeout are dropped too.
        """
        codes = [language.code for language in languages]
        max_workers = min(max(2 * (os.cpu_count() or 1), 1), len(languages))
        waves = math.ceil(len(languages) / max_workers)
        started: Dict[str, float] = {}

        def run(lang_options: CollectOptions):
            started[lang_options.language] = time.monotonic()
            try:
                return task(lang_options)
            finally:
                connections.close_all()

        executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix='sitemap-language')
        futures = {
            executor.submit(run, options.for_language(language.code, language.is_default, codes)): language.code
            for language in languages
        }
        batch_deadline = time.monotonic() + self.language_timeout * waves

        results = []
        pending = set(futures)
        while pending:
            done, pending = wait(pending, timeout=FAN_OUT_POLL_INTERVAL, return_when=FIRST_COMPLETED)
            for future in done:
                code = futures[future]
                try:
                    results.append(future.result())
                except Exception as e:
                    logger.warning(f"Sitemap collection for language {code} failed: {e!r}")
                    report.warnings.append(f"language {code}: {e!r}")

            now = time.monotonic()
            for future in list(pending):
                code = futures[future]
                start = started.get(code)
                if start is not None and now - start < self.language_timeout:
                    continue
                if start is None and now < batch_deadline:
                    continue
                pending.discard(future)
                future.cancel()
                logger.warning(f"Sitemap collection for language {code} timed out after {self.language_timeout}s")
                report.warnings.append(f"language {code}: timed out")

        # Timed-out threads finish in the background; their results are dropped
        executor.shutdown(wait=False, cancel_futures=True)
        return results

    # XML

    def generate_xml(self, base_url: Optional[str] = None, use_cache: bool = True,
                     xsl_style: Optional[str] = None, settings: Optional[SitemapSettings] = None) -> GenerationResult:
        """
        Generate the XML sitemap.

        Args:
            base_url: Site base URL (defaults to the configured one)
            use_cache: Return the cached document when present
            xsl_style: Stylesheet override; invalid names produce no stylesheet line
            settings: Settings snapshot (read from the database when omitted)

        Returns:
            GenerationResult: ``xml`` is a urlset, or a sitemapindex with ``parts``
        """
        options = self.build_options(base_url, settings)
        error = self._check(options)
        if error:
            return GenerationResult.failure(error)

        if use_cache and self.cache.has(XML_KEY):
            xml = self.cache.get(XML_KEY)
            if xsl_style is not None:
                xml = with_stylesheet(xml, xsl_style)
            parts = self.cache.get(PARTS_KEY) or []
            return GenerationResult(xml=xml, parts=parts,
                                    url_count=sum(p.url_count for p in parts) or xml.count('<url>'),
                                    cached=True)

        report = self.collect_all_entries(options)
        style = xsl_style if xsl_style is not None else self.default_xsl_style(options)
        result = self.format_entries(report.entries, options, style)
        result.warnings = report.warnings

        if use_cache:
            self.cache.put(XML_KEY, result.xml)
            self.cache.put(PARTS_KEY, result.parts)

        logger.info(f"Generated sitemap with {result.url_count} URLs"
                    f"{f' in {len(result.parts)} parts' if result.parts else ''}")
        return result

    def format_entries(self, entries: List[UrlEntry], options: CollectOptions,
                       xsl_style: Optional[str]) -> GenerationResult:
        """Serialize entries as one urlset, or as an index plus parts above the URL limit."""
        if len(entries) <= self.max_urls_per_file:
            return GenerationResult(xml=build_urlset(entries, xsl_style), url_count=len(entries))

        parts = []
        for index, part_entries in enumerate(chunk(entries, self.max_urls_per_file), start=1):
            parts.append(SitemapPart(
                index=index,
                loc=f"{options.base_url}{get_url_prefix()}/sitemap-{index}.xml",
                lastmod=latest_lastmod(part_entries),
                xml=build_urlset(part_entries),
                url_count=len(part_entries),
            ))
        index_xml = build_sitemapindex([(part.loc, part.lastmod) for part in parts], xsl_style)
        return GenerationResult(xml=index_xml, parts=parts, url_count=len(entries))

    def get_sitemap_part(self, index: int) -> Optional[str]:
        """
        Return the XML of part ``index`` (1-based), or None.

        Falls back to the n-th cached module file when no split sitemap is cached.
        """
        if index < 1:
            return None
        parts = self.cache.get(PARTS_KEY) or []
        for part in parts:
            if part.index == index:
                return part.xml

        modules = self.cache.get(MODULES_KEY) or []
        if index <= len(modules):
            filename = modules[index - 1]
            return self.cache.get_module(filename) or self.storage.read(filename)
        return None

    # HTML

    def generate_html(self, style: Optional[str] = None, base_url: Optional[str] = None,
                      use_cache: bool = True, settings: Optional[SitemapSettings] = None) -> GenerationResult:
        """
        Generate the HTML sitemap from the same entries as the XML sitemap.

        Args:
            style: hierarchical, grouped or flat (defaults to the configured style)
            base_url: Site base URL (defaults to the configured one)
            use_cache: Return the cached page when present
            settings: Settings snapshot

        Returns:
            GenerationResult: ``html`` holds the page
        """
        options = self.build_options(base_url, settings)
        style = style or options.settings.html_style
        if style not in HTML_STYLES:
            return GenerationResult.failure(INVALID_STYLE)
        error = self._check(options)
        if error:
            return GenerationResult.failure(error)

        key = html_key(style)
        if use_cache and self.cache.has(key):
            return GenerationResult(html=self.cache.get(key), cached=True)

        report = self.collect_all_entries(options)
        html = self.html_renderer.render(report.entries, style)
        if use_cache:
            self.cache.put(key, html)
        return GenerationResult(html=html, url_count=len(report.entries), warnings=report.warnings)

    # Per-module files

    def generate_all(self, base_url: Optional[str] = None,
                     settings: Optional[SitemapSettings] = None) -> GenerationResult:
        """
        Write one sitemap file per source and a sitemapindex referencing them.

        In flat mode a single urlset with every entry is written as the index
        file and module files are removed.

        Returns:
            GenerationResult: ``xml`` is the index document, ``files`` the module files
        """
        options = self.build_options(base_url, settings)
        error = self._check(options)
        if error:
            return GenerationResult.failure(error)

        xsl_style = self.default_xsl_style(options)
        sources = self.registry.enabled_sources(options)

        if options.settings.flat_mode:
            logger.info(f"Generating flat sitemap from {len(sources)} sources")
            report = self.collect_all_entries(options, sources)
            xml = build_urlset(report.entries, xsl_style)
            if not self.storage.write(INDEX_FILENAME, xml):
                report.warnings.append(f"file {INDEX_FILENAME}.xml: write failed")
            self.storage.remove_stale(keep=())
            return GenerationResult(
                xml=xml,
                files=[SitemapFile('flat', len(report.entries), latest_lastmod(report.entries))],
                url_count=len(report.entries),
                warnings=report.warnings,
            )

        logger.info(f"Generating sitemapindex from {len(sources)} sources")
        files: List[SitemapFile] = []
        warnings: List[str] = []
        for source in sources:
            module_files, module_warnings = self.generate_module(source, options)
            files.extend(module_files)
            warnings.extend(module_warnings)

        index_xml = self.generate_index(files, options.base_url, xsl_style)
        if not self.storage.write(INDEX_FILENAME, index_xml):
            warnings.append(f"file {INDEX_FILENAME}.xml: write failed")
        self.storage.remove_stale(keep=[f.filename for f in files])

        total = sum(f.url_count for f in files)
        logger.info(f"Generated {len(files)} module files, {total} total URLs")
        return GenerationResult(xml=index_xml, files=files, url_count=total, warnings=warnings)

    def generate_module(self, source: SitemapSource,
                        options: CollectOptions) -> Tuple[List[SitemapFile], List[str]]:
        """
        Generate the file(s) of one source.

        Sources with sub-sitemaps get one file per group named
        ``{filename}-{group}``. Files above the URL limit are split into
        ``{filename}-1``, ``{filename}-2``, ...; empty output writes no file.
        """
        base_filename = self.registry.safe_filename(source)
        xsl_style = self.default_xsl_style(options)
        warnings: List[str] = []

        groups = self._collect_sub_sitemaps(source, options, warnings)
        if groups is None:
            report = self.collect_all_entries(options, [source])
            warnings.extend(report.warnings)
            groups = [(None, report.entries)]

        files = []
        for group_name, entries in groups:
            filename = f"{base_filename}-{group_name}" if group_name else base_filename
            files.extend(self._write_module_files(filename, entries, xsl_style, warnings))
        return files, warnings

    def _collect_sub_sitemaps(self, source: SitemapSource, options: CollectOptions,
                              warnings: List[str]) -> Optional[List[Tuple[str, List[UrlEntry]]]]:
        languages = get_enabled_languages()
        options = replace(options, force=True)

        if len(languages) <= 1:
            return self.registry.safe_sub_sitemaps(source, options)

        report = CollectionReport()
        per_language = self._fan_out(
            lambda lang_options: self.registry.safe_sub_sitemaps(source, lang_options),
            options, languages, report)
        warnings.extend(report.warnings)

        merged: Dict[str, List[UrlEntry]] = {}
        any_groups = False
        for groups in per_language:
            if groups is None:
                continue
            any_groups = True
            for group_name, entries in groups:
                merged.setdefault(group_name, []).extend(entries)
        if not any_groups:
            return None

        result = []
        for group_name in sorted(merged):
            entries = merged[group_name]
            attach_alternates(entries, languages, options.base_url)
            result.append((group_name, dedupe(entries)))
        return result

    def _write_module_files(self, filename: str, entries: List[UrlEntry], xsl_style: Optional[str],
                            warnings: List[str]) -> List[SitemapFile]:
        """Write and cache the files of one module. Files that fail to write are left out."""
        if not entries:
            self.storage.delete(filename)
            return []

        if len(entries) <= self.max_urls_per_file:
            named_chunks = [(filename, entries)]
        else:
            named_chunks = [
                (f"{filename}-{index}", part)
                for index, part in enumerate(chunk(entries, self.max_urls_per_file), start=1)
            ]

        files = []
        for name, part in named_chunks:
            xml = build_urlset(part, xsl_style)
            if not self.storage.write(name, xml):
                warnings.append(f"file {name}.xml: write failed")
                continue
            self.cache.put_module(name, xml)
            files.append(SitemapFile(name, len(part), latest_lastmod(part)))
        return files

    def generate_index(self, files: Sequence[SitemapFile], base_url: str,
                       xsl_style: Optional[str] = None) -> str:
        """Build the sitemapindex referencing ``{base}{prefix}/sitemaps/{filename}.xml`` for each file."""
        base_url = base_url.rstrip('/')
        prefix = get_url_prefix()
        return build_sitemapindex(
            [(f"{base_url}{prefix}/sitemaps/{f.filename}.xml", f.lastmod) for f in files],
            xsl_style,
        )

    def get_module(self, filename: str) -> Optional[str]:
        """Return a module file from the cache, falling back to file storage."""
        return self.cache.get_module(filename) or self.storage.read(filename)

    # Cache management

    def invalidate_cache(self) -> None:
        self.cache.invalidate()
        logger.info("Sitemap cache invalidated")

    def invalidate_and_regenerate(self, base_url: Optional[str] = None) -> GenerationResult:
        """Purge cached output, then rebuild the XML sitemap into the cache."""
        self.invalidate_cache()
        return self.generate_xml(base_url=base_url)
