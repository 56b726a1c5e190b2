"""
Tests for the Sitemap Generator Service.
"""
import os
import shutil
import tempfile
import time
from unittest import mock
from django.test import SimpleTestCase, override_settings

from sitemap_engine.services.cache import XML_KEY, SitemapCache
from sitemap_engine.services.file_storage import SitemapFileStorage
from sitemap_engine.services.generator import (BASE_URL_REQUIRED, INVALID_STYLE, SITEMAP_DISABLED, Generator,
                                               build_sitemapindex, stylesheet_line, with_stylesheet)
from sitemap_engine.services.runtime import SitemapSettings
from sitemap_engine.services.sources.base import SitemapSource
from sitemap_engine.services.sources.registry import SourceRegistry
from sitemap_engine.services.url_entry import UrlEntry
from sitemap_engine.tests.fakes import FailingSource, GroupedSource, ListSource

SETTINGS = SitemapSettings(base_url='https://example.com', xsl_enabled=False)


class BulkSource(SitemapSource):
    name = 'bulk'

    def __init__(self, count):
        self.count = count

    def is_enabled(self, options):
        return True

    def collect(self, options):
        return [UrlEntry(loc=options.build_url(f'/item/{i:06d}')) for i in range(self.count)]


class SlowSource(ListSource):
    """Stalls for one language."""

    def __init__(self, name, paths, slow_language, delay):
        super().__init__(name, paths)
        self.slow_language = slow_language
        self.delay = delay

    def collect(self, options):
        if options.language == self.slow_language:
            time.sleep(self.delay)
        return super().collect(options)


class GeneratorTestCase(SimpleTestCase):
    """Base with an isolated cache and file storage."""

    def setUp(self):
        self.cache = SitemapCache(key_prefix=f'test-generator-{id(self)}').open()
        self.addCleanup(self.cache.invalidate)
        self.temp_dir = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, self.temp_dir)
        self.storage = SitemapFileStorage(
            storage_dir=os.path.join(self.temp_dir, 'sitemaps'),
            backup_dir=os.path.join(self.temp_dir, 'backups'),
        )

    def make_generator(self, *sources, **kwargs):
        return Generator(
            registry=SourceRegistry(list(sources)),
            cache=self.cache,
            storage=self.storage,
            **kwargs
        )


@override_settings(SITEMAP_ENGINE={})
class GenerateXmlTests(GeneratorTestCase):

    def test_duplicates_are_removed_and_sorted(self):
        generator = self.make_generator(
            ListSource('a', ['/zeta/', '/shared/']),
            ListSource('b', ['/shared/', '/alpha/']),
        )
        result = generator.generate_xml(settings=SETTINGS)

        self.assertTrue(result.ok)
        self.assertEqual(result.url_count, 3)
        self.assertEqual(result.xml.count('<loc>https://example.com/shared/</loc>'), 1)
        self.assertLess(result.xml.index('/alpha/'), result.xml.index('/shared/'))
        self.assertLess(result.xml.index('/shared/'), result.xml.index('/zeta/'))

    def test_document_structure(self):
        result = self.make_generator(ListSource('a', ['/'])).generate_xml(settings=SETTINGS)
        lines = result.xml.split('\n')
        self.assertEqual(lines[0], '<?xml version="1.0" encoding="UTF-8"?>')
        self.assertTrue(lines[1].startswith('<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9"'))
        self.assertEqual(lines[-1], '</urlset>')

    def test_failing_source_is_isolated(self):
        generator = self.make_generator(
            ListSource('a', ['/a/']),
            FailingSource(),
            ListSource('b', ['/b/']),
        )
        result = generator.generate_xml(settings=SETTINGS)
        self.assertEqual(result.url_count, 2)
        self.assertIn('<loc>https://example.com/a/</loc>', result.xml)
        self.assertIn('<loc>https://example.com/b/</loc>', result.xml)
        self.assertEqual(len(result.warnings), 1)

    def test_split_into_index_and_parts(self):
        generator = self.make_generator(BulkSource(120000), max_urls_per_file=50000)
        result = generator.generate_xml(settings=SETTINGS, use_cache=False)

        self.assertTrue(result.is_index)
        self.assertEqual([part.url_count for part in result.parts], [50000, 50000, 20000])
        self.assertEqual(result.url_count, 120000)
        self.assertIn('<sitemapindex', result.xml)
        self.assertEqual(result.xml.count('<sitemap>'), 3)
        for index in (1, 2, 3):
            self.assertIn(f'<loc>https://example.com/sitemap-{index}.xml</loc>', result.xml)
        self.assertNotIn('<priority>', result.xml)

    def test_parts_are_retrievable(self):
        generator = self.make_generator(ListSource('a', ['/a/', '/b/', '/c/']), max_urls_per_file=2)
        generator.generate_xml(settings=SETTINGS)

        self.assertIn('https://example.com/a/', generator.get_sitemap_part(1))
        self.assertIn('https://example.com/c/', generator.get_sitemap_part(2))
        self.assertIsNone(generator.get_sitemap_part(3))
        self.assertIsNone(generator.get_sitemap_part(0))

    @override_settings(SITEMAP_ENGINE={'URL_PREFIX': '/site/'})
    def test_part_locations_carry_url_prefix(self):
        generator = self.make_generator(ListSource('a', ['/a/', '/b/']), max_urls_per_file=1)
        result = generator.generate_xml(settings=SETTINGS, use_cache=False)
        self.assertEqual(result.parts[0].loc, 'https://example.com/site/sitemap-1.xml')

    def test_missing_base_url_is_a_hard_stop(self):
        result = self.make_generator(ListSource('a', ['/a/'])).generate_xml(settings=SitemapSettings())
        self.assertFalse(result.ok)
        self.assertEqual(result.error, BASE_URL_REQUIRED)
        self.assertIsNone(result.xml)

    def test_base_url_argument_overrides_settings(self):
        result = self.make_generator(ListSource('a', ['/a/'])).generate_xml(
            base_url='https://other.example/', settings=SitemapSettings())
        self.assertIn('<loc>https://other.example/a/</loc>', result.xml)

    def test_disabled_module(self):
        result = self.make_generator(ListSource('a', ['/a/'])).generate_xml(
            settings=SitemapSettings(enabled=False, base_url='https://example.com'))
        self.assertEqual(result.error, SITEMAP_DISABLED)

    def test_cached_result(self):
        source = ListSource('a', ['/a/'])
        generator = self.make_generator(source)
        first = generator.generate_xml(settings=SETTINGS)
        second = generator.generate_xml(settings=SETTINGS)

        self.assertFalse(first.cached)
        self.assertTrue(second.cached)
        self.assertEqual(first.xml, second.xml)
        self.assertEqual(second.url_count, 1)
        self.assertEqual(len(source.calls), 1)

        generator.invalidate_cache()
        self.assertFalse(self.cache.has(XML_KEY))
        generator.generate_xml(settings=SETTINGS)
        self.assertEqual(len(source.calls), 2)

    def test_disabled_sources_are_skipped(self):
        generator = self.make_generator(ListSource('a', ['/a/']), ListSource('b', ['/b/'], enabled=False))
        result = generator.generate_xml(settings=SETTINGS)
        self.assertEqual(result.url_count, 1)


@override_settings(SITEMAP_ENGINE={})
class StylesheetTests(GeneratorTestCase):

    def test_configured_stylesheet(self):
        settings = SitemapSettings(base_url='https://example.com', xsl_enabled=True, xsl_style='table')
        result = self.make_generator(ListSource('a', ['/a/'])).generate_xml(settings=settings)
        lines = result.xml.split('\n')
        self.assertEqual(lines[1], '<?xml-stylesheet type="text/xsl" href="/assets/sitemap/table"?>')
        self.assertTrue(lines[2].startswith('<urlset'))

    def test_style_override_on_cached_document(self):
        generator = self.make_generator(ListSource('a', ['/a/']))
        settings = SitemapSettings(base_url='https://example.com', xsl_enabled=True, xsl_style='table')
        generator.generate_xml(settings=settings)

        result = generator.generate_xml(settings=settings, xsl_style='cards')
        self.assertTrue(result.cached)
        self.assertIn('href="/assets/sitemap/cards"', result.xml)
        self.assertNotIn('/assets/sitemap/table', result.xml)

    def test_invalid_style_produces_no_stylesheet(self):
        result = self.make_generator(ListSource('a', ['/a/'])).generate_xml(settings=SETTINGS, xsl_style='fancy')
        self.assertNotIn('xml-stylesheet', result.xml)

    def test_index_documents_use_index_stylesheet(self):
        xml = build_sitemapindex([('https://example.com/sitemap-1.xml', None)], 'minimal')
        self.assertIn('href="/assets/sitemap-index/minimal"', xml)
        self.assertIn('href="/assets/sitemap-index/cards"', with_stylesheet(xml, 'cards'))
        self.assertNotIn('xml-stylesheet', with_stylesheet(xml, None))

    @override_settings(SITEMAP_ENGINE={'URL_PREFIX': 'site'})
    def test_stylesheet_line_with_prefix(self):
        self.assertEqual(stylesheet_line('table'),
                         '<?xml-stylesheet type="text/xsl" href="/site/assets/sitemap/table"?>')
        self.assertIsNone(stylesheet_line('unknown'))


@override_settings(SITEMAP_ENGINE={'LANGUAGES': ['en', 'et']})
class MultilingualTests(GeneratorTestCase):

    def test_hreflang_alternates(self):
        generator = self.make_generator(ListSource('a', ['/about/']))
        report = generator.collect_all_entries(generator.build_options(settings=SETTINGS))

        self.assertEqual([entry.loc for entry in report.entries],
                         ['https://example.com/en/about/', 'https://example.com/et/about/'])
        for entry in report.entries:
            alternates = {(alt.hreflang, alt.href) for alt in entry.alternates}
            self.assertEqual(alternates, {
                ('en', 'https://example.com/en/about/'),
                ('et', 'https://example.com/et/about/'),
                ('x-default', 'https://example.com/en/about/'),
            })

    def test_alternates_are_serialized(self):
        result = self.make_generator(ListSource('a', ['/about/'])).generate_xml(settings=SETTINGS)
        self.assertIn(
            '<xhtml:link rel="alternate" hreflang="x-default" href="https://example.com/en/about/"/>',
            result.xml,
        )
        self.assertEqual(result.xml.count('hreflang="et"'), 2)

    def test_every_language_is_collected(self):
        source = ListSource('a', ['/about/'])
        self.make_generator(source).generate_xml(settings=SETTINGS)
        self.assertEqual(sorted(source.calls), ['en', 'et'])

    def test_entries_without_canonical_path_get_no_alternates(self):
        class Plain(ListSource):
            def collect(self, options):
                entries = super().collect(options)
                for entry in entries:
                    entry.canonical_path = None
                return entries

        generator = self.make_generator(Plain('plain', ['/x/']))
        report = generator.collect_all_entries(generator.build_options(settings=SETTINGS))
        self.assertTrue(all(entry.alternates == [] for entry in report.entries))

    def test_slow_language_is_dropped(self):
        generator = self.make_generator(SlowSource('slow', ['/about/'], 'et', delay=1.0), language_timeout=0.2)
        report = generator.collect_all_entries(generator.build_options(settings=SETTINGS))

        self.assertEqual([entry.loc for entry in report.entries], ['https://example.com/en/about/'])
        self.assertTrue(any('timed out' in warning for warning in report.warnings))

    @override_settings(SITEMAP_ENGINE={'LANGUAGES': ['en', 'et', 'de', 'fi']})
    def test_timeout_applies_to_each_language(self):
        class SteadySource(ListSource):
            def collect(self, options):
                time.sleep(0.3)
                return super().collect(options)

        generator = self.make_generator(SteadySource('steady', ['/about/']), language_timeout=0.5)
        # Two workers for four languages: the second wave starts after the first finishes
        with mock.patch('sitemap_engine.services.generator.os.cpu_count', return_value=1):
            report = generator.collect_all_entries(generator.build_options(settings=SETTINGS))

        self.assertEqual(len(report.entries), 4)
        self.assertEqual(report.warnings, [])

    @override_settings(SITEMAP_ENGINE={'LANGUAGES': ['en', 'et'], 'DEFAULT_LANGUAGE': 'et'})
    def test_x_default_follows_default_language(self):
        generator = self.make_generator(ListSource('a', ['/about/']))
        report = generator.collect_all_entries(generator.build_options(settings=SETTINGS))
        x_default = [alt.href for alt in report.entries[0].alternates if alt.hreflang == 'x-default']
        self.assertEqual(x_default, ['https://example.com/et/about/'])


@override_settings(SITEMAP_ENGINE={})
class GenerateHtmlTests(GeneratorTestCase):

    def setUp(self):
        super().setUp()
        self.generator = self.make_generator(
            ListSource('pages', ['/about/', '/contact/'], category='Pages'),
            ListSource('posts', ['/posts/hello/'], category='Posts'),
        )

    def test_styles(self):
        for style in ('hierarchical', 'grouped', 'flat'):
            with self.subTest(style=style):
                result = self.generator.generate_html(style=style, settings=SETTINGS)
                self.assertTrue(result.ok)
                self.assertIn('href="https://example.com/about/"', result.html)
                self.assertIn(f'sitemap-{style}', result.html)

    def test_grouped_layout_lists_categories(self):
        html = self.generator.generate_html(style='grouped', settings=SETTINGS).html
        self.assertLess(html.index('Pages'), html.index('Posts'))

    def test_default_style_from_settings(self):
        settings = SitemapSettings(base_url='https://example.com', html_style='flat')
        self.assertIn('sitemap-flat', self.generator.generate_html(settings=settings).html)

    def test_invalid_style(self):
        result = self.generator.generate_html(style='fancy', settings=SETTINGS)
        self.assertEqual(result.error, INVALID_STYLE)

    def test_html_is_cached_per_style(self):
        self.generator.generate_html(style='flat', settings=SETTINGS)
        self.assertTrue(self.generator.generate_html(style='flat', settings=SETTINGS).cached)
        self.assertFalse(self.generator.generate_html(style='grouped', settings=SETTINGS).cached)


@override_settings(SITEMAP_ENGINE={})
class GenerateAllTests(GeneratorTestCase):

    def test_failed_writes_are_reported(self):
        generator = self.make_generator(ListSource('static', ['/']), ListSource('shop', ['/shop']))
        real_write = self.storage.write

        def write(filename, content):
            if filename in ('sitemap-shop', 'sitemap'):
                return False
            return real_write(filename, content)

        with mock.patch.object(self.storage, 'write', side_effect=write):
            result = generator.generate_all(settings=SETTINGS)

        self.assertEqual([f.filename for f in result.files], ['sitemap-static'])
        self.assertEqual(result.url_count, 1)
        self.assertIn('file sitemap-shop.xml: write failed', result.warnings)
        self.assertIn('file sitemap.xml: write failed', result.warnings)
        self.assertNotIn('sitemap-shop', result.xml)

    def test_module_files_and_index(self):
        generator = self.make_generator(
            ListSource('static', ['/', '/about/']),
            ListSource('posts', ['/posts/a/']),
        )
        result = generator.generate_all(settings=SETTINGS)

        self.assertEqual([f.filename for f in result.files], ['sitemap-static', 'sitemap-posts'])
        self.assertEqual(result.url_count, 3)
        self.assertIn('<loc>https://example.com/sitemaps/sitemap-static.xml</loc>', result.xml)
        self.assertEqual(self.storage.read('sitemap'), result.xml)
        self.assertIn('https://example.com/about/', self.storage.read('sitemap-static'))
        self.assertIn('https://example.com/about/', generator.get_module('sitemap-static'))

    def test_sub_sitemap_groups(self):
        generator = self.make_generator(GroupedSource(['/news/a', '/news/b', '/diary/c']))
        result = generator.generate_all(settings=SETTINGS)
        self.assertEqual([f.filename for f in result.files], ['sitemap-grouped-diary', 'sitemap-grouped-news'])
        self.assertEqual([f.url_count for f in result.files], [1, 2])

    def test_large_module_is_split(self):
        generator = self.make_generator(ListSource('big', ['/a/', '/b/', '/c/']), max_urls_per_file=2)
        result = generator.generate_all(settings=SETTINGS)
        self.assertEqual([f.filename for f in result.files], ['sitemap-big-1', 'sitemap-big-2'])

    def test_empty_sources_write_no_file(self):
        result = self.make_generator(ListSource('empty', [])).generate_all(settings=SETTINGS)
        self.assertEqual(result.files, [])
        self.assertFalse(self.storage.exists('sitemap-empty'))

    def test_stale_files_are_removed(self):
        self.storage.write('sitemap-shop', '<urlset/>')
        self.make_generator(ListSource('static', ['/'])).generate_all(settings=SETTINGS)
        self.assertFalse(self.storage.exists('sitemap-shop'))
        self.assertTrue(self.storage.exists('sitemap-static'))

    def test_flat_mode(self):
        settings = SitemapSettings(base_url='https://example.com', xsl_enabled=False, flat_mode=True)
        generator = self.make_generator(ListSource('static', ['/']), ListSource('posts', ['/posts/a/']))
        result = generator.generate_all(settings=settings)

        self.assertIn('<urlset', result.xml)
        self.assertEqual(result.url_count, 2)
        self.assertEqual(self.storage.read('sitemap'), result.xml)
        self.assertEqual(self.storage.list_modules(), [])

    def test_module_parts_are_served_by_number(self):
        generator = self.make_generator(ListSource('static', ['/']), ListSource('posts', ['/posts/a/']))
        generator.generate_all(settings=SETTINGS)
        self.assertIn('https://example.com/posts/a/', generator.get_sitemap_part(1))

    def test_missing_base_url(self):
        result = self.make_generator(ListSource('static', ['/'])).generate_all(settings=SitemapSettings())
        self.assertEqual(result.error, BASE_URL_REQUIRED)
        self.assertFalse(self.storage.exists('sitemap'))

    @override_settings(SITEMAP_ENGINE={'LANGUAGES': ['en', 'et']})
    def test_multilingual_module_files(self):
        generator = self.make_generator(GroupedSource(['/news/a']))
        result = generator.generate_all(settings=SETTINGS)
        self.assertEqual([f.filename for f in result.files], ['sitemap-grouped-news'])
        xml = self.storage.read('sitemap-grouped-news')
        self.assertIn('https://example.com/et/news/a', xml)
        self.assertIn('hreflang="x-default"', xml)
