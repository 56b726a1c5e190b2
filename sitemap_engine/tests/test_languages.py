"""
Tests for the language helpers.
"""
from django.test import SimpleTestCase, override_settings

from sitemap_engine.services.languages import (display_code, extract_base, get_default_language,
                                               get_enabled_languages, is_multilingual,
                                               language_from_url, prefix_path)


class LanguageHelperTests(SimpleTestCase):

    def test_extract_base(self):
        self.assertEqual(extract_base('en-US'), 'en')
        self.assertEqual(extract_base('pt_BR'), 'pt')
        self.assertEqual(extract_base('ET'), 'et')

    def test_display_code_keeps_dialect_only_when_ambiguous(self):
        self.assertEqual(display_code('en-US', ['en-US', 'et']), 'en')
        self.assertEqual(display_code('en-US', ['en-US', 'en-GB', 'et']), 'en-US')

    def test_prefix_path(self):
        self.assertEqual(prefix_path('/about/', 'en', ['en']), '/about/')
        self.assertEqual(prefix_path('/about/', 'en', ['en', 'et']), '/en/about/')
        self.assertEqual(prefix_path('/', 'et', ['en', 'et']), '/et/')
        self.assertEqual(prefix_path('/about/', None, ['en', 'et']), '/about/')

    def test_language_from_url(self):
        self.assertEqual(language_from_url('https://example.com/et/about/', 'https://example.com', 'en'), 'et')
        self.assertEqual(language_from_url('https://example.com/about/', 'https://example.com', 'en'), 'en')
        self.assertEqual(language_from_url('https://example.com/et', 'https://example.com/', 'en'), 'et')

    @override_settings(SITEMAP_ENGINE={'URL_PREFIX': '/site'})
    def test_language_from_url_skips_url_prefix(self):
        self.assertEqual(language_from_url('https://example.com/site/et/about/', 'https://example.com', 'en'), 'et')


class EnabledLanguageTests(SimpleTestCase):

    @override_settings(SITEMAP_ENGINE={}, LANGUAGE_CODE='de-at')
    def test_site_language_when_unconfigured(self):
        languages = get_enabled_languages()
        self.assertEqual(len(languages), 1)
        self.assertEqual(languages[0].code, 'de')
        self.assertTrue(languages[0].is_default)
        self.assertFalse(is_multilingual())

    @override_settings(SITEMAP_ENGINE={'LANGUAGES': ['en', 'et', 'fi'], 'DEFAULT_LANGUAGE': 'et'})
    def test_configured_default(self):
        self.assertEqual(get_default_language().code, 'et')
        self.assertEqual([lang.is_default for lang in get_enabled_languages()], [False, True, False])
        self.assertTrue(is_multilingual())

    @override_settings(SITEMAP_ENGINE={'LANGUAGES': ['en', 'et'], 'DEFAULT_LANGUAGE': 'fr'})
    def test_unknown_default_falls_back_to_first(self):
        self.assertEqual(get_default_language().code, 'en')
