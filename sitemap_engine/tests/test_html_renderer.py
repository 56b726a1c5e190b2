"""
Tests for the HTML sitemap renderer.
"""
from django.test import SimpleTestCase

from sitemap_engine.services.html_renderer import HtmlRenderer, group_by_category, group_by_letter
from sitemap_engine.services.url_entry import UrlEntry


def entry(path, title=None, category=None):
    return UrlEntry(loc=f'https://example.com{path}', title=title, category=category)


class GroupingTests(SimpleTestCase):

    def test_group_by_category(self):
        groups = group_by_category([
            entry('/b', 'Beta', 'Pages'),
            entry('/x', 'Xylophone'),
            entry('/a', 'alpha', 'Pages'),
        ])
        self.assertEqual([name for name, _ in groups], ['Other', 'Pages'])
        self.assertEqual([e.title for e in groups[1][1]], ['alpha', 'Beta'])

    def test_group_by_letter(self):
        groups = group_by_letter([entry('/b', 'banana'), entry('/a', 'Apple'), entry('/1', '1984'),
                                  entry('/a2', 'avocado')])
        self.assertEqual([letter for letter, _ in groups], ['#', 'A', 'B'])
        self.assertEqual([e.title for e in groups[1][1]], ['Apple', 'avocado'])


class HtmlRendererTests(SimpleTestCase):

    def setUp(self):
        self.entries = [
            entry('/about/', 'About', 'Pages'),
            entry('/posts/a/', 'A <b>post</b>', 'Posts'),
        ]

    def test_hierarchical(self):
        html = HtmlRenderer().render(self.entries, 'hierarchical')
        self.assertIn('<h2>Pages</h2>', html)
        self.assertIn('<h3 class="sitemap-letter">A</h3>', html)
        self.assertIn('2 pages', html)

    def test_titles_are_escaped(self):
        html = HtmlRenderer().render(self.entries, 'flat')
        self.assertIn('A &lt;b&gt;post&lt;/b&gt;', html)

    def test_title(self):
        html = HtmlRenderer(title='Site map of Example').render([], 'grouped')
        self.assertIn('<title>Site map of Example</title>', html)
        self.assertIn('No pages found.', html)

    def test_unknown_style(self):
        with self.assertRaises(ValueError):
            HtmlRenderer().render(self.entries, 'tree')
