"""
HTML sitemap rendering.

Three layouts over the same collected entries:

- ``hierarchical``: by category, then by first letter of the title
- ``grouped``: by category
- ``flat``: one alphabetical list
"""
from itertools import groupby
from typing import Dict, List, Sequence, Tuple

from django.template.loader import render_to_string

from .url_entry import UrlEntry

HTML_STYLES = ('hierarchical', 'grouped', 'flat')
DEFAULT_CATEGORY = 'Other'


def _title_key(entry: UrlEntry) -> str:
    return entry.display_title.lower()


def group_by_category(entries: Sequence[UrlEntry]) -> List[Tuple[str, List[UrlEntry]]]:
    """Group entries by category, categories and entries sorted alphabetically."""
    groups: Dict[str, List[UrlEntry]] = {}
    for entry in entries:
        groups.setdefault(entry.category or DEFAULT_CATEGORY, []).append(entry)
    return [(category, sorted(groups[category], key=_title_key)) for category in sorted(groups)]


def group_by_letter(entries: Sequence[UrlEntry]) -> List[Tuple[str, List[UrlEntry]]]:
    def letter(entry):
        first = entry.display_title[:1].upper()
        return first if first.isalpha() else '#'

    ordered = sorted(entries, key=lambda entry: (letter(entry), _title_key(entry)))
    return [(key, list(items)) for key, items in groupby(ordered, key=letter)]


class HtmlRenderer:
    """
    Renders HTML sitemaps with the ``sitemap_engine/html/<style>.html`` templates.
    """

    def __init__(self, title: str = 'Sitemap'):
        self.title = title

    def render(self, entries: Sequence[UrlEntry], style: str) -> str:
        """
        Render entries in one of the HTML_STYLES layouts.

        Args:
            entries: Deduplicated, sorted entries
            style: Layout name

        Returns:
            The HTML document

        Raises:
            ValueError: If the style is unknown
        """
        if style not in HTML_STYLES:
            raise ValueError(f"Unknown HTML sitemap style: {style}")

        context = {
            'title': self.title,
            'style': style,
            'url_count': len(entries),
        }
        if style == 'hierarchical':
            context['categories'] = [
                (category, group_by_letter(category_entries))
                for category, category_entries in group_by_category(entries)
            ]
        elif style == 'grouped':
            context['categories'] = group_by_category(entries)
        else:
            context['entries'] = sorted(entries, key=_title_key)

        return render_to_string(f'sitemap_engine/html/{style}.html', context)
