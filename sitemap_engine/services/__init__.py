"""
Services for the sitemap engine.

This package contains the entry model, cache, route resolver, sources and
the generator that ties them together.
"""

from .cache import SitemapCache
from .generator import GenerationResult, Generator, SitemapPart
from .route_resolver import Route, RouteResolver
from .url_entry import Alternate, UrlEntry

__all__ = [
    'Alternate',
    'GenerationResult',
    'Generator',
    'Route',
    'RouteResolver',
    'SitemapCache',
    'SitemapPart',
    'UrlEntry',
]
