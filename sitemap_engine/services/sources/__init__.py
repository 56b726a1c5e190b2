"""
Content sources for sitemap generation.
"""

from .base import SitemapSource, SubSitemapSource
from .registry import CollectionReport, SourceRegistry, SourceResult

__all__ = [
    'SitemapSource',
    'SubSitemapSource',
    'SourceRegistry',
    'SourceResult',
    'CollectionReport',
]
