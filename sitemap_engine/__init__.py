"""
Sitemap engine: collects URLs from pluggable content sources and publishes
XML and HTML sitemaps.
"""
