"""
Exceptions used inside the sitemap engine.

These are raised and handled within a single component; callers of the
public services receive result objects instead.
"""


class SitemapError(Exception):
    """Base class for sitemap engine errors."""


class SourceContractError(SitemapError):
    """Raised when an object registered as a source does not implement the source contract."""


class RouterUnavailable(SitemapError):
    """Raised when no router (urlconf) can be located or introspected."""


class InvalidSourceOutput(SitemapError):
    """Raised when a source returns something other than a list of UrlEntry objects."""
