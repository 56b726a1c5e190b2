"""
URL entries for sitemap generation.

A ``UrlEntry`` is one ``<url>`` element of a sitemap. Entries are built by the
sources, enriched with hreflang alternates by the generator and serialized
according to the sitemaps.org protocol.
"""
import math
from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone as dt_timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional, Union
from xml.sax.saxutils import escape

from django.utils.dateparse import parse_date, parse_datetime

VALID_CHANGEFREQ = ('always', 'hourly', 'daily', 'weekly', 'monthly', 'yearly', 'never')
DEFAULT_PRIORITY = 0.5

LastmodInput = Union[datetime, date, str, None]


def escape_xml(value: Optional[str]) -> str:
    """Escape the five XML special characters."""
    if value is None:
        return ''
    return escape(str(value), {'"': '&quot;', "'": '&apos;'})


def normalize_lastmod(value: LastmodInput) -> Optional[datetime]:
    """
    Normalize a last-modified value to an aware UTC datetime.

    Accepts aware or naive datetimes (naive ones are taken as UTC), dates
    (midnight UTC) and ISO 8601 strings. Anything else becomes None.
    """
    if value is None or value == '':
        return None

    if isinstance(value, str):
        parsed = None
        try:
            parsed = parse_datetime(value)
            if parsed is None:
                parsed = parse_date(value)
        except ValueError:
            return None
        if parsed is None:
            return None
        value = parsed

    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=dt_timezone.utc)
        return value.astimezone(dt_timezone.utc)

    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=dt_timezone.utc)

    return None


def normalize_changefreq(value) -> Optional[str]:
    """Return the change frequency if it is one of the protocol tokens, else None."""
    if not isinstance(value, str):
        return None
    value = value.strip().lower()
    return value if value in VALID_CHANGEFREQ else None


def normalize_priority(value) -> float:
    """
    Clamp a priority to [0.0, 1.0] rounded to one decimal.

    Numeric strings are parsed; anything unparsable yields 0.5.
    """
    if isinstance(value, bool):
        return DEFAULT_PRIORITY

    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return DEFAULT_PRIORITY

    if not isinstance(value, (int, float, Decimal)):
        return DEFAULT_PRIORITY

    value = float(value)
    if not math.isfinite(value):
        return DEFAULT_PRIORITY

    value = min(max(value, 0.0), 1.0)
    return float(Decimal(str(value)).quantize(Decimal('0.1'), rounding=ROUND_HALF_UP))


def format_priority(value) -> str:
    """Render a priority with exactly one decimal digit."""
    return f"{normalize_priority(value):.1f}"


def format_lastmod(value: LastmodInput) -> Optional[str]:
    """Render a last-modified value as a W3C datetime string."""
    normalized = normalize_lastmod(value)
    if normalized is None:
        return None
    return normalized.isoformat()


@dataclass(frozen=True)
class Alternate:
    """An hreflang alternate link: a language code and the URL of that version."""
    hreflang: str
    href: str

    def to_xml(self) -> str:
        return (
            f'    <xhtml:link rel="alternate" hreflang="{escape_xml(self.hreflang)}" '
            f'href="{escape_xml(self.href)}"/>'
        )


@dataclass(eq=False)
class UrlEntry:
    """
    Data class for a single sitemap entry.
    """
    loc: str  # Absolute URL
    lastmod: LastmodInput = None  # Last modification, normalized to aware UTC datetime
    changefreq: Optional[str] = None  # One of VALID_CHANGEFREQ, invalid values dropped
    priority: Optional[float] = None  # 0.0 to 1.0, one decimal
    title: Optional[str] = None  # Display title for the HTML sitemap
    category: Optional[str] = None  # Group for the HTML sitemap
    source: Optional[str] = None  # Name of the source that produced the entry
    canonical_path: Optional[str] = None  # Path without language prefix
    alternates: List[Alternate] = field(default_factory=list)  # Filled in by the generator

    def __post_init__(self):
        self.lastmod = normalize_lastmod(self.lastmod)
        self.changefreq = normalize_changefreq(self.changefreq)
        if self.priority is not None:
            self.priority = normalize_priority(self.priority)

    @property
    def display_title(self) -> str:
        return self.title or self.loc

    def to_xml(self) -> str:
        """
        Convert the entry to a sitemap ``<url>`` element.

        Optional elements are omitted when unset; alternates are rendered as
        ``xhtml:link`` elements.
        """
        xml = ['  <url>', f'    <loc>{escape_xml(self.loc)}</loc>']

        if self.lastmod:
            xml.append(f'    <lastmod>{format_lastmod(self.lastmod)}</lastmod>')

        if self.changefreq:
            xml.append(f'    <changefreq>{self.changefreq}</changefreq>')

        if self.priority is not None:
            xml.append(f'    <priority>{format_priority(self.priority)}</priority>')

        for alternate in self.alternates:
            xml.append(alternate.to_xml())

        xml.append('  </url>')
        return '\n'.join(xml)

    def __eq__(self, other) -> bool:
        """Two entries are equal when they point to the same location."""
        if not isinstance(other, UrlEntry):
            return False
        return self.loc == other.loc

    def __hash__(self) -> int:
        return hash(self.loc)


def latest_lastmod(entries: List[UrlEntry], default: Optional[datetime] = None) -> datetime:
    """Return the most recent lastmod among entries, or ``default`` (now) if none is set."""
    dates = [entry.lastmod for entry in entries if entry.lastmod is not None]
    if dates:
        return max(dates)
    return default or datetime.now(dt_timezone.utc)
