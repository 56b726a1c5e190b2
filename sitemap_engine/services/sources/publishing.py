"""
Publishing source.

Lists the listing page of every publishing group and its published posts.
Posts in ``slug`` mode live at ``/{group}/{slug}``; posts in ``timestamp``
mode live at ``/{group}/{YYYY-MM-DD}``, or ``/{group}/{YYYY-MM-DD}/{HH:MM}``
when several posts share the date. Paths carry the URL prefix and, in
multilingual mode, the language display code.

Non-default languages only list posts translated into that language.
"""
import logging
from collections import Counter
from datetime import date, datetime, time
from typing import Iterable, List, Optional, Tuple

from django.utils.dateparse import parse_date, parse_datetime, parse_time

from ...conf import get_url_prefix
from ..content import PublishingGroup, PublishingPost, load_provider
from ..languages import display_code, extract_base
from ..runtime import CollectOptions
from ..url_entry import UrlEntry
from .base import SubSitemapSource

logger = logging.getLogger(__name__)


def _as_date(value) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            parsed = parse_datetime(value)
            if parsed is not None:
                return parsed.date()
            return parse_date(value)
        except ValueError:
            return None
    return None


def _as_time(value) -> Optional[time]:
    if isinstance(value, datetime):
        return value.time()
    if isinstance(value, time):
        return value
    if isinstance(value, str):
        try:
            parsed = parse_datetime(value)
            if parsed is not None:
                return parsed.time()
            return parse_time(value)
        except ValueError:
            return None
    return None


def post_date(post: PublishingPost) -> Optional[str]:
    """URL date of a timestamp-mode post (YYYY-MM-DD)."""
    value = _as_date(post.date) or _as_date(post.published_at)
    return value.isoformat() if value else None


def post_time(post: PublishingPost) -> str:
    """URL time of a timestamp-mode post (HH:MM)."""
    value = _as_time(post.time) or _as_time(post.published_at)
    return value.strftime('%H:%M') if value else '00:00'


def post_slug(post: PublishingPost) -> Optional[str]:
    if post.slug:
        return post.slug
    if post.path:
        name = post.path.rstrip('/').rsplit('/', 1)[-1]
        return name[:-3] if name.endswith('.md') else name
    return None


def post_title(post: PublishingPost) -> str:
    if post.title:
        return post.title
    slug = post_slug(post)
    if slug:
        return ' '.join(word.capitalize() for word in slug.replace('-', ' ').replace('_', ' ').split())
    return 'Post'


def post_lastmod(post: PublishingPost):
    if post.published_at:
        return post.published_at
    if post.updated_at:
        return post.updated_at
    day = _as_date(post.date)
    if day is None:
        return None
    moment = _as_time(post.time)
    return datetime.combine(day, moment) if moment else day


def has_translation(post: PublishingPost, language: Optional[str], is_default: bool) -> bool:
    """Default-language requests always include the post; others need a matching translation."""
    if language is None or is_default:
        return True
    base = extract_base(language)
    return any(lang == language or extract_base(lang) == base for lang in post.available_languages)


class PublishingSource(SubSitemapSource):
    name = 'publishing'

    def is_enabled(self, options: CollectOptions) -> bool:
        return options.settings.include_publishing and load_provider('publishing') is not None

    def collect(self, options: CollectOptions) -> List[UrlEntry]:
        groups = self._groups()
        listings = []
        posts = []
        for group in groups:
            group_posts = self._post_entries(group, options)
            if group_posts:
                listings.append(self._listing_entry(group, options))
            posts.extend(group_posts)
        return listings + posts

    def sub_sitemaps(self, options: CollectOptions) -> Optional[List[Tuple[str, List[UrlEntry]]]]:
        result = []
        for group in self._groups():
            group_posts = self._post_entries(group, options)
            if group_posts:
                result.append((group.slug, [self._listing_entry(group, options)] + group_posts))
        return result or None

    def _groups(self) -> List[PublishingGroup]:
        provider = load_provider('publishing')
        if provider is None:
            return []
        try:
            groups: Iterable = provider()
        except Exception as e:
            logger.warning(f"Publishing sitemap source failed to collect: {e}")
            return []
        return [group for group in groups if isinstance(group, PublishingGroup) and not group.excluded]

    def _visible_posts(self, group: PublishingGroup, options: CollectOptions) -> List[PublishingPost]:
        return [
            post for post in group.posts
            if post.published and not post.excluded
            and has_translation(post, options.language, options.is_default_language)
        ]

    def _listing_entry(self, group: PublishingGroup, options: CollectOptions) -> UrlEntry:
        return UrlEntry(
            loc=self.build_url(self.build_path([group.slug], options.language, options), options),
            changefreq='daily',
            priority=0.7,
            title=f"{group.name} - Blog",
            category=group.name,
            source=self.name,
            canonical_path=self.build_path([group.slug], None, options),
        )

    def _post_entries(self, group: PublishingGroup, options: CollectOptions) -> List[UrlEntry]:
        try:
            posts = self._visible_posts(group, options)
            date_counts = Counter(post_date(post) for post in posts if post.mode == 'timestamp')
            entries = []
            for post in posts:
                segments = self._post_segments(post, group.slug, date_counts)
                if segments is None:
                    logger.debug(f"Post {post!r} in group {group.slug} has no URL, skipping")
                    continue
                entries.append(UrlEntry(
                    loc=self.build_url(self.build_path(segments, options.language, options), options),
                    lastmod=post_lastmod(post),
                    changefreq='weekly',
                    priority=0.8,
                    title=post_title(post),
                    category=group.name,
                    source=self.name,
                    canonical_path=self.build_path(segments, None, options),
                ))
            return entries
        except Exception as e:
            logger.warning(f"Failed to collect posts for group {group.slug!r}: {e}")
            return []

    @staticmethod
    def _post_segments(post: PublishingPost, group_slug: str, date_counts: Counter) -> Optional[List[str]]:
        if post.mode == 'timestamp':
            day = post_date(post)
            if day is None:
                return None
            if date_counts.get(day, 1) > 1:
                return [group_slug, day, post_time(post)]
            return [group_slug, day]

        slug = post_slug(post)
        return [group_slug, slug] if slug else None

    @staticmethod
    def build_path(segments: List[str], language: Optional[str], options: CollectOptions) -> str:
        """
        Build ``/{prefix}/{lang?}/{segments...}``.

        The language segment is added only in multilingual mode, for every
        language including the default.
        """
        parts = [part for part in get_url_prefix().split('/') if part]
        if language and len(options.all_languages) > 1:
            parts.append(display_code(language, options.all_languages))
        parts.extend(str(segment) for segment in segments if segment not in (None, ''))
        return '/' + '/'.join(parts)
