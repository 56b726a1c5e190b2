"""
Language helpers for multilingual sitemaps.
"""
import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Sequence

from django.conf import settings

from ..conf import engine_settings, get_url_prefix

logger = logging.getLogger(__name__)

LANGUAGE_SEGMENT_RE = re.compile(r'^/([a-z]{2})(?:/|$)')


@dataclass(frozen=True)
class Language:
    code: str  # Code as configured, e.g. "en-US"
    is_default: bool = False

    @property
    def base_code(self) -> str:
        return extract_base(self.code)


def extract_base(code: Optional[str]) -> str:
    """Return the base language code of a dialect ("en-US" -> "en")."""
    if not code:
        return default_base_code()
    return code.replace('_', '-').split('-')[0].lower()


def default_base_code() -> str:
    return (getattr(settings, 'LANGUAGE_CODE', 'en') or 'en').replace('_', '-').split('-')[0].lower()


def get_enabled_languages() -> List[Language]:
    """
    Return the enabled languages with exactly one default.

    The default is ``DEFAULT_LANGUAGE`` when it is enabled, otherwise the
    first configured language. Without configuration the site language
    (``LANGUAGE_CODE``) is the only one.
    """
    codes = engine_settings.LANGUAGES
    if not codes:
        return [Language(code=default_base_code(), is_default=True)]

    codes = [code for code in codes if code]
    default = engine_settings.DEFAULT_LANGUAGE
    if default not in codes:
        default = codes[0]

    return [Language(code=code, is_default=(code == default)) for code in codes]


def get_default_language() -> Language:
    for language in get_enabled_languages():
        if language.is_default:
            return language
    return Language(code=default_base_code(), is_default=True)


def is_multilingual(languages: Optional[Sequence[Language]] = None) -> bool:
    languages = get_enabled_languages() if languages is None else languages
    return len(languages) > 1


def display_code(code: str, all_languages: Sequence[str]) -> str:
    """
    Return the code used in URLs for a language.

    The base code is used unless several dialects of the same base language
    are enabled, in which case the full dialect code is kept.
    """
    base = extract_base(code)
    dialects = [lang for lang in all_languages if extract_base(lang) == base]
    if len(dialects) > 1:
        return code
    return base


def prefix_path(path: str, language: Optional[str], all_languages: Sequence[str]) -> str:
    """
    Add a language prefix to a path when more than one language is enabled.

    In multilingual mode every language, the default included, gets a prefix.
    """
    if not language or len(all_languages) <= 1:
        return path
    code = display_code(language, all_languages)
    if path == '/':
        return f'/{code}/'
    return f'/{code}{path}'


def language_from_url(loc: str, base_url: Optional[str], fallback: str) -> str:
    """
    Extract the two-letter language segment that starts the path of ``loc``.

    The URL prefix, when configured, is skipped before matching.
    """
    path = loc
    if base_url:
        path = loc.replace(base_url.rstrip('/'), '', 1)
    prefix = get_url_prefix()
    if prefix and path.startswith(prefix + '/'):
        path = path[len(prefix):]
    match = LANGUAGE_SEGMENT_RE.match(path)
    if match:
        return match.group(1)
    return fallback
