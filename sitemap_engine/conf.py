"""
Static configuration for the sitemap engine.

Values come from the ``SITEMAP_ENGINE`` dict in Django settings, merged over
the defaults below. Runtime toggles live in the ``SitemapConfig`` model.
"""
from django.conf import settings

DEFAULTS = {
    # Explicit urlconf module (dotted path) to introspect. Falls back to ROOT_URLCONF.
    'ROUTER': None,
    # Apps probed for ``<app>.urls`` / ``<app>_web.urls`` / ``<app>.web.urls``
    # when neither ROUTER nor ROOT_URLCONF yields a router.
    'ROUTER_AUTODISCOVER_APPS': [],
    # Collaborator read functions, as dotted paths.
    'PROVIDERS': {
        'posts': None,
        'entities': None,
        'publishing': None,
        'shop': None,
    },
    'SOURCES': [
        'sitemap_engine.services.sources.router_discovery.RouterDiscoverySource',
        'sitemap_engine.services.sources.static.StaticSource',
        'sitemap_engine.services.sources.publishing.PublishingSource',
        'sitemap_engine.services.sources.entities.EntitiesSource',
        'sitemap_engine.services.sources.posts.PostsSource',
        'sitemap_engine.services.sources.shop.ShopSource',
    ],
    # Enabled language codes. A single language disables multilingual collection.
    'LANGUAGES': None,
    'DEFAULT_LANGUAGE': None,
    'MAX_URLS_PER_FILE': 50000,
    'LANGUAGE_TIMEOUT': 60,
    'CACHE_ALIAS': 'default',
    'CACHE_KEY_PREFIX': 'sitemap_engine',
    'STORAGE_DIR': 'static/sitemaps',
    'BACKUP_DIR': 'static/sitemaps/backups',
    'URL_PREFIX': '',
    'PROTECTED_PIPELINES': [
        'authenticated',
        'require_authenticated',
        'admin',
        'admin_only',
        'user_passes_test',
        'login_required',
        'permission_required',
        'staff_member_required',
        'login_required_middleware',
        'IsAuthenticated',
        'IsAdminUser',
    ],
    'PROTECTED_MOUNT_HOOKS': [
        'django.contrib.auth.mixins.LoginRequiredMixin',
        'django.contrib.auth.mixins.PermissionRequiredMixin',
        'django.contrib.auth.mixins.UserPassesTestMixin',
    ],
}


class EngineSettings:
    """
    Attribute access to SITEMAP_ENGINE values with defaults.

    Settings are read on every access so ``override_settings`` works in tests.
    """

    def __getattr__(self, name):
        if name not in DEFAULTS:
            raise AttributeError(f"Invalid sitemap engine setting: '{name}'")
        user_settings = getattr(settings, 'SITEMAP_ENGINE', {}) or {}
        if name == 'PROVIDERS':
            providers = dict(DEFAULTS['PROVIDERS'])
            providers.update(user_settings.get('PROVIDERS', {}) or {})
            return providers
        return user_settings.get(name, DEFAULTS[name])


engine_settings = EngineSettings()


def get_url_prefix() -> str:
    """Return the URL prefix normalized to '' or '/something' (no trailing slash)."""
    prefix = (engine_settings.URL_PREFIX or '').strip()
    if prefix in ('', '/'):
        return ''
    return '/' + prefix.strip('/')
