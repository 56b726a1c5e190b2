import logging

from django.apps import AppConfig

logger = logging.getLogger(__name__)


class SitemapEngineConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'sitemap_engine'
    verbose_name = 'Sitemap Engine'

    def ready(self):
        """
        Open the process-wide sitemap cache, connect the signal handlers and
        register the periodic regeneration task.
        """
        from sitemap_engine.services.cache import SitemapCache

        self.cache = SitemapCache().open()

        import sitemap_engine.tasks

        # The database may not be ready yet (initial migrations, tests)
        try:
            sitemap_engine.tasks.ready()
        except Exception as e:
            logger.debug(f"Periodic sitemap task not registered at startup: {e}")
