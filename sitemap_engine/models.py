from django.db import models


class SitemapConfig(models.Model):
    """
    Runtime configuration for sitemap generation.
    Stores the module toggle, base URL, schedule, per-source switches and the
    statistics of the last generation run. Only one instance exists.
    """
    FREQUENCY_CHOICES = [
        ('hourly', 'Hourly'),
        ('daily', 'Daily'),
        ('weekly', 'Weekly'),
        ('monthly', 'Monthly'),
    ]
    HTML_STYLE_CHOICES = [
        ('hierarchical', 'Hierarchical'),
        ('grouped', 'Grouped'),
        ('flat', 'Flat'),
    ]
    XSL_STYLE_CHOICES = [
        ('table', 'Table'),
        ('cards', 'Cards'),
        ('minimal', 'Minimal'),
    ]

    # Module
    enabled = models.BooleanField(default=True,
                                  help_text="Serve and generate sitemaps")
    base_url = models.URLField(blank=True, default='',
                               help_text="Base URL of the website (e.g., https://example.com)")

    # Schedule settings
    schedule_enabled = models.BooleanField(default=True,
                                           help_text="Regenerate sitemaps automatically")
    update_frequency = models.CharField(
        max_length=20,
        choices=FREQUENCY_CHOICES,
        default='daily',
        help_text="How often the sitemaps should be regenerated"
    )

    # Sources
    include_static = models.BooleanField(default=True,
                                         help_text="Include the homepage, static routes and custom URLs")
    include_router_discovery = models.BooleanField(default=True,
                                                   help_text="Include public GET routes discovered from the URLconf")
    include_posts = models.BooleanField(default=True,
                                        help_text="Include published posts")
    include_entities = models.BooleanField(default=True,
                                           help_text="Include published entity records")
    include_entity_index = models.BooleanField(default=True,
                                               help_text="Include an index page for every entity type")
    include_publishing = models.BooleanField(default=True,
                                             help_text="Include publishing groups and their posts")
    include_shop = models.BooleanField(default=True,
                                       help_text="Include shop catalog, categories and products")

    # Router discovery
    exclude_patterns = models.JSONField(default=list, blank=True,
                                        help_text="Regexes of paths to exclude (empty uses the built-in list)")
    include_only_patterns = models.JSONField(default=list, blank=True,
                                             help_text="Regexes of paths to include exclusively")
    protected_pipelines = models.JSONField(default=list, blank=True,
                                           help_text="Extra pipeline names that mark a route as private")

    # Static source
    static_routes = models.JSONField(default=list, blank=True,
                                     help_text="Static route definitions (empty uses the defaults)")
    custom_urls = models.JSONField(default=list, blank=True,
                                   help_text="Additional URLs to list")
    entity_patterns = models.JSONField(default=dict, blank=True,
                                       help_text="URL patterns per entity name, plus '*' for all entities")

    # Output
    flat_mode = models.BooleanField(default=False,
                                    help_text="Write a single urlset instead of per-source files")
    html_enabled = models.BooleanField(default=True,
                                       help_text="Generate the HTML sitemap")
    html_style = models.CharField(max_length=20, choices=HTML_STYLE_CHOICES, default='hierarchical')
    xsl_enabled = models.BooleanField(default=True,
                                      help_text="Reference an XSL stylesheet from the XML output")
    xsl_style = models.CharField(max_length=20, choices=XSL_STYLE_CHOICES, default='table')

    # Statistics
    last_generated = models.DateTimeField(null=True, blank=True,
                                          help_text="When the sitemap was last generated")
    url_count = models.PositiveIntegerField(default=0,
                                            help_text="Number of URLs in the last generated sitemap")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"Sitemap Configuration: {self.base_url or 'no base URL'}"

    def save(self, *args, **kwargs):
        # Ensure there's only one configuration instance
        if not self.pk and SitemapConfig.objects.exists():
            existing = SitemapConfig.objects.first()
            self.pk = existing.pk
            self.created_at = existing.created_at
            kwargs['force_insert'] = False
        super().save(*args, **kwargs)

    @classmethod
    def load(cls):
        """Return the configuration, creating the default row if needed."""
        config = cls.objects.first()
        if config is None:
            config = cls.objects.create()
        return config

    class Meta:
        verbose_name = 'Sitemap Configuration'
        verbose_name_plural = 'Sitemap Configuration'
