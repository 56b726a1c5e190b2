from django.contrib import admin

from .models import SitemapConfig


@admin.register(SitemapConfig)
class SitemapConfigAdmin(admin.ModelAdmin):
    """
    Admin interface for the SitemapConfig model.
    Saving the configuration purges cached sitemaps and re-registers the schedule.
    """
    list_display = ('base_url', 'enabled', 'update_frequency', 'url_count', 'last_generated', 'updated_at')

    fieldsets = (
        ('Module', {
            'fields': ('enabled', 'base_url'),
        }),
        ('Schedule', {
            'fields': ('schedule_enabled', 'update_frequency'),
        }),
        ('Sources', {
            'fields': ('include_static', 'include_router_discovery', 'include_posts',
                       'include_entities', 'include_entity_index', 'include_publishing', 'include_shop'),
        }),
        ('Router Discovery', {
            'fields': ('exclude_patterns', 'include_only_patterns', 'protected_pipelines'),
            'classes': ('collapse',),
        }),
        ('Static URLs and Patterns', {
            'fields': ('static_routes', 'custom_urls', 'entity_patterns'),
            'classes': ('collapse',),
        }),
        ('Output', {
            'fields': ('flat_mode', 'html_enabled', 'html_style', 'xsl_enabled', 'xsl_style'),
        }),
        ('Status', {
            'fields': ('last_generated', 'url_count'),
            'classes': ('collapse',),
        }),
    )

    readonly_fields = ('last_generated', 'url_count', 'created_at', 'updated_at')

    def has_delete_permission(self, request, obj=None):
        # Prevent deletion of the configuration object
        return False

    def has_add_permission(self, request):
        # Only allow adding if no configuration exists
        return not SitemapConfig.objects.exists()
