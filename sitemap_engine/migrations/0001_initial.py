from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='SitemapConfig',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('enabled', models.BooleanField(default=True, help_text='Serve and generate sitemaps')),
                ('base_url', models.URLField(blank=True, default='', help_text='Base URL of the website (e.g., https://example.com)')),
                ('schedule_enabled', models.BooleanField(default=True, help_text='Regenerate sitemaps automatically')),
                ('update_frequency', models.CharField(choices=[('hourly', 'Hourly'), ('daily', 'Daily'), ('weekly', 'Weekly'), ('monthly', 'Monthly')], default='daily', help_text='How often the sitemaps should be regenerated', max_length=20)),
                ('include_static', models.BooleanField(default=True, help_text='Include the homepage, static routes and custom URLs')),
                ('include_router_discovery', models.BooleanField(default=True, help_text='Include public GET routes discovered from the URLconf')),
                ('include_posts', models.BooleanField(default=True, help_text='Include published posts')),
                ('include_entities', models.BooleanField(default=True, help_text='Include published entity records')),
                ('include_entity_index', models.BooleanField(default=True, help_text='Include an index page for every entity type')),
                ('include_publishing', models.BooleanField(default=True, help_text='Include publishing groups and their posts')),
                ('include_shop', models.BooleanField(default=True, help_text='Include shop catalog, categories and products')),
                ('exclude_patterns', models.JSONField(blank=True, default=list, help_text='Regexes of paths to exclude (empty uses the built-in list)')),
                ('include_only_patterns', models.JSONField(blank=True, default=list, help_text='Regexes of paths to include exclusively')),
                ('protected_pipelines', models.JSONField(blank=True, default=list, help_text='Extra pipeline names that mark a route as private')),
                ('static_routes', models.JSONField(blank=True, default=list, help_text='Static route definitions (empty uses the defaults)')),
                ('custom_urls', models.JSONField(blank=True, default=list, help_text='Additional URLs to list')),
                ('entity_patterns', models.JSONField(blank=True, default=dict, help_text="URL patterns per entity name, plus '*' for all entities")),
                ('flat_mode', models.BooleanField(default=False, help_text='Write a single urlset instead of per-source files')),
                ('html_enabled', models.BooleanField(default=True, help_text='Generate the HTML sitemap')),
                ('html_style', models.CharField(choices=[('hierarchical', 'Hierarchical'), ('grouped', 'Grouped'), ('flat', 'Flat')], default='hierarchical', max_length=20)),
                ('xsl_enabled', models.BooleanField(default=True, help_text='Reference an XSL stylesheet from the XML output')),
                ('xsl_style', models.CharField(choices=[('table', 'Table'), ('cards', 'Cards'), ('minimal', 'Minimal')], default='table', max_length=20)),
                ('last_generated', models.DateTimeField(blank=True, help_text='When the sitemap was last generated', null=True)),
                ('url_count', models.PositiveIntegerField(default=0, help_text='Number of URLs in the last generated sitemap')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'Sitemap Configuration',
                'verbose_name_plural': 'Sitemap Configuration',
            },
        ),
    ]
