"""
Management command to generate sitemaps.

Builds the XML sitemap into the cache and, on request, the HTML sitemap and
the per-module files with their sitemap index.
"""
from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone

from sitemap_engine.models import SitemapConfig
from sitemap_engine.services.generator import Generator
from sitemap_engine.services.html_renderer import HTML_STYLES
from sitemap_engine.services.runtime import SitemapSettings


class Command(BaseCommand):
    help = 'Generate the XML sitemap, and optionally the HTML sitemap and per-module sitemap files'

    def add_arguments(self, parser):
        parser.add_argument(
            '--no-cache',
            action='store_true',
            help='Rebuild from the sources instead of returning cached output',
        )
        parser.add_argument(
            '--html',
            action='store_true',
            help='Also generate the HTML sitemap',
        )
        parser.add_argument(
            '--style',
            choices=HTML_STYLES,
            help='HTML sitemap layout (defaults to the configured style)',
        )
        parser.add_argument(
            '--all',
            action='store_true',
            help='Also write per-module sitemap files and the sitemap index',
        )
        parser.add_argument(
            '--base-url',
            help='Base URL to use instead of the configured one',
        )
        parser.add_argument(
            '--verbose',
            action='store_true',
            help='Verbose output',
        )

    def handle(self, *args, **options):
        """Execute the command."""
        verbose = options.get('verbose', False)
        use_cache = not options.get('no_cache', False)
        base_url = options.get('base_url')

        settings = SitemapSettings.from_model(SitemapConfig.load())
        generator = Generator()

        if verbose:
            self.stdout.write(f"Starting sitemap generation at {timezone.now()}")

        if not use_cache:
            generator.invalidate_cache()

        result = generator.generate_xml(base_url=base_url, use_cache=use_cache, settings=settings)
        if not result.ok:
            raise CommandError(f'Sitemap generation failed: {result.error}')

        summary = f'{result.url_count} URLs'
        if result.is_index:
            summary += f' in {len(result.parts)} parts'
        if result.cached:
            summary += ' (cached)'
        self.stdout.write(self.style.SUCCESS(f'Generated sitemap.xml: {summary}'))
        self._report_warnings(result.warnings, verbose)

        if options.get('html') or options.get('style'):
            html = generator.generate_html(style=options.get('style'), base_url=base_url,
                                           use_cache=use_cache, settings=settings)
            if html.ok:
                self.stdout.write(self.style.SUCCESS(
                    f'Generated HTML sitemap ({options.get("style") or settings.html_style})'
                ))
            else:
                self.stdout.write(self.style.ERROR(f'Error generating HTML sitemap: {html.error}'))

        if options.get('all'):
            files = generator.generate_all(base_url=base_url, settings=settings)
            if not files.ok:
                raise CommandError(f'Sitemap file generation failed: {files.error}')
            if verbose:
                for sitemap_file in files.files:
                    self.stdout.write(f'  {sitemap_file.filename}.xml: {sitemap_file.url_count} URLs')
            self.stdout.write(self.style.SUCCESS(
                f'Wrote {len(files.files)} sitemap files ({files.url_count} URLs)'
            ))
            self._report_warnings(files.warnings, verbose)

    def _report_warnings(self, warnings, verbose):
        if not warnings:
            return
        self.stdout.write(self.style.WARNING(f'{len(warnings)} source warnings'))
        if verbose:
            for warning in warnings:
                self.stdout.write(self.style.WARNING(f'  {warning}'))
