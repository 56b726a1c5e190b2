"""
Public sitemap endpoints and the admin JSON API.
"""
import hashlib
import logging

from django.http import Http404, HttpResponse, HttpResponseNotModified
from django.template.loader import render_to_string
from django.views import View
from rest_framework import permissions, status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from .models import SitemapConfig
from .services.generator import BASE_URL_REQUIRED, XSL_STYLES, Generator
from .services.html_renderer import HTML_STYLES
from .services.runtime import load_settings

logger = logging.getLogger(__name__)

XML_CONTENT_TYPE = 'application/xml; charset=utf-8'
HTML_CONTENT_TYPE = 'text/html; charset=utf-8'
XSL_CONTENT_TYPE = 'text/xsl; charset=utf-8'
CACHE_CONTROL = 'public, max-age=3600'


def compute_etag(content: str) -> str:
    return '"%s"' % hashlib.md5(content.encode('utf-8')).hexdigest()


def cached_response(request, content: str, content_type: str) -> HttpResponse:
    """
    Build a response with ETag and Cache-Control headers.

    Returns 304 when the request's If-None-Match matches the content.
    """
    etag = compute_etag(content)
    if_none_match = request.headers.get('If-None-Match', '')
    if etag in [tag.strip() for tag in if_none_match.split(',')] or if_none_match.strip() == '*':
        response = HttpResponseNotModified()
    else:
        response = HttpResponse(content, content_type=content_type)
    response['ETag'] = etag
    response['Cache-Control'] = CACHE_CONTROL
    return response


class SitemapBaseView(View):
    """
    Common handling for sitemap views: a disabled module answers 404.
    """
    http_method_names = ['get', 'head']

    def dispatch(self, request, *args, **kwargs):
        self.settings = load_settings()
        if not self.settings.enabled:
            raise Http404("Sitemap is disabled")
        self.generator = Generator()
        return super().dispatch(request, *args, **kwargs)

    def fail(self, error: str):
        if error == BASE_URL_REQUIRED:
            logger.error("Sitemap requested but no base URL is configured")
        raise Http404(f"Sitemap unavailable: {error}")

    def render_html(self, request, style=None):
        result = self.generator.generate_html(style=style, settings=self.settings)
        if not result.ok:
            self.fail(result.error)
        return cached_response(request, result.html, HTML_CONTENT_TYPE)


class SitemapXmlView(SitemapBaseView):
    """
    Serve /sitemap.xml.

    ``?style=<name>`` overrides the stylesheet line; ``?format=html`` renders
    the HTML sitemap instead (``style`` then names the HTML layout).
    """

    def get(self, request):
        style = request.GET.get('style') or None

        if request.GET.get('format') == 'html':
            return self.render_html(request, style)

        result = self.generator.generate_xml(xsl_style=style, settings=self.settings)
        if not result.ok:
            self.fail(result.error)
        return cached_response(request, result.xml, XML_CONTENT_TYPE)


class SitemapHtmlView(SitemapBaseView):

    def get(self, request):
        if not self.settings.html_enabled:
            raise Http404("HTML sitemap is disabled")
        return self.render_html(request, request.GET.get('style') or None)


class SitemapPartView(SitemapBaseView):
    """Serve /sitemap-<n>.xml from the split sitemap, or the n-th module file."""

    def get(self, request, index):
        xml = self.generator.get_sitemap_part(index)
        if xml is None:
            # Parts only exist once the full sitemap has been generated
            result = self.generator.generate_xml(settings=self.settings)
            if not result.ok:
                self.fail(result.error)
            xml = self.generator.get_sitemap_part(index)
        if xml is None:
            raise Http404(f"Sitemap part {index} not found")
        return cached_response(request, xml, XML_CONTENT_TYPE)


class SitemapModuleView(SitemapBaseView):
    """Serve /sitemaps/<filename>.xml written by per-module generation."""

    def get(self, request, filename):
        xml = self.generator.get_module(filename)
        if xml is None:
            raise Http404(f"Sitemap file {filename} not found")
        return cached_response(request, xml, XML_CONTENT_TYPE)


class StylesheetView(View):
    """Serve the XSL stylesheets referenced from generated documents."""
    http_method_names = ['get', 'head']
    kind = 'sitemap'

    def get(self, request, style):
        if style not in XSL_STYLES:
            raise Http404(f"Unknown stylesheet: {style}")
        content = render_to_string(f'sitemap_engine/xsl/{style}.xsl', {
            'kind': self.kind,
            'title': 'Sitemap',
        })
        return cached_response(request, content, XSL_CONTENT_TYPE)


# Admin API

def _config_data(config: SitemapConfig) -> dict:
    return {
        'enabled': config.enabled,
        'base_url': config.base_url,
        'schedule_enabled': config.schedule_enabled,
        'update_frequency': config.update_frequency,
        'flat_mode': config.flat_mode,
        'html_enabled': config.html_enabled,
        'html_style': config.html_style,
        'xsl_enabled': config.xsl_enabled,
        'xsl_style': config.xsl_style,
        'html_styles': list(HTML_STYLES),
        'xsl_styles': list(XSL_STYLES),
    }


@api_view(['GET'])
@permission_classes([permissions.IsAdminUser])
def sitemap_status(request):
    """
    Report the configuration, the schedule and the last generation.
    """
    from .tasks import schedule_status

    try:
        schedule = schedule_status()
    except Exception as e:
        logger.error(f"Could not read sitemap schedule: {e}")
        schedule = {'scheduled': False, 'error': str(e)}

    return Response({
        'config': _config_data(SitemapConfig.load()),
        'schedule': schedule,
    })


@api_view(['POST'])
@permission_classes([permissions.IsAdminUser])
def regenerate_sitemap(request):
    """Queue an immediate regeneration."""
    from .tasks import regenerate_now

    if not SitemapConfig.load().enabled:
        return Response(
            {'error': 'Sitemap module is disabled'},
            status=status.HTTP_409_CONFLICT
        )

    try:
        task_id = regenerate_now()
    except Exception as e:
        logger.error(f"Could not queue sitemap regeneration: {e}")
        return Response(
            {'error': 'Could not queue regeneration'},
            status=status.HTTP_503_SERVICE_UNAVAILABLE
        )

    return Response({'queued': True, 'task_id': task_id}, status=status.HTTP_202_ACCEPTED)


@api_view(['POST'])
@permission_classes([permissions.IsAdminUser])
def invalidate_sitemap(request):
    """Purge every cached sitemap document."""
    Generator().invalidate_cache()
    return Response({'invalidated': True})
