from django.urls import path, re_path

from . import views

app_name = 'sitemap_engine'

urlpatterns = [
    path('sitemap.xml', views.SitemapXmlView.as_view(), name='sitemap'),
    path('sitemap.html', views.SitemapHtmlView.as_view(), name='sitemap-html'),
    path('sitemap-<int:index>.xml', views.SitemapPartView.as_view(), name='sitemap-part'),
    re_path(r'^sitemaps/(?P<filename>[A-Za-z0-9][A-Za-z0-9_.-]*)\.xml$',
            views.SitemapModuleView.as_view(), name='sitemap-module'),
    path('assets/sitemap/<str:style>', views.StylesheetView.as_view(kind='sitemap'), name='sitemap-xsl'),
    path('assets/sitemap-index/<str:style>', views.StylesheetView.as_view(kind='sitemap-index'),
         name='sitemap-index-xsl'),

    # Admin API
    path('api/sitemap/status/', views.sitemap_status, name='api-status'),
    path('api/sitemap/regenerate/', views.regenerate_sitemap, name='api-regenerate'),
    path('api/sitemap/invalidate/', views.invalidate_sitemap, name='api-invalidate'),
]
