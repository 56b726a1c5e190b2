from django.contrib import admin
from django.urls import include, path

from sitemap_engine.conf import get_url_prefix

# Sitemap documents, stylesheets and the admin API live under URL_PREFIX
sitemap_prefix = get_url_prefix().lstrip('/')
if sitemap_prefix:
    sitemap_prefix += '/'

urlpatterns = [
    path('admin/', admin.site.urls),
    path(sitemap_prefix, include('sitemap_engine.urls')),
]
