"""
WSGI config for the sitemapper project.
"""
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'sitemapper.settings')

application = get_wsgi_application()
