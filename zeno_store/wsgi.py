"""
WSGI config for Zeno Store.
"""
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'zeno_store.settings')

application = get_wsgi_application()
