"""WSGI config for the identity service."""
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "wivi_identity.settings")

application = get_wsgi_application()
