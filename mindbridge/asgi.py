"""ASGI config for the mindbridge project."""

import os

from django.core.asgi import get_asgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "mindbridge.settings")

application = get_asgi_application()
