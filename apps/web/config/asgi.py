"""
ASGI config for the storefront.

Checkout views are async; serve them with an ASGI server so a client
disconnect cancels the in-flight confirmation fetch.
"""

import os

from django.core.asgi import get_asgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "apps.web.config.settings")

application = get_asgi_application()
