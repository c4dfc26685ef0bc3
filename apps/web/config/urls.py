"""
URL configuration for the storefront.
"""

from django.urls import include, path

urlpatterns = [
    # Cart and checkout API endpoints
    path("", include("apps.web.checkout.urls")),
]
