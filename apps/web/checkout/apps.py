"""Django app configuration for checkout module."""

from django.apps import AppConfig


class CheckoutAppConfig(AppConfig):
    """Checkout app configuration."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.web.checkout"
    verbose_name = "Checkout"
