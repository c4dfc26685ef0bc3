"""Checkout configuration resolved from Django settings."""

from dataclasses import dataclass

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured


@dataclass(frozen=True)
class CheckoutConfig:
    """Settings the checkout flow needs to function."""

    api_url: str
    stripe_publishable_key: str
    home_url: str = "/"
    redirect_delay: float = 10.0
    http_timeout: float = 30.0
    require_paid: bool = True
    gateway: str = "stripe"

    @classmethod
    def from_settings(cls) -> "CheckoutConfig":
        """
        Build the config from Django settings.

        Raises:
            ImproperlyConfigured: If the ordering API URL or the Stripe
                publishable key is missing, so misconfiguration shows up
                before any request is attempted.
        """
        api_url = (getattr(settings, "STOREFRONT_API_URL", "") or "").strip()
        if not api_url:
            raise ImproperlyConfigured(
                "STOREFRONT_API_URL must be set to the ordering API base URL"
            )

        publishable_key = (getattr(settings, "STRIPE_PUBLISHABLE_KEY", "") or "").strip()
        if not publishable_key:
            raise ImproperlyConfigured(
                "STRIPE_PUBLISHABLE_KEY must be set for checkout redirects"
            )

        return cls(
            api_url=api_url.rstrip("/"),
            stripe_publishable_key=publishable_key,
            home_url=getattr(settings, "CHECKOUT_HOME_URL", "/"),
            redirect_delay=float(getattr(settings, "CHECKOUT_REDIRECT_DELAY", 10.0)),
            http_timeout=float(getattr(settings, "CHECKOUT_HTTP_TIMEOUT", 30.0)),
            require_paid=bool(getattr(settings, "CHECKOUT_REQUIRE_PAID", True)),
            gateway=getattr(settings, "CHECKOUT_GATEWAY", "stripe"),
        )
