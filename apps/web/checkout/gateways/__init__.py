"""Payment gateways - hand-off from the storefront to hosted checkout."""

import logging
from typing import Any

from storefront_schemas import CheckoutSession

from apps.web.checkout.gateways.base import (
    NavigationError,
    Navigator,
    PaymentGateway,
    RecordingNavigator,
)
from apps.web.checkout.gateways.mock import MockGateway
from apps.web.checkout.gateways.stripe_checkout import StripeCheckoutGateway

logger = logging.getLogger(__name__)


def get_gateway(name: str, **kwargs: Any) -> PaymentGateway:
    """
    Get a payment gateway instance by name.

    Args:
        name: Gateway identifier ("stripe" or "mock").
        **kwargs: Passed to the gateway constructor.
            For StripeCheckoutGateway: publishable_key and navigator.

    Returns:
        A gateway implementing the PaymentGateway protocol.

    Raises:
        ValueError: If the gateway is not supported.

    Example:
        gateway = get_gateway(
            "stripe", publishable_key="pk_test_...", navigator=RecordingNavigator()
        )
    """
    if name == "stripe":
        return StripeCheckoutGateway(**kwargs)
    elif name == "mock":
        return MockGateway(**kwargs)
    else:
        raise ValueError(f"Unsupported payment gateway: {name}. Supported: mock, stripe")


def redirect(gateway: PaymentGateway, session: CheckoutSession) -> None:
    """
    Initialize ``gateway`` and hand ``session`` to it.

    Raises:
        GatewayInitFailed: If the gateway cannot be initialized.
        RedirectFailed: If the gateway reports an error.
    """
    gateway.initialize()
    logger.debug("Handing session %s to %s gateway", session.id, gateway.name)
    gateway.redirect_to_checkout(session)


__all__ = [
    "MockGateway",
    "NavigationError",
    "Navigator",
    "PaymentGateway",
    "RecordingNavigator",
    "StripeCheckoutGateway",
    "get_gateway",
    "redirect",
]
