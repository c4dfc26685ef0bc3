"""
Checkout services - start a payment session for the customer's cart.

Provides the session initiator and the full checkout hand-off
(create session, then redirect through the payment gateway).
"""

import logging
from dataclasses import dataclass

from storefront_schemas import CheckoutSession

from apps.web.checkout.cart import CartStore
from apps.web.checkout.client import CheckoutAPIClient
from apps.web.checkout.credentials import CredentialProvider
from apps.web.checkout.exceptions import EmptyCart, Unauthenticated
from apps.web.checkout.formatting import format_price
from apps.web.checkout.gateways import PaymentGateway, redirect

logger = logging.getLogger(__name__)


@dataclass
class CheckoutContext:
    """
    Collaborators shared by the checkout components.

    Passed explicitly to each component instead of reaching for module
    globals, so every dependency is visible at the call site.
    """

    cart: CartStore
    credentials: CredentialProvider
    client: CheckoutAPIClient
    gateway: PaymentGateway | None = None


async def create_session(
    cart: CartStore,
    credentials: CredentialProvider,
    client: CheckoutAPIClient,
) -> CheckoutSession:
    """
    Create a payment session for the cart.

    Args:
        cart: Customer cart. Not modified.
        credentials: Source of the customer's bearer token.
        client: Ordering API client.

    Returns:
        The created checkout session.

    Raises:
        Unauthenticated: No token is available (no request is made).
        EmptyCart: The cart has no items (no request is made).
        SessionCreationFailed: The ordering API did not create a session.
    """
    token = credentials.get_token()
    if not token:
        raise Unauthenticated()

    if cart.is_empty:
        raise EmptyCart()

    # The API prices the order itself; this total is for the logs only
    logger.info(
        "Starting checkout for %d items (displayed total %s)",
        cart.item_count,
        format_price(cart.total),
    )
    return await client.create_session(token)


async def start_checkout(context: CheckoutContext) -> CheckoutSession:
    """
    Create a session and hand it to the payment gateway.

    Raises:
        ValueError: If the context has no gateway.
        CheckoutError: Any error from session creation or the redirect.
    """
    if context.gateway is None:
        raise ValueError("A payment gateway is required to start checkout")

    session = await create_session(context.cart, context.credentials, context.client)
    redirect(context.gateway, session)
    return session
