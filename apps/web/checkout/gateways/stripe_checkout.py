"""Stripe Checkout gateway - redirect to Stripe's hosted payment page."""

import logging
from urllib.parse import urlsplit

from storefront_schemas import CheckoutSession

from apps.web.checkout.exceptions import GatewayInitFailed, RedirectFailed
from apps.web.checkout.gateways.base import NavigationError, Navigator

logger = logging.getLogger(__name__)


class StripeCheckoutGateway:
    """
    Stripe Checkout hand-off using the account's publishable key.

    Sessions are created server-side by the ordering API; this gateway only
    checks the session against the configured key and moves the customer to
    the hosted checkout URL (or leaves the id for Stripe.js when the API
    returns no URL).
    """

    CHECKOUT_HOST = "checkout.stripe.com"
    TEST_KEY_PREFIX = "pk_test_"
    LIVE_KEY_PREFIX = "pk_live_"

    def __init__(self, publishable_key: str, navigator: Navigator) -> None:
        self.publishable_key = (publishable_key or "").strip()
        self.navigator = navigator
        self.client_redirect_session_id: str | None = None
        self._initialized = False

    @property
    def name(self) -> str:
        return "stripe"

    @property
    def livemode(self) -> bool:
        return self.publishable_key.startswith(self.LIVE_KEY_PREFIX)

    def initialize(self) -> None:
        """
        Validate the publishable key.

        Raises:
            GatewayInitFailed: If the key is missing or is not a publishable key.
        """
        key = self.publishable_key
        if not key.startswith((self.TEST_KEY_PREFIX, self.LIVE_KEY_PREFIX)):
            logger.error(
                "Stripe publishable key is missing or malformed (starts with %r)",
                key[:8],
            )
            raise GatewayInitFailed()
        self._initialized = True

    def redirect_to_checkout(self, session: CheckoutSession) -> None:
        """
        Hand the customer to Stripe's hosted checkout page.

        A session without a URL is not navigated; its id is kept in
        ``client_redirect_session_id`` for ``stripe.redirectToCheckout``.

        Raises:
            GatewayInitFailed: If the gateway was never initialized and the
                key is invalid.
            RedirectFailed: If the session was created in the other mode (test
                vs live), its URL is not a Stripe checkout URL, or navigation
                fails.
        """
        if not self._initialized:
            self.initialize()

        session_livemode = session.id.startswith("cs_live_")
        if session.id.startswith(("cs_test_", "cs_live_")) and (
            session_livemode != self.livemode
        ):
            raise RedirectFailed(
                "Checkout session does not match the configured Stripe mode."
            )

        if not session.url:
            # Stripe.js redirects by session id with the publishable key
            self.client_redirect_session_id = session.id
            logger.info(
                "Handing session %s to Stripe.js for client-side redirect", session.id
            )
            return

        parts = urlsplit(session.url)
        if parts.scheme != "https" or parts.hostname != self.CHECKOUT_HOST:
            logger.warning(
                "Refusing redirect for session %s to %s", session.id, parts.hostname
            )
            raise RedirectFailed("Checkout session has an invalid redirect URL.")

        try:
            self.navigator.navigate(session.url)
        except NavigationError as e:
            raise RedirectFailed(str(e) or "Redirect to checkout failed.") from e

        logger.info("Redirecting to Stripe Checkout for session %s", session.id)
