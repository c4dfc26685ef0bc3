"""Mock payment gateway for development and testing."""

from storefront_schemas import CheckoutSession

from apps.web.checkout.exceptions import GatewayInitFailed, RedirectFailed
from apps.web.checkout.gateways.base import Navigator, RecordingNavigator


class MockGateway:
    """
    Payment gateway double that never leaves the application.

    Args:
        navigator: Where redirects are sent (a ``RecordingNavigator`` by default).
        fail_init: Make ``initialize`` fail.
        fail_redirect: Make ``redirect_to_checkout`` fail.
        checkout_base_url: Prefix for generated hosted checkout URLs.
    """

    def __init__(
        self,
        navigator: Navigator | None = None,
        fail_init: bool = False,
        fail_redirect: bool = False,
        checkout_base_url: str = "https://checkout.mock.local/pay",
    ) -> None:
        self.navigator = navigator or RecordingNavigator()
        self.fail_init = fail_init
        self.fail_redirect = fail_redirect
        self.checkout_base_url = checkout_base_url.rstrip("/")
        self.initialized = False
        self.redirected: list[CheckoutSession] = []

    @property
    def name(self) -> str:
        return "mock"

    def initialize(self) -> None:
        if self.fail_init:
            raise GatewayInitFailed("Mock gateway initialization failure")
        self.initialized = True

    def redirect_to_checkout(self, session: CheckoutSession) -> None:
        if self.fail_redirect:
            raise RedirectFailed("Mock redirect failure")
        self.redirected.append(session)
        self.navigator.navigate(session.url or f"{self.checkout_base_url}/{session.id}")
