"""Base payment gateway protocol - hand-off to hosted checkout."""

from typing import Protocol, runtime_checkable

from storefront_schemas import CheckoutSession


class NavigationError(Exception):
    """The browser context could not be moved to the target URL."""


@runtime_checkable
class Navigator(Protocol):
    """Moves the customer's browser context to another URL."""

    def navigate(self, url: str) -> None:
        """
        Navigate to ``url``.

        Raises:
            NavigationError: If navigation is refused.
        """
        ...


class RecordingNavigator:
    """
    Navigator that records the target URL instead of navigating.

    Used where the browser itself performs the navigation, e.g. a JSON view
    returns the recorded URL for the front end to follow.
    """

    def __init__(self) -> None:
        self.history: list[str] = []

    @property
    def url(self) -> str | None:
        return self.history[-1] if self.history else None

    def navigate(self, url: str) -> None:
        self.history.append(url)


@runtime_checkable
class PaymentGateway(Protocol):
    """
    Protocol for payment gateway client libraries.

    The gateway takes over the customer's browser for payment. A successful
    redirect unloads the current page, so it has no return value.
    """

    @property
    def name(self) -> str:
        """Gateway identifier."""
        ...

    def initialize(self) -> None:
        """
        Prepare the gateway client.

        Raises:
            GatewayInitFailed: If the client cannot be initialized.
        """
        ...

    def redirect_to_checkout(self, session: CheckoutSession) -> None:
        """
        Send the customer to the hosted checkout page for ``session``.

        Raises:
            RedirectFailed: If the gateway reports an error.
        """
        ...
