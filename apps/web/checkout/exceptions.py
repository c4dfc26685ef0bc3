"""Checkout flow exceptions."""

from storefront_schemas import CheckoutErrorCode


class CheckoutError(Exception):
    """Base exception for checkout flow errors.

    ``message`` is safe to show to the customer; upstream details stay in logs.
    """

    code: CheckoutErrorCode

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class Unauthenticated(CheckoutError):
    """No bearer credential is available."""

    code = CheckoutErrorCode.UNAUTHENTICATED

    def __init__(self, message: str = "You are not authenticated.") -> None:
        super().__init__(message)


class EmptyCart(CheckoutError):
    """Checkout was requested for a cart without items."""

    code = CheckoutErrorCode.EMPTY_CART

    def __init__(self, message: str = "Your cart is currently empty.") -> None:
        super().__init__(message)


class SessionCreationFailed(CheckoutError):
    """The ordering API did not create a payment session."""

    code = CheckoutErrorCode.SESSION_CREATION_FAILED

    def __init__(
        self,
        message: str = "Failed to create checkout session.",
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code


class GatewayInitFailed(CheckoutError):
    """The payment gateway client could not be initialized."""

    code = CheckoutErrorCode.GATEWAY_INIT_FAILED

    def __init__(self, message: str = "Failed to initialize Stripe.") -> None:
        super().__init__(message)


class RedirectFailed(CheckoutError):
    """The payment gateway refused to hand off to hosted checkout."""

    code = CheckoutErrorCode.REDIRECT_FAILED


class MissingSession(CheckoutError):
    """The return URL carries no payment session identifier."""

    code = CheckoutErrorCode.MISSING_SESSION

    def __init__(self, message: str = "No payment session found.") -> None:
        super().__init__(message)


class FetchFailed(CheckoutError):
    """Fetching the confirmed payment record failed."""

    code = CheckoutErrorCode.FETCH_FAILED

    def __init__(
        self,
        message: str = "Failed to load payment details.",
        status_code: int | None = None,
        response_body: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class MalformedResponse(CheckoutError):
    """The ordering API answered with an unexpected payload."""

    code = CheckoutErrorCode.MALFORMED_RESPONSE


class PaymentIncomplete(CheckoutError):
    """The checkout session exists but has not been paid."""

    code = CheckoutErrorCode.PAYMENT_INCOMPLETE

    def __init__(self, payment_status: str | None) -> None:
        super().__init__(f"Payment not completed (status: {payment_status}).")
        self.payment_status = payment_status
