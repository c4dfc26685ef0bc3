"""Checkout module - cart, payment session hand-off, and confirmation."""

from apps.web.checkout.cart import CartStore, summarize_cart
from apps.web.checkout.confirmation import ConfirmationMachine, ConfirmationView
from apps.web.checkout.exceptions import (
    CheckoutError,
    EmptyCart,
    FetchFailed,
    GatewayInitFailed,
    MalformedResponse,
    MissingSession,
    PaymentIncomplete,
    RedirectFailed,
    SessionCreationFailed,
    Unauthenticated,
)
from apps.web.checkout.services import CheckoutContext, create_session, start_checkout

__all__ = [
    "CartStore",
    "CheckoutContext",
    "CheckoutError",
    "ConfirmationMachine",
    "ConfirmationView",
    "EmptyCart",
    "FetchFailed",
    "GatewayInitFailed",
    "MalformedResponse",
    "MissingSession",
    "PaymentIncomplete",
    "RedirectFailed",
    "SessionCreationFailed",
    "Unauthenticated",
    "create_session",
    "start_checkout",
    "summarize_cart",
]
