"""Storefront Schemas - Pydantic models for data contracts."""

from storefront_schemas.checkout import (
    MAX_LINE_QUANTITY,
    CartLineItem,
    CheckoutErrorCode,
    CheckoutSession,
    ConfirmationState,
    ConfirmedPayment,
    CustomerDetails,
    ProductRef,
)

__all__ = [
    # Cart
    "MAX_LINE_QUANTITY",
    "CartLineItem",
    "ProductRef",
    # Checkout
    "CheckoutErrorCode",
    "CheckoutSession",
    "ConfirmationState",
    "ConfirmedPayment",
    "CustomerDetails",
]
